"""YAML-backed configuration for the lazy loader."""

from __future__ import annotations

import os
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, RootModel, StringConstraints, ValidationError, field_validator

from lazyloader.errors import ConfigurationError
from lazyloader.naming import DEFAULT_PROXY_NAMESPACE

CONFIG_FILE_NAME = "lazy_loader"
CONFIG_ENV_VAR = "LAZYLOADER_CONFIG"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_DOTTED_PATH = r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)*$"

ProxyIdentifier = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
TargetPath = Annotated[str, StringConstraints(strip_whitespace=True, pattern=_DOTTED_PATH)]


class ProxyMapping(RootModel[Dict[ProxyIdentifier, TargetPath]]):
    """Proxy identifier -> dotted target class path."""


class CacheSettings(BaseModel):
    """Where and how generated proxies are cached."""

    model_config = ConfigDict(extra="forbid")

    cache_dir: Path = Path("runtime/container/proxy")
    namespace: str = Field(default=DEFAULT_PROXY_NAMESPACE, pattern=_DOTTED_PATH)
    wait_for_generation: bool = True
    dir_mode: int = 0o755

    @field_validator("dir_mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value, 8)
        return value


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    log_level: str = "INFO"
    log_file: Path = Path.home() / ".lazyloader" / "lazyloader.log"
    log_format: str = DEFAULT_LOG_FORMAT


class DeveloperSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    debug_mode: bool = False


class Config:
    """Configuration loaded once at startup.

    The proxy mapping lives under the ``lazy_loader`` key; ``cache``,
    ``logging`` and ``developer`` sections are optional. A relative
    ``cache_dir`` is taken relative to the directory holding the file.
    """

    DEFAULT_CONFIG_PATH = Path.home() / ".lazyloader" / "config.yaml"

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        *,
        data: Optional[Mapping[str, Any]] = None,
    ) -> None:
        env_path = os.getenv(CONFIG_ENV_VAR, "").strip()
        self.config_path = Path(config_path or env_path or self.DEFAULT_CONFIG_PATH).expanduser()
        raw = dict(data) if data is not None else self._read(self.config_path)
        self._raw = raw

        try:
            self.cache = CacheSettings.model_validate(raw.get("cache") or {})
            self.logging = LoggingSettings.model_validate(raw.get("logging") or {})
            self.developer = DeveloperSettings.model_validate(raw.get("developer") or {})
            mapping = ProxyMapping.model_validate(raw.get(CONFIG_FILE_NAME) or {}).root
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration in {self.config_path}: {exc}") from exc

        if not self.cache.cache_dir.expanduser().is_absolute():
            self.cache.cache_dir = self.config_path.parent / self.cache.cache_dir
        self.proxies: Mapping[str, str] = MappingProxyType(dict(mapping))

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Malformed configuration file {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        return payload

    def get(self, key: str, default: Any = None) -> Any:
        """Raw section lookup by top-level key."""
        return self._raw.get(key, default)
