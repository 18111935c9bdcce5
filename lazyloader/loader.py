"""Proxy lookup: claim mapped identifiers and load their cached modules."""

from __future__ import annotations

import importlib.machinery
import importlib.util
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Iterable, List, Mapping, Optional, Protocol

from lazyloader.cache.resolver import ProxyCacheResolver
from lazyloader.errors import ProxyModuleError, ProxyNotFoundError, ProxyNotReadyError
from lazyloader.naming import DEFAULT_PROXY_NAMESPACE, proxy_class_name, proxy_module_name

logger = logging.getLogger(__name__)


class ResolveStatus(str, Enum):
    """Outcome of a lookup."""

    CLAIMED = "claimed"
    DECLINED = "declined"


@dataclass(frozen=True)
class ResolveResult:
    """Lookup answer; claimed results carry the cache path and module name."""

    status: ResolveStatus
    path: Optional[Path] = None
    module: Optional[str] = None

    @classmethod
    def claimed(cls, path: Path, module: str) -> "ResolveResult":
        return cls(status=ResolveStatus.CLAIMED, path=path, module=module)

    @classmethod
    def declined(cls) -> "ResolveResult":
        return cls(status=ResolveStatus.DECLINED)

    @property
    def is_claimed(self) -> bool:
        return self.status is ResolveStatus.CLAIMED


class ProxyResolver(Protocol):
    """Anything the loader manager can ask for a proxy."""

    async def resolve(self, identifier: str) -> ResolveResult: ...

    async def load(self, identifier: str) -> Optional[type]: ...


def import_proxy_module(module_name: str, path: Path) -> ModuleType:
    """Import a cache file as ``module_name``; already-imported modules are reused.

    Raises:
        ProxyNotReadyError: the cache file does not exist yet.
        ProxyModuleError: ``module_name`` is already bound to a different file.
    """
    existing = sys.modules.get(module_name)
    if existing is not None:
        loaded_from = getattr(existing, "__file__", None)
        if loaded_from is None or Path(loaded_from).resolve() != Path(path).resolve():
            raise ProxyModuleError(f"Module {module_name} is already loaded from {loaded_from}, not {path}")
        return existing
    if not path.exists():
        raise ProxyNotReadyError(f"Lazy proxy cache entry {path} does not exist yet")

    loader = importlib.machinery.SourceFileLoader(module_name, str(path))
    spec = importlib.util.spec_from_loader(module_name, loader)
    if spec is None:
        raise ProxyModuleError(f"Cannot build an import spec for {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


class LazyLoader:
    """Resolver for identifiers listed in the lazy proxy mapping."""

    def __init__(
        self,
        mapping: Mapping[str, str],
        cache: ProxyCacheResolver,
        *,
        namespace: str = DEFAULT_PROXY_NAMESPACE,
    ) -> None:
        self.mapping = mapping
        self.cache = cache
        self.namespace = namespace

    def handles(self, identifier: str) -> bool:
        return identifier in self.mapping

    async def resolve(self, identifier: str) -> ResolveResult:
        if not self.handles(identifier):
            return ResolveResult.declined()
        path = await self.cache.ensure_cached(identifier)
        return ResolveResult.claimed(path, proxy_module_name(self.namespace, identifier))

    async def load(self, identifier: str) -> Optional[type]:
        """Resolve and import the proxy class; ``None`` when declined."""
        result = await self.resolve(identifier)
        if not result.is_claimed:
            return None
        if result.path is None or result.module is None:
            raise ProxyNotReadyError(f"Lazy proxy {identifier!r} was claimed without a cache entry")
        module = import_proxy_module(result.module, result.path)
        class_name = proxy_class_name(identifier)
        proxy_type = getattr(module, class_name, None)
        if not isinstance(proxy_type, type):
            raise ProxyModuleError(f"Proxy module {result.module} does not define {class_name}")
        return proxy_type


class LoaderManager:
    """Ordered resolver chain; the first resolver to claim an identifier wins."""

    def __init__(self, resolvers: Iterable[ProxyResolver] = ()) -> None:
        self._resolvers: List[ProxyResolver] = list(resolvers)

    @property
    def resolvers(self) -> List[ProxyResolver]:
        return list(self._resolvers)

    def prepend(self, resolver: ProxyResolver) -> None:
        self._resolvers.insert(0, resolver)

    def append(self, resolver: ProxyResolver) -> None:
        self._resolvers.append(resolver)

    async def resolve(self, identifier: str) -> ResolveResult:
        for resolver in self._resolvers:
            result = await resolver.resolve(identifier)
            if result.is_claimed:
                return result
        return ResolveResult.declined()

    async def load_type(self, identifier: str) -> type:
        """Return the proxy class for ``identifier``.

        Raises:
            ProxyNotFoundError: every resolver declined.
            ProxyNotReadyError: a resolver claimed it but the cache file is missing.
        """
        for resolver in self._resolvers:
            proxy_type = await resolver.load(identifier)
            if proxy_type is not None:
                logger.debug("Loaded lazy proxy %s via %s", identifier, type(resolver).__name__)
                return proxy_type
        raise ProxyNotFoundError(f"No lazy proxy registered for {identifier!r}")
