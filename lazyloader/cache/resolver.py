"""On-disk proxy cache with a single-writer publish protocol."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from pathlib import Path
from typing import Dict, Mapping, Optional

from lazyloader.errors import ConfigurationError
from lazyloader.generator import ProxyGenerator
from lazyloader.naming import CACHE_SUFFIX, proxy_stem

logger = logging.getLogger(__name__)

DEFAULT_DIR_MODE = 0o755


def publish_atomically(path: Path, content: str) -> None:
    """Write ``content`` next to ``path`` and rename it into place.

    Readers of ``path`` see either no file or the complete file.
    """
    temp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}")
    try:
        temp_path.write_text(content, encoding="utf-8")
        temp_path.replace(path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


class ProxyCacheResolver:
    """Compute cache paths and make sure each mapped proxy is generated once.

    Locks are ``asyncio.Lock`` objects keyed by a hash of the cache path.
    They only coordinate tasks on one event loop inside this process.
    """

    def __init__(
        self,
        mapping: Mapping[str, str],
        *,
        cache_dir: Path,
        generator: Optional[ProxyGenerator] = None,
        wait_for_generation: bool = True,
        dir_mode: int = DEFAULT_DIR_MODE,
    ) -> None:
        self.mapping = mapping
        self.cache_dir = Path(cache_dir).expanduser()
        self.generator = generator or ProxyGenerator()
        self.wait_for_generation = wait_for_generation
        self.dir_mode = dir_mode
        self._locks: Dict[str, asyncio.Lock] = {}

    def cache_path(self, identifier: str) -> Path:
        self.cache_dir.mkdir(mode=self.dir_mode, parents=True, exist_ok=True)
        return self.cache_dir / f"{proxy_stem(identifier)}{CACHE_SUFFIX}"

    def _lock_for(self, path: Path) -> asyncio.Lock:
        key = hashlib.md5(str(path).encode("utf-8")).hexdigest()
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def ensure_cached(self, identifier: str) -> Path:
        """Return the cache path for ``identifier``, generating the entry on a miss."""
        path = self.cache_path(identifier)
        if path.exists():
            logger.debug("Lazy proxy cache hit id=%s path=%s", identifier, path)
            return path

        lock = self._lock_for(path)
        if lock.locked() and not self.wait_for_generation:
            # Another task owns generation; the caller may find no file yet.
            logger.debug("Lazy proxy id=%s is being generated elsewhere; not waiting", identifier)
            return path

        async with lock:
            if not path.exists():
                await self._generate(identifier, path)
        return path

    async def _generate(self, identifier: str, path: Path) -> None:
        target = self.mapping.get(identifier)
        if target is None:
            raise ConfigurationError(f"No lazy proxy target configured for {identifier!r}")
        code = self.generator.generate(identifier, target)
        await asyncio.to_thread(publish_atomically, path, code)
        logger.info("Generated lazy proxy id=%s target=%s path=%s", identifier, target, path)
