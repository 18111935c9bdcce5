"""Process-wide loader context built once at startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from lazyloader.cache.resolver import ProxyCacheResolver
from lazyloader.config import Config
from lazyloader.generator import ProxyGenerator
from lazyloader.loader import LazyLoader, LoaderManager
from lazyloader.runtime.lazy_proxy import Container

logger = logging.getLogger(__name__)


@dataclass
class LoaderContext:
    """Everything a caller needs to look up lazy proxies.

    Build it with :func:`bootstrap` and pass it to whatever performs lookups.
    """

    config: Config
    cache: ProxyCacheResolver
    loader: LazyLoader
    manager: LoaderManager

    async def instantiate(self, identifier: str, container: Container) -> Any:
        """Load the proxy class for ``identifier`` and wrap ``container`` with it."""
        proxy_type = await self.manager.load_type(identifier)
        return proxy_type(container)


def bootstrap(config: Config) -> LoaderContext:
    namespace = config.cache.namespace
    cache = ProxyCacheResolver(
        config.proxies,
        cache_dir=config.cache.cache_dir,
        generator=ProxyGenerator(namespace=namespace),
        wait_for_generation=config.cache.wait_for_generation,
        dir_mode=config.cache.dir_mode,
    )
    loader = LazyLoader(config.proxies, cache, namespace=namespace)
    manager = LoaderManager([loader])
    logger.info(
        "Lazy loader ready proxies=%d cache_dir=%s namespace=%s",
        len(config.proxies),
        cache.cache_dir,
        namespace,
    )
    return LoaderContext(config=config, cache=cache, loader=loader, manager=manager)
