"""Proxy cache."""

from lazyloader.cache.resolver import ProxyCacheResolver, publish_atomically

__all__ = ["ProxyCacheResolver", "publish_atomically"]
