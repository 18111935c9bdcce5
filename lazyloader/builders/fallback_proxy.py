"""Builder for targets that cannot be proxied through inheritance."""

from __future__ import annotations

from lazyloader.builders.base import BaseLazyProxyBuilder


class FallbackLazyProxyBuilder(BaseLazyProxyBuilder):
    """Minimal stand-in with no structural relationship to the target.

    Used for final classes, runtime-provided interfaces, and nested
    interface or abstract hierarchies. Anything not forwarded explicitly
    reaches the real instance through the mixin's ``__getattr__``.
    """

    relationship = "none"
