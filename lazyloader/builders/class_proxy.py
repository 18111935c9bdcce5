"""Builder for proxies that extend a concrete target class."""

from __future__ import annotations

import ast
from typing import List

from lazyloader.builders.base import MIXIN_NAME, TARGET_ALIAS, BaseLazyProxyBuilder, name_expr


class ClassLazyProxyBuilder(BaseLazyProxyBuilder):
    """Proxy subclasses the target; the mixin comes first so the target's ``__init__`` never runs.

    Concrete properties are inherited and run against the proxy, reading
    instance state through the mixin. Abstract properties and methods are
    forwarded so the proxy can be instantiated.

    Class-level attributes of the target (``retries = 3``) are found on the
    proxy class itself, so reads return the class default even when the real
    instance has shadowed it. Only names missing from the proxy's MRO fall
    through to the real instance. Writes always go to the real instance.
    """

    relationship = "extends"

    def bases(self) -> List[ast.expr]:
        return [name_expr(MIXIN_NAME), name_expr(TARGET_ALIAS)]

    def describe(self, target: str) -> str:
        return f"Lazy proxy extending {target}."
