"""Builder for proxies that implement a protocol."""

from __future__ import annotations

import ast
from typing import List

from lazyloader.builders.base import MIXIN_NAME, TARGET_ALIAS, BaseLazyProxyBuilder, name_expr


class InterfaceLazyProxyBuilder(BaseLazyProxyBuilder):
    """Proxy implementing a ``Protocol`` target.

    Protocol members carry no state of their own: inherited property stubs
    would answer with their placeholder bodies, so properties are forwarded
    explicitly alongside the methods.
    """

    relationship = "implements"
    forwards_properties = True

    def bases(self) -> List[ast.expr]:
        return [name_expr(MIXIN_NAME), name_expr(TARGET_ALIAS)]

    def describe(self, target: str) -> str:
        return f"Lazy proxy implementing {target}."
