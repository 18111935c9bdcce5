"""Locate and parse the declaration of a proxy target class."""

from __future__ import annotations

import ast
import functools
import inspect
import logging
import sys
from dataclasses import dataclass, replace
from typing import List, Optional

from lazyloader.analysis.transformer import (
    MethodKind,
    MethodSignature,
    ParameterDescriptor,
    ParameterKind,
    extract_from_tree,
    find_class,
    parse_module,
)
from lazyloader.errors import TargetNotFoundError
from lazyloader.runtime.lazy_proxy import resolve_dotted

logger = logging.getLogger(__name__)


def _read_source(module: object) -> str:
    if module is None:
        return ""
    try:
        return inspect.getsource(module)  # type: ignore[arg-type]
    except (OSError, TypeError):
        # Builtin and extension modules have no retrievable source.
        return ""


_PASSTHROUGH = (
    ParameterDescriptor("args", ParameterKind.VAR_POSITIONAL),
    ParameterDescriptor("kwargs", ParameterKind.VAR_KEYWORD),
)


def _runtime_signature(runtime_type: type, name: str) -> MethodSignature:
    member = inspect.getattr_static(runtime_type, name, None)
    if isinstance(member, (property, functools.cached_property)):
        return MethodSignature(name=name, kind=MethodKind.PROPERTY, is_abstract=True)
    kind = MethodKind.INSTANCE
    if isinstance(member, staticmethod):
        kind = MethodKind.STATIC
    elif isinstance(member, classmethod):
        kind = MethodKind.CLASS
    function = getattr(member, "__func__", member)
    return MethodSignature(
        name=name,
        parameters=_PASSTHROUGH,
        kind=kind,
        is_async=inspect.iscoroutinefunction(function),
        is_abstract=True,
    )


@dataclass(frozen=True)
class TargetDeclaration:
    """A target class together with its parsed declaration, when available."""

    target: str
    runtime_type: type
    module: str
    qualname: str
    package: Optional[str] = None
    source: str = ""
    tree: Optional[ast.Module] = None
    node: Optional[ast.ClassDef] = None

    @property
    def has_source(self) -> bool:
        return self.node is not None

    @classmethod
    def from_type(cls, runtime_type: type, target: Optional[str] = None) -> "TargetDeclaration":
        module_name = runtime_type.__module__
        qualname = runtime_type.__qualname__
        module = sys.modules.get(module_name)
        source = _read_source(module)
        tree = parse_module(source)
        node = find_class(tree, qualname)
        if source and node is None:
            logger.debug("Class %s not found in source of %s", qualname, module_name)
        return cls(
            target=target or f"{module_name}.{qualname}",
            runtime_type=runtime_type,
            module=module_name,
            qualname=qualname,
            package=getattr(module, "__package__", None),
            source=source,
            tree=tree,
            node=node,
        )

    def public_operations(self) -> List[MethodSignature]:
        """Public operations extracted from the already-parsed tree."""
        return extract_from_tree(self.tree, self.qualname, module=self.module, package=self.package)

    def proxy_operations(self) -> List[MethodSignature]:
        """Public operations plus every member still abstract at runtime.

        Abstract members missing from the declaration (private, inherited, or
        declared without source) get pass-through signatures, so a proxy that
        subclasses the target can always be instantiated.
        """
        abstract = set(getattr(self.runtime_type, "__abstractmethods__", ()))
        operations = [
            replace(item, is_abstract=True) if item.name in abstract else item for item in self.public_operations()
        ]
        covered = {item.name for item in operations}
        operations.extend(_runtime_signature(self.runtime_type, name) for name in sorted(abstract - covered))
        return operations


def load_declaration(target: str) -> TargetDeclaration:
    """Import ``target`` and build its declaration.

    Raises:
        TargetNotFoundError: the target cannot be imported or is not a class.
    """
    try:
        runtime_type = resolve_dotted(target)
    except (ImportError, AttributeError, ValueError) as exc:
        raise TargetNotFoundError(f"Lazy proxy target {target!r} cannot be loaded: {exc}") from exc
    if not isinstance(runtime_type, type):
        raise TargetNotFoundError(f"Lazy proxy target {target!r} is not a class")
    return TargetDeclaration.from_type(runtime_type, target=target)
