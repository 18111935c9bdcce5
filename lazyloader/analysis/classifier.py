"""Structural classification of proxy targets."""

from __future__ import annotations

import abc
import ast
import inspect
import typing
from enum import Enum
from typing import FrozenSet, List, Optional

from lazyloader.analysis.declaration import TargetDeclaration
from lazyloader.analysis.transformer import dotted_name

_FINAL_DECORATORS = {"final", "typing.final", "typing_extensions.final"}
_PROTOCOL_BASES = {"Protocol", "typing.Protocol", "typing_extensions.Protocol"}
_NEUTRAL_BASES = _PROTOCOL_BASES | {"Generic", "typing.Generic", "object", "builtins.object"}
_ABC_BASES = {"ABC", "abc.ABC"}
_ABC_METACLASSES = {"ABCMeta", "abc.ABCMeta"}
_ABSTRACT_DECORATORS = {
    "abstractmethod",
    "abc.abstractmethod",
    "abstractproperty",
    "abc.abstractproperty",
}
# Py_TPFLAGS_BASETYPE: cleared on types that refuse subclassing, e.g. bool.
_TPFLAGS_BASETYPE = 1 << 10
_SKIPPED_PARENTS = (object, abc.ABC, typing.Generic, typing.Protocol)


class TargetClassification(str, Enum):
    """Structural category of a target class."""

    FINAL = "final"
    INTERNAL_INTERFACE = "internal_interface"
    NESTED_INTERFACE = "nested_interface"
    NESTED_ABSTRACT = "nested_abstract"
    PLAIN_INTERFACE = "plain_interface"
    PLAIN_CLASS = "plain_class"

    @property
    def is_unsupported(self) -> bool:
        return self in UNSUPPORTED_CLASSIFICATIONS


UNSUPPORTED_CLASSIFICATIONS: FrozenSet[TargetClassification] = frozenset(
    {
        TargetClassification.FINAL,
        TargetClassification.INTERNAL_INTERFACE,
        TargetClassification.NESTED_INTERFACE,
        TargetClassification.NESTED_ABSTRACT,
    }
)


def _base_names(node: ast.ClassDef) -> List[str]:
    return [dotted_name(base) for base in node.bases]


def is_final(declaration: TargetDeclaration) -> bool:
    node = declaration.node
    if node is not None and any(dotted_name(item) in _FINAL_DECORATORS for item in node.decorator_list):
        return True
    runtime_type = declaration.runtime_type
    if getattr(runtime_type, "__final__", False):
        return True
    return not runtime_type.__flags__ & _TPFLAGS_BASETYPE


def is_interface(node: ast.ClassDef) -> bool:
    return any(name in _PROTOCOL_BASES for name in _base_names(node))


def extended_interfaces(node: ast.ClassDef) -> List[str]:
    """Bases of a protocol other than ``Protocol``/``Generic`` themselves."""
    return [name for name in _base_names(node) if name not in _NEUTRAL_BASES]


def is_abstract(node: ast.ClassDef) -> bool:
    """True for ABC-style abstract classes; protocols do not count."""
    if is_interface(node):
        return False
    if any(name in _ABC_BASES for name in _base_names(node)):
        return True
    if any(keyword.arg == "metaclass" and dotted_name(keyword.value) in _ABC_METACLASSES for keyword in node.keywords):
        return True
    for member in node.body:
        if isinstance(member, (ast.FunctionDef, ast.AsyncFunctionDef)) and any(
            dotted_name(item) in _ABSTRACT_DECORATORS for item in member.decorator_list
        ):
            return True
    return False


def _runtime_is_interface(runtime_type: type) -> bool:
    return bool(getattr(runtime_type, "_is_protocol", False)) or inspect.isabstract(runtime_type)


def _parent_type(runtime_type: type) -> Optional[type]:
    for base in runtime_type.__bases__:
        if base in _SKIPPED_PARENTS:
            continue
        return base
    return None


def _parent_is_abstract(declaration: TargetDeclaration) -> bool:
    parent = _parent_type(declaration.runtime_type)
    if parent is None:
        return False
    parent_declaration = TargetDeclaration.from_type(parent)
    if parent_declaration.node is None:
        return inspect.isabstract(parent) and not getattr(parent, "_is_protocol", False)
    return is_abstract(parent_declaration.node)


def classify(declaration: TargetDeclaration) -> TargetClassification:
    """Return the structural category of ``declaration``; first matching rule wins."""
    if is_final(declaration):
        return TargetClassification.FINAL

    node = declaration.node
    if node is None:
        if _runtime_is_interface(declaration.runtime_type):
            return TargetClassification.INTERNAL_INTERFACE
        return TargetClassification.PLAIN_CLASS

    if is_interface(node) and extended_interfaces(node):
        return TargetClassification.NESTED_INTERFACE
    if is_abstract(node) and _parent_is_abstract(declaration):
        return TargetClassification.NESTED_ABSTRACT
    if is_interface(node):
        return TargetClassification.PLAIN_INTERFACE
    return TargetClassification.PLAIN_CLASS
