"""Parse target declarations and extract their public operations."""

from __future__ import annotations

import ast
import copy
import importlib.util
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

_PROPERTY_DECORATORS = {
    "property",
    "cached_property",
    "functools.cached_property",
    "abstractproperty",
    "abc.abstractproperty",
}
_OVERLOAD_DECORATORS = {"overload", "typing.overload", "typing_extensions.overload"}
_ABSTRACT_DECORATORS = {"abstractmethod", "abc.abstractmethod", "abstractproperty", "abc.abstractproperty"}
_STATIC_DECORATORS = {"staticmethod", "builtins.staticmethod"}
_CLASS_DECORATORS = {"classmethod", "builtins.classmethod"}
_TRY_NODES = (ast.Try, getattr(ast, "TryStar", ast.Try))


class ParameterKind(str, Enum):
    """How a parameter binds at the call site."""

    POSITIONAL_ONLY = "positional_only"
    POSITIONAL_OR_KEYWORD = "positional_or_keyword"
    VAR_POSITIONAL = "var_positional"
    KEYWORD_ONLY = "keyword_only"
    VAR_KEYWORD = "var_keyword"


class MethodKind(str, Enum):
    """Receiver flavour of an operation."""

    INSTANCE = "instance"
    STATIC = "static"
    CLASS = "class"
    PROPERTY = "property"


@dataclass(frozen=True)
class ParameterDescriptor:
    """One parameter with its annotation and default as resolved source text."""

    name: str
    kind: ParameterKind = ParameterKind.POSITIONAL_OR_KEYWORD
    annotation: Optional[str] = None
    default: Optional[str] = None


@dataclass(frozen=True)
class MethodSignature:
    """Public operation of a target class, receiver parameter removed."""

    name: str
    parameters: Tuple[ParameterDescriptor, ...] = ()
    returns: Optional[str] = None
    kind: MethodKind = MethodKind.INSTANCE
    is_async: bool = False
    is_abstract: bool = False
    runtime_imports: Tuple[str, ...] = ()
    typing_imports: Tuple[str, ...] = ()

    @property
    def is_static(self) -> bool:
        return self.kind in (MethodKind.STATIC, MethodKind.CLASS)


def dotted_name(node: Optional[ast.expr]) -> str:
    """Return ``a.b.c`` for a Name/Attribute chain, ignoring calls and subscripts."""
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Subscript):
        node = node.value
    parts: List[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return ""
    parts.append(node.id)
    return ".".join(reversed(parts))


def is_public(name: str) -> bool:
    return bool(name) and not name.startswith("_")


def iter_statements(body: Sequence[ast.stmt]) -> Iterator[ast.stmt]:
    """Yield statements, descending into ``if``/``try``/``with`` blocks."""
    for node in body:
        yield node
        if isinstance(node, ast.If):
            yield from iter_statements(node.body)
            yield from iter_statements(node.orelse)
        elif isinstance(node, (ast.With, ast.AsyncWith)):
            yield from iter_statements(node.body)
        elif isinstance(node, _TRY_NODES):
            yield from iter_statements(node.body)
            for handler in node.handlers:
                yield from iter_statements(handler.body)
            yield from iter_statements(node.orelse)
            yield from iter_statements(node.finalbody)


def parse_module(source: str) -> Optional[ast.Module]:
    """Parse module text; malformed or empty text yields ``None``."""
    if not source or not source.strip():
        return None
    try:
        return ast.parse(source)
    except (SyntaxError, ValueError) as exc:
        logger.debug("Unable to parse declaration source: %s", exc)
        return None


def find_class(tree: Optional[ast.Module], qualname: str) -> Optional[ast.ClassDef]:
    """Locate a (possibly nested) class by its dotted qualified name."""
    if tree is None:
        return None
    body: Sequence[ast.stmt] = tree.body
    found: Optional[ast.ClassDef] = None
    for part in qualname.split("."):
        found = next(
            (node for node in iter_statements(body) if isinstance(node, ast.ClassDef) and node.name == part),
            None,
        )
        if found is None:
            return None
        body = found.body
    return found


def _dotted_expr(qualified: str) -> ast.expr:
    head, *rest = qualified.split(".")
    node: ast.expr = ast.Name(id=head, ctx=ast.Load())
    for attribute in rest:
        node = ast.Attribute(value=node, attr=attribute, ctx=ast.Load())
    return node


class _Qualifier(ast.NodeTransformer):
    def __init__(self, scope: Dict[str, Tuple[str, Tuple[str, ...]]]) -> None:
        self.scope = scope
        self.imports: Set[str] = set()

    def visit_Name(self, node: ast.Name) -> ast.expr:
        entry = self.scope.get(node.id)
        if entry is None or not isinstance(node.ctx, ast.Load):
            return node
        qualified, imports = entry
        self.imports.update(imports)
        return ast.copy_location(_dotted_expr(qualified), node)


class NameResolver:
    """Map names visible in a module to their fully-qualified dotted form."""

    def __init__(self, module: str, package: Optional[str] = None) -> None:
        self.module = module
        self.package = package if package is not None else module.rpartition(".")[0]
        self._scope: Dict[str, Tuple[str, Tuple[str, ...]]] = {}

    @classmethod
    def from_tree(cls, tree: ast.Module, module: str, package: Optional[str] = None) -> "NameResolver":
        resolver = cls(module, package)
        resolver.collect(tree.body)
        return resolver

    def _bind_local(self, name: str, qualified: Optional[str] = None) -> None:
        self._scope[name] = (qualified or f"{self.module}.{name}", (self.module,))

    def _absolute(self, node: ast.ImportFrom) -> str:
        if not node.level:
            return node.module or ""
        relative = "." * node.level + (node.module or "")
        try:
            return importlib.util.resolve_name(relative, self.package)
        except (ImportError, ValueError):
            return node.module or ""

    def collect(self, statements: Sequence[ast.stmt]) -> None:
        """Record bindings made by module-level statements, in order."""
        for node in iter_statements(statements):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        self._scope[alias.asname] = (alias.name, (alias.name,))
                        continue
                    root = alias.name.partition(".")[0]
                    _, known = self._scope.get(root, (root, ()))
                    self._scope[root] = (root, tuple(dict.fromkeys((*known, alias.name))))
            elif isinstance(node, ast.ImportFrom):
                base = self._absolute(node)
                if not base:
                    continue
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    self._scope[alias.asname or alias.name] = (f"{base}.{alias.name}", (base,))
            elif isinstance(node, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
                self._bind_local(node.name)
            elif isinstance(node, ast.Assign):
                for target in node.targets:
                    if isinstance(target, ast.Name):
                        self._bind_local(target.id)
            elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
                self._bind_local(node.target.id)

    def with_class_scope(self, class_def: ast.ClassDef, qualname: str) -> "NameResolver":
        """Copy of this resolver that also sees classes nested in ``class_def``."""
        scoped = NameResolver(self.module, self.package)
        scoped._scope = dict(self._scope)
        for node in class_def.body:
            if isinstance(node, ast.ClassDef):
                scoped._bind_local(node.name, f"{self.module}.{qualname}.{node.name}")
        return scoped

    def resolve(self, expr: Optional[ast.expr], *, annotation: bool = False) -> Tuple[Optional[str], Set[str]]:
        """Return the qualified source text of ``expr`` and the modules it needs."""
        if expr is None:
            return None, set()
        node = copy.deepcopy(expr)
        if annotation and isinstance(node, ast.Constant) and isinstance(node.value, str):
            # String forward reference.
            try:
                node = ast.parse(node.value, mode="eval").body
            except SyntaxError:
                return ast.unparse(expr), set()
        qualifier = _Qualifier(self._scope)
        node = qualifier.visit(node)
        return ast.unparse(node), qualifier.imports


def _decorator_names(node: ast.FunctionDef | ast.AsyncFunctionDef) -> List[str]:
    return [dotted_name(decorator) for decorator in node.decorator_list]


def _method_kind(decorators: Sequence[str]) -> Optional[MethodKind]:
    """Classify by decorators; ``None`` means the member is not an operation."""
    if any(name in _OVERLOAD_DECORATORS for name in decorators):
        return None
    if any(name.endswith((".setter", ".deleter", ".getter")) for name in decorators):
        return None
    if any(name in _PROPERTY_DECORATORS for name in decorators):
        return MethodKind.PROPERTY
    if any(name in _STATIC_DECORATORS for name in decorators):
        return MethodKind.STATIC
    if any(name in _CLASS_DECORATORS for name in decorators):
        return MethodKind.CLASS
    return MethodKind.INSTANCE


def _signature(
    node: ast.FunctionDef | ast.AsyncFunctionDef,
    kind: MethodKind,
    resolver: NameResolver,
) -> MethodSignature:
    runtime_imports: Set[str] = set()
    typing_imports: Set[str] = set()

    def annotation_of(expr: Optional[ast.expr]) -> Optional[str]:
        text, imports = resolver.resolve(expr, annotation=True)
        typing_imports.update(imports)
        return text

    def default_of(expr: Optional[ast.expr]) -> Optional[str]:
        text, imports = resolver.resolve(expr)
        runtime_imports.update(imports)
        return text

    arguments = node.args
    positional = [*arguments.posonlyargs, *arguments.args]
    first_default = len(positional) - len(arguments.defaults)
    parameters: List[ParameterDescriptor] = []
    for index, arg in enumerate(positional):
        parameters.append(
            ParameterDescriptor(
                name=arg.arg,
                kind=(
                    ParameterKind.POSITIONAL_ONLY
                    if index < len(arguments.posonlyargs)
                    else ParameterKind.POSITIONAL_OR_KEYWORD
                ),
                annotation=annotation_of(arg.annotation),
                default=default_of(arguments.defaults[index - first_default]) if index >= first_default else None,
            )
        )
    if kind is not MethodKind.STATIC and parameters:
        parameters.pop(0)

    if arguments.vararg is not None:
        parameters.append(
            ParameterDescriptor(
                name=arguments.vararg.arg,
                kind=ParameterKind.VAR_POSITIONAL,
                annotation=annotation_of(arguments.vararg.annotation),
            )
        )
    for arg, default in zip(arguments.kwonlyargs, arguments.kw_defaults):
        parameters.append(
            ParameterDescriptor(
                name=arg.arg,
                kind=ParameterKind.KEYWORD_ONLY,
                annotation=annotation_of(arg.annotation),
                default=default_of(default),
            )
        )
    if arguments.kwarg is not None:
        parameters.append(
            ParameterDescriptor(
                name=arguments.kwarg.arg,
                kind=ParameterKind.VAR_KEYWORD,
                annotation=annotation_of(arguments.kwarg.annotation),
            )
        )

    decorators = _decorator_names(node)
    return MethodSignature(
        name=node.name,
        parameters=tuple(parameters),
        returns=annotation_of(node.returns),
        kind=kind,
        is_async=isinstance(node, ast.AsyncFunctionDef),
        is_abstract=any(name in _ABSTRACT_DECORATORS for name in decorators),
        runtime_imports=tuple(sorted(runtime_imports)),
        typing_imports=tuple(sorted(typing_imports)),
    )


def collect_public_operations(class_def: ast.ClassDef, resolver: NameResolver) -> List[MethodSignature]:
    """Walk a class body and collect its public operations in declaration order.

    A name redefined later in the body keeps its first position but takes the
    later definition, matching what the class object ends up holding.
    """
    operations: Dict[str, MethodSignature] = {}
    for node in class_def.body:
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        if not is_public(node.name):
            continue
        kind = _method_kind(_decorator_names(node))
        if kind is None:
            continue
        operations[node.name] = _signature(node, kind, resolver)
    return list(operations.values())


def extract_from_tree(
    tree: Optional[ast.Module],
    class_name: str,
    *,
    module: str,
    package: Optional[str] = None,
) -> List[MethodSignature]:
    class_def = find_class(tree, class_name)
    if tree is None or class_def is None:
        logger.debug("No declaration for %s in %s; no operations extracted", class_name, module)
        return []
    resolver = NameResolver.from_tree(tree, module, package).with_class_scope(class_def, class_name)
    return collect_public_operations(class_def, resolver)


def extract_public_operations(
    source: str,
    class_name: str,
    *,
    module: str,
    package: Optional[str] = None,
) -> List[MethodSignature]:
    """Parse ``source`` and return the public operations of ``class_name``.

    Names used in annotations and defaults are rewritten to fully-qualified
    form so the signatures stay valid outside the defining module. Malformed
    or empty source yields an empty list.
    """
    return extract_from_tree(parse_module(source), class_name, module=module, package=package)
