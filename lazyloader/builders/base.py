"""Shared proxy-module assembly for all builder strategies."""

from __future__ import annotations

import ast
from typing import ClassVar, Dict, Iterable, List, Optional, Sequence

from lazyloader.analysis.transformer import MethodKind, MethodSignature, ParameterDescriptor, ParameterKind
from lazyloader.naming import DEFAULT_PROXY_NAMESPACE, proxy_class_name, proxy_module_name

RUNTIME_MODULE = "lazyloader.runtime.lazy_proxy"
MIXIN_NAME = "LazyProxyMixin"
TARGET_ALIAS = "_LazyTarget"
INSTANCE_ACCESSOR = "_lazy_proxy_instance"


def _expr(source: Optional[str]) -> Optional[ast.expr]:
    if source is None:
        return None
    return ast.parse(source, mode="eval").body


def name_expr(identifier: str) -> ast.Name:
    return ast.Name(id=identifier, ctx=ast.Load())


def _assign(name: str, value: str) -> ast.stmt:
    return _skeleton(f"{name} = {value!r}\n")


def _docstring(text: str) -> ast.stmt:
    return ast.Expr(value=ast.Constant(value=text))


def _skeleton(source: str) -> ast.stmt:
    # Parsing a stub keeps every node field the running interpreter expects.
    return ast.parse(source).body[0]


class BaseLazyProxyBuilder:
    """Build the source of a lazy proxy module.

    Subclasses choose the proxy's relationship to its target through
    ``relationship`` and ``bases()``; the forwarding bodies are shared.
    """

    relationship: ClassVar[str] = "none"
    forwards_properties: ClassVar[bool] = False

    def __init__(self, namespace: str = DEFAULT_PROXY_NAMESPACE) -> None:
        self.namespace = namespace

    def bases(self) -> List[ast.expr]:
        return [name_expr(MIXIN_NAME)]

    def describe(self, target: str) -> str:
        return f"Lazy stand-in for {target}."

    def build(self, identifier: str, target: str, signatures: Sequence[MethodSignature]) -> str:
        """Return the complete proxy module source for ``identifier``."""
        module_name = proxy_module_name(self.namespace, identifier)
        class_def = _skeleton(f"class {proxy_class_name(identifier)}:\n    pass\n")
        assert isinstance(class_def, ast.ClassDef)
        class_def.bases = self.bases()
        class_def.body = [
            _docstring(self.describe(target)),
            _assign("__module__", module_name),
            _assign("__lazy_identifier__", identifier),
            _assign("__lazy_target__", target),
            _assign("__lazy_relationship__", self.relationship),
        ]
        for signature in signatures:
            class_def.body.extend(self.forward(signature))

        module = ast.Module(
            body=[
                _docstring(f"Lazy proxy module {module_name}.\n\nGenerated for {target}; do not edit.\n"),
                *self._imports(signatures),
                _skeleton(f"{TARGET_ALIAS} = resolve_dotted({target!r})\n"),
                class_def,
            ],
            type_ignores=[],
        )
        return ast.unparse(ast.fix_missing_locations(module)) + "\n"

    def _imports(self, signatures: Sequence[MethodSignature]) -> List[ast.stmt]:
        runtime = sorted({name for item in signatures for name in item.runtime_imports} - {"builtins"})
        typing_only = sorted(
            {name for item in signatures for name in item.typing_imports} - set(runtime) - {"builtins"}
        )
        statements: List[ast.stmt] = [
            _skeleton("from __future__ import annotations\n"),
            _skeleton(f"from {RUNTIME_MODULE} import {MIXIN_NAME}, resolve_dotted\n"),
        ]
        statements.extend(_skeleton(f"import {name}\n") for name in runtime)
        if typing_only:
            guard = _skeleton("if TYPE_CHECKING:\n    pass\n")
            assert isinstance(guard, ast.If)
            guard.body = [_skeleton(f"import {name}\n") for name in typing_only]
            statements.append(_skeleton("from typing import TYPE_CHECKING\n"))
            statements.append(guard)
        return statements

    def forward(self, signature: MethodSignature) -> List[ast.stmt]:
        """Forwarding members for one signature."""
        if signature.kind is MethodKind.PROPERTY:
            return self._forward_property(signature) if self.forwards_property(signature) else []
        return [self._forward_call(signature)]

    def forwards_property(self, signature: MethodSignature) -> bool:
        # Abstract properties must be overridden or the proxy stays abstract.
        return self.forwards_properties or signature.is_abstract

    def _receiver(self, signature: MethodSignature) -> ast.expr:
        if signature.is_static:
            return name_expr(TARGET_ALIAS)
        return ast.Call(
            func=ast.Attribute(value=name_expr("self"), attr=INSTANCE_ACCESSOR, ctx=ast.Load()),
            args=[],
            keywords=[],
        )

    def _forward_call(self, signature: MethodSignature) -> ast.stmt:
        prefix = "async " if signature.is_async else ""
        function = _skeleton(f"{prefix}def {signature.name}():\n    pass\n")
        assert isinstance(function, (ast.FunctionDef, ast.AsyncFunctionDef))
        function.args = self._arguments(signature)
        function.returns = _expr(signature.returns)
        if signature.kind is MethodKind.STATIC:
            function.decorator_list = [name_expr("staticmethod")]
        elif signature.kind is MethodKind.CLASS:
            function.decorator_list = [name_expr("classmethod")]

        args: List[ast.expr] = []
        keywords: List[ast.keyword] = []
        for parameter in signature.parameters:
            if parameter.kind in (ParameterKind.POSITIONAL_ONLY, ParameterKind.POSITIONAL_OR_KEYWORD):
                args.append(name_expr(parameter.name))
            elif parameter.kind is ParameterKind.VAR_POSITIONAL:
                args.append(ast.Starred(value=name_expr(parameter.name), ctx=ast.Load()))
            elif parameter.kind is ParameterKind.KEYWORD_ONLY:
                keywords.append(ast.keyword(arg=parameter.name, value=name_expr(parameter.name)))
            else:
                keywords.append(ast.keyword(arg=None, value=name_expr(parameter.name)))

        call: ast.expr = ast.Call(
            func=ast.Attribute(value=self._receiver(signature), attr=signature.name, ctx=ast.Load()),
            args=args,
            keywords=keywords,
        )
        if signature.is_async:
            call = ast.Await(value=call)
        function.body = [ast.Return(value=call)]
        return function

    def _forward_property(self, signature: MethodSignature) -> List[ast.stmt]:
        getter = _skeleton(
            f"@property\ndef {signature.name}(self):\n"
            f"    return self.{INSTANCE_ACCESSOR}().{signature.name}\n"
        )
        assert isinstance(getter, ast.FunctionDef)
        getter.returns = _expr(signature.returns)
        setter = _skeleton(
            f"@{signature.name}.setter\ndef {signature.name}(self, value):\n"
            f"    setattr(self.{INSTANCE_ACCESSOR}(), {signature.name!r}, value)\n"
        )
        return [getter, setter]

    def _arguments(self, signature: MethodSignature) -> ast.arguments:
        by_kind: Dict[ParameterKind, List[ParameterDescriptor]] = {kind: [] for kind in ParameterKind}
        for parameter in signature.parameters:
            by_kind[parameter.kind].append(parameter)

        receiver: List[ast.arg] = []
        if signature.kind is MethodKind.CLASS:
            receiver = [ast.arg(arg="cls", annotation=None)]
        elif signature.kind is not MethodKind.STATIC:
            receiver = [ast.arg(arg="self", annotation=None)]

        def to_args(parameters: Iterable[ParameterDescriptor]) -> List[ast.arg]:
            return [ast.arg(arg=item.name, annotation=_expr(item.annotation)) for item in parameters]

        positional = [*by_kind[ParameterKind.POSITIONAL_ONLY], *by_kind[ParameterKind.POSITIONAL_OR_KEYWORD]]
        posonly = to_args(by_kind[ParameterKind.POSITIONAL_ONLY])
        regular = to_args(by_kind[ParameterKind.POSITIONAL_OR_KEYWORD])
        if posonly:
            posonly = [*receiver, *posonly]
        else:
            regular = [*receiver, *regular]

        variadic = by_kind[ParameterKind.VAR_POSITIONAL]
        keyword_variadic = by_kind[ParameterKind.VAR_KEYWORD]
        keyword_only = by_kind[ParameterKind.KEYWORD_ONLY]
        return ast.arguments(
            posonlyargs=posonly,
            args=regular,
            vararg=to_args(variadic)[0] if variadic else None,
            kwonlyargs=to_args(keyword_only),
            kw_defaults=[_expr(item.default) for item in keyword_only],
            kwarg=to_args(keyword_variadic)[0] if keyword_variadic else None,
            defaults=[_expr(item.default) for item in positional if item.default is not None],
        )
