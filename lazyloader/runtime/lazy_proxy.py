"""Runtime support shared by every generated lazy proxy."""

from __future__ import annotations

import builtins
import importlib
import threading
from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class Container(Protocol):
    """Service container able to build the real instance behind a proxy."""

    def get(self, identifier: str) -> Any: ...


def resolve_dotted(path: str) -> Any:
    """Import the longest module prefix of ``path`` and walk the remaining attributes."""
    parts = str(path or "").strip().split(".")
    if not all(parts):
        raise ValueError(f"invalid dotted path: {path!r}")

    for index in range(len(parts), 0, -1):
        module_name = ".".join(parts[:index])
        try:
            value = importlib.import_module(module_name)
        except ModuleNotFoundError as exc:
            # Only swallow the miss for this prefix, not a broken import inside it.
            if exc.name is None or not (module_name == exc.name or module_name.startswith(exc.name + ".")):
                raise
            continue
        for attribute in parts[index:]:
            value = getattr(value, attribute)
        return value

    if len(parts) == 1 and hasattr(builtins, parts[0]):
        return getattr(builtins, parts[0])
    raise ModuleNotFoundError(f"No module found for {path!r}", name=parts[0])


class LazyProxyMixin:
    """Thread-safe mixin that resolves the proxied instance on first use.

    Generated proxies list this class first among their bases, so its
    ``__init__`` replaces the target's and nothing expensive is built until a
    forwarded operation runs. Attribute reads the proxy class cannot answer,
    and all attribute writes, go to the real instance.
    """

    __lazy_identifier__: str = ""
    __lazy_target__: str = ""
    __lazy_relationship__: str = "none"

    def __init__(self, container: Container) -> None:
        object.__setattr__(self, "_lazy_container", container)
        object.__setattr__(self, "_lazy_instance", None)
        object.__setattr__(self, "_lazy_lock", threading.Lock())

    def _lazy_proxy_peek(self) -> Optional[Any]:
        return self.__dict__.get("_lazy_instance")

    def _lazy_proxy_instance(self) -> Any:
        instance = self.__dict__.get("_lazy_instance")
        if instance is not None:
            return instance
        with self.__dict__["_lazy_lock"]:
            if self.__dict__["_lazy_instance"] is None:
                resolved = self.__dict__["_lazy_container"].get(type(self).__lazy_target__)
                object.__setattr__(self, "_lazy_instance", resolved)
        return self.__dict__["_lazy_instance"]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_lazy_") or "_lazy_container" not in self.__dict__:
            raise AttributeError(name)
        return getattr(self._lazy_proxy_instance(), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._lazy_proxy_instance(), name, value)

    def __repr__(self) -> str:
        state = "resolved" if self._lazy_proxy_peek() is not None else "pending"
        return f"<lazy proxy {type(self).__lazy_identifier__} -> {type(self).__lazy_target__} ({state})>"


def is_lazy_proxy(value: Any) -> bool:
    return isinstance(value, LazyProxyMixin)
