"""Deterministic names derived from proxy identifiers."""

from __future__ import annotations

import hashlib
import keyword
import re

DEFAULT_PROXY_NAMESPACE = "lazy_proxies"
CACHE_SUFFIX = ".lazy"

_SEPARATORS = re.compile(r"[./\\]+")
_NON_IDENTIFIER = re.compile(r"\W")


def _as_identifier(raw: str) -> str:
    name = _NON_IDENTIFIER.sub("_", raw)
    if not name or name[0].isdigit() or keyword.iskeyword(name):
        name = f"_{name}"
    return name


def proxy_stem(identifier: str) -> str:
    """File stem for an identifier: path separators collapse to underscores."""
    raw = str(identifier or "").strip()
    stem = _SEPARATORS.sub("_", raw).strip("_")
    if not stem:
        raise ValueError(f"invalid proxy identifier: {identifier!r}")
    return stem


def proxy_class_name(identifier: str) -> str:
    """Class name for the proxy: the last segment of the identifier."""
    segments = [part for part in _SEPARATORS.split(str(identifier or "").strip()) if part]
    if not segments:
        raise ValueError(f"invalid proxy identifier: {identifier!r}")
    return _as_identifier(segments[-1])


def proxy_module_name(namespace: str, identifier: str) -> str:
    """Fully-qualified module name the proxy is loaded under.

    Stems that are not valid identifiers get a digest suffix, so two
    identifiers with distinct cache files never share a module name.
    """
    stem = proxy_stem(identifier)
    name = _as_identifier(stem)
    if name != stem:
        name = f"{name}_{hashlib.md5(stem.encode('utf-8')).hexdigest()[:8]}"
    return f"{namespace}.{name}"
