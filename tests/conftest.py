import importlib
import logging
import sys
import textwrap
from pathlib import Path

import pytest


@pytest.fixture
def make_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Write an importable module under tmp_path and return its dotted name."""
    source_root = tmp_path / "src"
    source_root.mkdir()
    monkeypatch.syspath_prepend(str(source_root))
    created: list[str] = []

    def _make(name: str, source: str) -> str:
        parts = name.split(".")
        directory = source_root
        for index, package in enumerate(parts[:-1]):
            directory = directory / package
            directory.mkdir(exist_ok=True)
            init = directory / "__init__.py"
            if not init.exists():
                init.write_text("", encoding="utf-8")
            created.append(".".join(parts[: index + 1]))
        (directory / f"{parts[-1]}.py").write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        created.append(name)
        importlib.invalidate_caches()
        return name

    yield _make

    for name in created:
        sys.modules.pop(name, None)


@pytest.fixture(autouse=True)
def _drop_generated_proxy_modules():
    yield
    for name in [name for name in sys.modules if name.startswith("lazy_proxies.") or name.startswith("test_proxies.")]:
        sys.modules.pop(name, None)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
