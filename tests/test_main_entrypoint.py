from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

from lazyloader import __main__ as cli

SERVICES = """
class Mailer:
    def send(self, to: str) -> str:
        return to
"""


@pytest.fixture
def config_file(tmp_path: Path, make_module) -> Path:
    make_module("cli_services", SERVICES)
    path = tmp_path / "config.yaml"
    path.write_text(
        "lazy_loader:\n"
        "  MailerService: cli_services.Mailer\n"
        "cache:\n"
        "  cache_dir: cache\n"
        "logging:\n"
        f"  log_file: {tmp_path / 'logs' / 'lazyloader.log'}\n",
        encoding="utf-8",
    )
    return path


def test_main_exits_130_on_keyboard_interrupt_without_traceback(tmp_path: Path) -> None:
    repo_root = Path(__file__).resolve().parents[1]
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"logging:\n  log_file: {tmp_path / 'cli.log'}\n", encoding="utf-8")
    script = (
        "import sys\n"
        "from lazyloader import __main__ as cli\n"
        "def _raise_interrupt(config):\n"
        "    raise KeyboardInterrupt()\n"
        "cli.bootstrap = _raise_interrupt\n"
        f"sys.exit(cli.main(['--config', {str(config_path)!r}, 'list']))\n"
    )

    process = subprocess.run(
        [sys.executable, "-c", script],
        cwd=repo_root,
        capture_output=True,
        text=True,
    )
    assert process.returncode == 130
    assert "Traceback" not in process.stderr


def test_list_shows_mapping_and_cache_state(config_file: Path, capsys) -> None:
    assert cli.main(["--config", str(config_file), "list"]) == 0

    output = capsys.readouterr().out
    assert "MailerService" in output
    assert "cli_services.Mailer" in output
    assert "plain_class" in output


def test_warm_generates_cache_entries(config_file: Path) -> None:
    assert cli.main(["--config", str(config_file), "warm"]) == 0

    assert (config_file.parent / "cache" / "MailerService.lazy").exists()
    log_text = (config_file.parent / "logs" / "lazyloader.log").read_text(encoding="utf-8")
    assert "Generated lazy proxy id=MailerService" in log_text


def test_warm_rejects_unknown_identifiers(config_file: Path, capsys) -> None:
    assert cli.main(["--config", str(config_file), "warm", "Nope"]) == 1

    assert "Not in the proxy mapping: Nope" in capsys.readouterr().out
    assert not (config_file.parent / "cache" / "Nope.lazy").exists()


def test_show_prints_generated_source(config_file: Path, capsys) -> None:
    assert cli.main(["--config", str(config_file), "show", "MailerService"]) == 0

    assert "LazyProxyMixin" in capsys.readouterr().out


def test_classify_reports_builder(config_file: Path, capsys) -> None:
    assert cli.main(["--config", str(config_file), "classify", "builtins.bool"]) == 0

    output = capsys.readouterr().out
    assert "final" in output
    assert "FallbackLazyProxyBuilder" in output


def test_classify_missing_target_fails(config_file: Path, capsys) -> None:
    assert cli.main(["--config", str(config_file), "classify", "missing_pkg_xyz.Thing"]) == 1

    assert "missing_pkg_xyz.Thing" in capsys.readouterr().out
