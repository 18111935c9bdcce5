"""Command-line entry point for inspecting and warming the proxy cache."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from lazyloader.analysis.classifier import classify
from lazyloader.analysis.declaration import load_declaration
from lazyloader.builders import BUILDERS
from lazyloader.config import Config
from lazyloader.context import LoaderContext, bootstrap
from lazyloader.errors import LazyLoaderError
from lazyloader.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _classification_label(target: str) -> str:
    try:
        return classify(load_declaration(target)).value
    except LazyLoaderError:
        return "missing"


def _cmd_list(context: LoaderContext, console: Console, _args: argparse.Namespace) -> int:
    table = Table(title="Lazy proxies")
    table.add_column("Identifier", style="cyan")
    table.add_column("Target")
    table.add_column("Classification")
    table.add_column("Cached", justify="center")
    for identifier, target in sorted(context.config.proxies.items()):
        cached = context.cache.cache_path(identifier).exists()
        table.add_row(identifier, target, _classification_label(target), "yes" if cached else "no")
    console.print(table)
    return 0


async def _warm(context: LoaderContext, identifiers: Sequence[str]) -> List[Path]:
    return list(await asyncio.gather(*(context.cache.ensure_cached(identifier) for identifier in identifiers)))


def _unknown(identifiers: Sequence[str], context: LoaderContext) -> List[str]:
    return [identifier for identifier in identifiers if identifier not in context.config.proxies]


def _cmd_warm(context: LoaderContext, console: Console, args: argparse.Namespace) -> int:
    identifiers = list(args.identifiers or sorted(context.config.proxies))
    missing = _unknown(identifiers, context)
    if missing:
        console.print(f"[red]✗[/red] Not in the proxy mapping: {', '.join(missing)}")
        return 1
    paths = asyncio.run(_warm(context, identifiers))
    for identifier, path in zip(identifiers, paths):
        console.print(f"[green]✓[/green] {identifier} -> {path}")
    return 0


def _cmd_show(context: LoaderContext, console: Console, args: argparse.Namespace) -> int:
    if _unknown([args.identifier], context):
        console.print(f"[red]✗[/red] Not in the proxy mapping: {args.identifier}")
        return 1
    path = asyncio.run(context.cache.ensure_cached(args.identifier))
    console.print(Syntax(path.read_text(encoding="utf-8"), "python", line_numbers=True))
    return 0


def _cmd_classify(_context: LoaderContext, console: Console, args: argparse.Namespace) -> int:
    classification = classify(load_declaration(args.target))
    builder = BUILDERS[classification]
    console.print(f"{args.target}: [bold]{classification.value}[/bold] -> {builder.__name__}")
    return 0


_COMMANDS = {
    "list": _cmd_list,
    "warm": _cmd_warm,
    "show": _cmd_show,
    "classify": _cmd_classify,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lazyloader")
    parser.add_argument("--config", type=Path, default=None, help="Path to the YAML configuration file.")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("list", help="List mapped proxies and their cache state.")
    warm = subparsers.add_parser("warm", help="Generate cache entries ahead of first use.")
    warm.add_argument("identifiers", nargs="*", help="Identifiers to warm (default: all).")
    show = subparsers.add_parser("show", help="Print the generated source for one proxy.")
    show.add_argument("identifier")
    classify_parser = subparsers.add_parser("classify", help="Classify a dotted target class path.")
    classify_parser.add_argument("target")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console()
    try:
        config = Config(args.config)
        configure_logging(config)
        context = bootstrap(config)
        return _COMMANDS[args.command](context, console, args)
    except KeyboardInterrupt:
        return 130
    except LazyLoaderError as exc:
        logger.exception("Command %s failed", args.command)
        console.print(f"[red]✗[/red] {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
