"""Command line interface printing and exporting column views."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable, Optional

from tabulate import tabulate

from .capture import CaptureResult, capture_view
from .config import AppConfig, load_config
from .errors import ColumnViewError
from .io import load_outline
from .outline import Node, Outline
from .reporting import export_capture
from .session import ViewSession
from .summaries import SummaryRegistry
from .surface import MemorySurface

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Show an outline as a table of property columns")
    parser.add_argument("outline", type=Path, help="Outline file (YAML, CSV or XLSX)")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration")
    parser.add_argument("--format", dest="columns", help="Column format, e.g. '%%25ITEM %%EFFORT{:}'")
    parser.add_argument("--anchor", help="Heading of the entry whose tree should be shown")
    parser.add_argument("--max-level", type=int, help="Hide entries deeper than this level")
    parser.add_argument("--skip-empty", action="store_true", help="Drop rows with only a heading")
    parser.add_argument(
        "--exclude-tag",
        action="append",
        default=[],
        help="Drop rows carrying this tag (may be repeated)",
    )
    parser.add_argument("--match-tag", help="Only keep rows carrying this tag")
    parser.add_argument("--table", action="store_true", help="Print a table of the captured rows")
    parser.add_argument("--output-dir", type=Path, help="Directory for CSV and XLSX reports")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING)")
    parser.add_argument("--quiet", action="store_true", help="Suppress console output")
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    try:
        config = load_config(args.config) if args.config else AppConfig()
        if args.output_dir:
            config.output.directory = _resolve_override_path(args.output_dir)
        registry = build_registry(config)
    except (OSError, ValueError, ColumnViewError) as exc:
        logger.error("Failed to load configuration: %s", exc)
        return 1

    try:
        outline = load_outline(args.outline, config)
        anchor = outline.find(args.anchor) if args.anchor else None
    except (OSError, ValueError, KeyError, ColumnViewError) as exc:
        logger.error("Failed to load outline: %s", exc)
        return 1

    try:
        if args.table or args.output_dir or _filters_requested(args):
            capture = capture_view(
                outline,
                columns=args.columns,
                anchor=anchor,
                max_level=args.max_level,
                match=args.match_tag,
                skip_empty_rows=args.skip_empty,
                exclude_tags=args.exclude_tag,
                config=config.view,
                registry=registry,
            )
            if not args.quiet:
                _print_capture(capture)
            if args.output_dir:
                export_capture(capture, config.output)
        elif not args.quiet:
            _print_view(outline, config, registry, args.columns, anchor)
    except ColumnViewError as exc:
        logger.error("Column view failed: %s", exc)
        return 1

    return 0


def build_registry(config: AppConfig) -> SummaryRegistry:
    registry = SummaryRegistry()
    for label, target in config.summaries.aliases.items():
        registry.alias(label, target)
    return registry


def _filters_requested(args: argparse.Namespace) -> bool:
    return bool(args.max_level is not None or args.skip_empty or args.exclude_tag or args.match_tag)


def _print_view(
    outline: Outline,
    config: AppConfig,
    registry: SummaryRegistry,
    columns: Optional[str],
    anchor: Optional[Node],
) -> None:
    surface = MemorySurface()
    session = ViewSession(outline, config=config.view, registry=registry, surface=surface)
    with session.activate(anchor, columns, whole_document=anchor is None):
        print(session.title.rstrip())
        for node in session.visible_nodes():
            print(surface.line(node.node_id).rstrip())


def _print_capture(capture: CaptureResult) -> None:
    if not capture.body_rows:
        print("No entries matched.")
        return
    print(tabulate(capture.to_frame(), headers="keys", tablefmt="github", showindex=False, disable_numparse=True))


def _resolve_override_path(path: Path) -> Path:
    path = Path(path).expanduser()
    if path.is_absolute():
        return path
    return (Path.cwd() / path).resolve()


if __name__ == "__main__":  # pragma: no cover - manual execution entry point
    raise SystemExit(main())
