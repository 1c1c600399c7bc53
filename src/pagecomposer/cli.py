#!/usr/bin/env python3
"""
PageComposer CLI: compose, merge and split PDFs from the terminal.

Usage:
    python -m pagecomposer <command> [options]

Commands:
    compose     Build one PDF from selected pages of several files
    merge       Merge whole files into one PDF
    split       Split one PDF into several by page ranges
    info        Show page count, page sizes and rotations

Examples:
    # Pages 1-3 of a.pdf, then all of b.pdf turned 90 degrees
    page-composer compose a.pdf:1-3 b.pdf@90 -o out.pdf

    # Show geometry warnings before composing
    page-composer compose a.pdf scan.jpg -o out.pdf --advisories

    # Merge
    page-composer merge a.pdf b.pdf c.pdf -o merged.pdf

    # Split
    page-composer split input.pdf -o parts/ --ranges "1-2,3-5"
    page-composer split input.pdf -o parts/ --individual
    page-composer split input.pdf -o parts/ --select "1,3,7"
"""

import argparse
import logging
import re
import sys
from pathlib import Path

from pagecomposer.config import APP_DESCRIPTION, DEFAULT_OUTPUT_PREFIX, LOG_FORMAT
from pagecomposer.utils.exceptions import PageComposerError
from pagecomposer.utils.i18n import _

# ---------------------------------------------------------------------------
# Page specification parsers (shared)
# ---------------------------------------------------------------------------


def _parse_page_list(text: str) -> list[int]:
    """Parse a page specification string into a list of page numbers.

    Supports: "3", "1-5", "1,3,7", "1-3,7,10-12". Order is kept and
    repeated pages are dropped.

    Args:
        text: Page specification string.

    Returns:
        List of 1-indexed page numbers.
    """
    pages: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start_s, end_s = part.split("-", 1)
                s, e = int(start_s.strip()), int(end_s.strip())
                numbers = range(s, e + 1)
            else:
                numbers = [int(part)]
        except ValueError:
            raise ValueError(
                f"Invalid page specification '{part}'. "
                "Use numbers and ranges like '1-5' or '1,3,7'."
            ) from None
        for n in numbers:
            if n < 1:
                raise ValueError(f"Invalid page specification '{part}'. Pages start at 1.")
            if n not in pages:
                pages.append(n)
    return pages


_COMPOSE_ITEM = re.compile(r"^(?P<path>.+?)(?::(?P<pages>[0-9,\- ]+))?(?:@(?P<rotation>-?\d+))?$")


def _parse_compose_item(text: str) -> tuple[Path, list[int] | None, int]:
    """Parse "FILE[:PAGES][@ROTATION]".

    Returns:
        (path, 1-indexed page list or None for all pages, rotation)
    """
    match = _COMPOSE_ITEM.match(text)
    if not match:
        raise ValueError(f"Invalid item '{text}'. Use FILE[:PAGES][@ROTATION].")
    pages = _parse_page_list(match["pages"]) if match["pages"] else None
    rotation = int(match["rotation"]) if match["rotation"] else 0
    return Path(match["path"]), pages, rotation


# ---------------------------------------------------------------------------
# Argument parser construction
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with subcommands."""
    p = argparse.ArgumentParser(
        prog="page-composer",
        description=APP_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("-v", "--verbose", action="store_true", help=_("Verbose logging (DEBUG)"))

    sub = p.add_subparsers(dest="command", help=_("Available commands"))

    # --- compose ---
    compose_p = sub.add_parser("compose", help=_("Build one PDF from pages of several files"))
    compose_p.add_argument(
        "items",
        nargs="+",
        help=_("Input files as FILE[:PAGES][@ROTATION], e.g. a.pdf:1-3@90"),
    )
    compose_p.add_argument(
        "-o",
        "--output",
        type=Path,
        help=_("Output PDF file (default: <output.prefix>.pdf in <output.directory>)"),
    )
    compose_p.add_argument(
        "--advisories",
        action="store_true",
        help=_("Print page geometry advisories before writing"),
    )

    # --- merge ---
    merge_p = sub.add_parser("merge", help=_("Merge multiple files into one PDF"))
    merge_p.add_argument("inputs", nargs="+", type=Path, help=_("Input files (in order)"))
    merge_p.add_argument("-o", "--output", type=Path, required=True, help=_("Output PDF file"))

    # --- split ---
    split_p = sub.add_parser("split", help=_("Split a PDF into several files"))
    split_p.add_argument("input", type=Path, help=_("Input PDF file"))
    split_p.add_argument("-o", "--output", type=Path, required=True, help=_("Output directory"))
    split_mode = split_p.add_mutually_exclusive_group(required=True)
    split_mode.add_argument(
        "--ranges",
        type=str,
        help=_("Page ranges, one output per range (e.g. '1-2,3-5')"),
    )
    split_mode.add_argument(
        "--individual",
        action="store_true",
        help=_("One output per page"),
    )
    split_mode.add_argument(
        "--select",
        type=str,
        help=_("Extract the selected pages into one output (e.g. '1,3,7')"),
    )
    split_p.add_argument(
        "--prefix", type=str, default="", help=_("Output filename prefix (default: input name)")
    )

    # --- info ---
    info_p = sub.add_parser("info", help=_("Show page count, sizes and rotations"))
    info_p.add_argument("input", type=Path, help=_("Input PDF file"))

    return p


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _default_output(config) -> Path:
    """Output path built from the ``output`` config section."""
    directory = config.get("output.directory") or "."
    prefix = config.get("output.prefix") or DEFAULT_OUTPUT_PREFIX
    return Path(directory).expanduser() / f"{prefix}.pdf"


def _write_output(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _cmd_compose(args, logger) -> int:
    """Handle the 'compose' command."""
    from pagecomposer.session import ComposerSession

    try:
        items = [_parse_compose_item(item) for item in args.items]
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with ComposerSession() as session:
        try:
            for path, pages, rotation in items:
                if not path.exists():
                    print(f"Error: {path} not found", file=sys.stderr)
                    return 1
                source_id = session.registry.add_source(path.read_bytes(), path.name)
                if pages is None:
                    indices = range(session.registry.page_count(source_id))
                else:
                    indices = [n - 1 for n in pages]
                session.catalog.append_pages(session.registry, source_id, indices, rotation)

            if args.advisories:
                for message in session.get_advisories():
                    print(f"Advisory: {message}")

            data = session.assemble()
        except PageComposerError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        output = args.output or _default_output(session.config)
        _write_output(output, data)
        print(f"Composed {len(session.catalog)} page(s) → {output}")
    return 0


def _cmd_merge(args, logger) -> int:
    """Handle the 'merge' command."""
    from pagecomposer.services.assembly import merge_sources
    from pagecomposer.session import ComposerSession

    for p in args.inputs:
        if not p.exists():
            print(f"Error: {p} not found", file=sys.stderr)
            return 1

    with ComposerSession() as session:
        source_ids = [session.registry.add_source(p.read_bytes(), p.name) for p in args.inputs]
        try:
            data = merge_sources(session.registry, source_ids, session.producer)
        except PageComposerError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    _write_output(args.output, data)
    print(f"Merged {len(args.inputs)} file(s) → {args.output}")
    return 0


def _cmd_split(args, logger) -> int:
    """Handle the 'split' command."""
    from pagecomposer.services.assembly import individual_ranges, parse_ranges, selection_range
    from pagecomposer.session import ComposerSession

    prefix = args.prefix or args.input.stem

    # Page specifications are checked before the input is read
    try:
        if args.select:
            ranges = selection_range(n - 1 for n in _parse_page_list(args.select))
        elif args.ranges:
            ranges = parse_ranges(args.ranges)
        else:
            ranges = None
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with ComposerSession() as session:
        source_id = session.registry.add_source(args.input.read_bytes(), args.input.name)
        try:
            if ranges is None:
                ranges = individual_ranges(session.registry.page_count(source_id))
            result = session.assemble_ranges(source_id, ranges)
        except PageComposerError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    out_dir: Path = args.output
    for idx, data in enumerate(result.outputs, 1):
        if data is None:
            print(f"  ✗ part {idx}: {result.errors[idx - 1]}", file=sys.stderr)
            continue
        out_path = out_dir / f"{prefix}_part{idx:03d}.pdf"
        _write_output(out_path, data)
        print(f"  → {out_path}")

    print(f"Split into {len(result.completed)} of {len(result.outputs)} part(s)")
    return 0 if result.success else 1


def _cmd_info(args, _logger) -> int:
    """Handle the 'info' command."""
    from pagecomposer.services.source_registry import SourceRegistry

    registry = SourceRegistry()
    try:
        source_id = registry.add_source(args.input.read_bytes(), args.input.name)
        page_count = registry.page_count(source_id)
        print(f"File:       {args.input}")
        print(f"Pages:      {page_count}")
        for idx in range(page_count):
            width, height = registry.page_geometry(source_id, idx)
            rotation = registry.page_rotation(source_id, idx)
            print(f"  Page {idx + 1}: {width:.0f} x {height:.0f} pt, rotation {rotation}°")
    except PageComposerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        registry.close()
    return 0


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        force=True,
    )
    logger = logging.getLogger("pagecomposer.cli")

    # Validate input file existence (compose and merge check their own lists)
    if hasattr(args, "input") and args.input and not args.input.exists():
        print(f"Error: {args.input} not found", file=sys.stderr)
        return 1

    handlers = {
        "compose": _cmd_compose,
        "merge": _cmd_merge,
        "split": _cmd_split,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args, logger)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
