#!/usr/bin/env python3
"""
Command line export of a Maildir tree or an mbox file / mbox tree.

Usage:
    python -m mailexport ~/Maildir ./export
    python -m mailexport ~/archive/Inbox.mbox ./export --format txt \\
        --pattern "%ReceivedTime|yyyy-MM-dd% %Subject|60%" \\
        --restrict "[ReceivedTime] >= '2024-01-01'" --include-type Mail
"""

import argparse
import os
import sys

from rich.console import Console

from .engine import export_folders
from .errors import OutputRootError
from .exporters import ExportFormat
from .sources import MaildirSource, MboxSource
from .template import DEFAULT_PATTERN


def open_source(path: str, verbose: bool = True):
    """Pick the source type from what is found at ``path``"""
    if os.path.isdir(path) and os.path.isdir(os.path.join(path, 'cur')):
        return MaildirSource(path, verbose=verbose)
    return MboxSource(path, verbose=verbose)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mailexport",
        description="Export a Maildir or mbox folder tree to files, one per message.",
    )
    parser.add_argument("source", help="Maildir directory, mbox file, or directory of mbox files")
    parser.add_argument("output", help="Directory to export into (created if missing)")
    parser.add_argument("--pattern", default=DEFAULT_PATTERN,
                        help=f"File name pattern (default: '{DEFAULT_PATTERN}')")
    parser.add_argument("--format", default="msg", choices=[f.name.lower() for f in ExportFormat],
                        help="Export format (default: msg)")
    parser.add_argument("--restrict", default=None,
                        help="Restriction applied to every folder, e.g. \"[UnRead] = True\"")
    parser.add_argument("--include-type", action="append", default=[], metavar="TYPE",
                        help="Only export items of this type (repeatable), e.g. Mail")
    parser.add_argument("--exclude-type", action="append", default=[], metavar="TYPE",
                        help="Never export items of this type (repeatable)")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar per folder")
    parser.add_argument("--quiet", action="store_true", help="Only print errors")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    console = Console(stderr=True)
    verbose = not args.quiet

    try:
        source = open_source(args.source, verbose=verbose)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        return 2

    skipped = []
    try:
        summary = export_folders(
            source.root,
            args.output,
            pattern=args.pattern,
            fmt=args.format,
            restriction=args.restrict,
            include_types=args.include_type,
            exclude_types=args.exclude_type,
            progress=args.progress,
            skipped=skipped,
            verbose=verbose,
            console=console,
        )
    except OutputRootError as e:
        console.print(f"[red]{e}[/red]")
        return 2

    if skipped:
        console.print(f"[yellow]{summary.skipped} item(s) could not be exported[/yellow]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
