"""Command-line interface for mimeident."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from mimeident.config import load_config
from mimeident.detector import configure
from mimeident.errors import ConfigError, SourceReadError
from mimeident.scanner import DirectoryScanner


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mimeident",
        description="Detect the media type of files from their content.",
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    # --- identify ---
    id_p = sub.add_parser("identify", help="Identify a single file")
    id_p.add_argument("file", help="File to identify")
    src = id_p.add_mutually_exclusive_group()
    src.add_argument("-c", "--config-file", default=None,
                     help="Path to a rule-set file (YAML or mime-info XML)")
    src.add_argument("--config-body", default=None,
                     help="Inline rule-set text")
    id_p.add_argument("--no-filename", dest="use_filename", action="store_false",
                      help="Do not use the file name as a detection hint")
    id_p.add_argument("--json", dest="output_json", action="store_true",
                      help="Output the result as JSON")

    # --- scan ---
    scan_p = sub.add_parser("scan", help="Identify every file in a directory")
    scan_p.add_argument("path", help="File or directory to scan")
    scan_p.add_argument("-r", "--recursive", action="store_true", default=True,
                        help="Recurse into subdirectories (default: True)")
    scan_p.add_argument("--no-recursive", dest="recursive", action="store_false")
    scan_p.add_argument("-e", "--extensions", nargs="*",
                        help="Restrict to these extensions (e.g. .bin .dat)")
    scan_p.add_argument("-c", "--config", default=None,
                        help="Path to a rule-set file")
    scan_p.add_argument("--no-filename", dest="use_filename", action="store_false")
    scan_p.add_argument("--json", dest="output_json", action="store_true",
                        help="Output results as JSON")

    # --- validate ---
    val_p = sub.add_parser("validate", help="Check that a rule-set file compiles")
    val_p.add_argument("config", help="Rule-set file to check")

    return parser


def cmd_identify(args) -> int:
    """Execute the ``identify`` subcommand."""
    detector = configure(body=args.config_body, path=args.config_file)
    result = detector.detect_file(args.file, use_filename=args.use_filename)
    if args.output_json:
        print(json.dumps(result.to_attributes(), indent=2))
    else:
        print(f"{result.mime_type}\t{result.extension}")
    return 0


def cmd_scan(args) -> int:
    """Execute the ``scan`` subcommand."""
    detector = configure(path=args.config)
    extensions = {e if e.startswith(".") else f".{e}" for e in (args.extensions or [])} or None
    scanner = DirectoryScanner(detector=detector, use_filename=args.use_filename,
                               extensions=extensions)

    target = Path(args.path)
    if target.is_file():
        reports = [scanner.scan_file(target)]
    elif target.is_dir():
        reports = scanner.scan_directory(target, recursive=args.recursive)
    else:
        print(f"Error: {args.path} is not a valid file or directory", file=sys.stderr)
        return 1

    if args.output_json:
        print(json.dumps([asdict(r) for r in reports], indent=2))
    else:
        for r in reports:
            if r.errors:
                print(f"{r.path}\tERROR: {'; '.join(r.errors)}")
            else:
                print(f"{r.path}\t{r.mime_type}\t{r.extension}")
    return 0


def cmd_validate(args) -> int:
    """Execute the ``validate`` subcommand."""
    repository = load_config(args.config)
    print(f"OK: {len(repository)} types, {len(repository.signatures)} signatures, "
          f"{len(repository.globs)} globs, {len(repository.containers)} container rules")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    dispatch = {
        "identify": cmd_identify,
        "scan": cmd_scan,
        "validate": cmd_validate,
    }
    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return handler(args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except SourceReadError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
