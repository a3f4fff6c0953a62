#!/usr/bin/env python3
"""Assemble a feature log into program trees.

Usage:
  featureforest features.log
  featureforest features.log --format yaml --output forest.yaml
  cat features.log | featureforest --orphan-policy promote --check-spans
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from featureforest import config
from featureforest.errors import InputReadError, RecordParseError
from featureforest.models import OrphanPolicy
from featureforest.rendering import SUPPORTED_FORMATS, render_forest
from featureforest.services.forest_builder import build_forest_from_path

logger = logging.getLogger("featureforest")

EXIT_OK = 0
EXIT_PARSE_ERROR = 1
EXIT_IO_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="featureforest",
        description="Build program feature trees from a line-oriented feature log.",
    )
    parser.add_argument("input", nargs="?", default="-", help="feature log path, or - for stdin")
    parser.add_argument("--output", "-o", default="", help="write to this path instead of stdout")
    parser.add_argument("--format", choices=SUPPORTED_FORMATS, default=config.OUTPUT_FORMAT)
    parser.add_argument("--indent", type=int, default=config.JSON_INDENT)
    parser.add_argument(
        "--orphan-policy",
        choices=[policy.value for policy in OrphanPolicy],
        default=config.ORPHAN_POLICY,
        help="drop branches under undefined parents, or promote them to their own programs",
    )
    parser.add_argument("--check-spans", action="store_true", default=config.CHECK_SPANS)
    parser.add_argument("--log-level", type=str.upper, choices=config.LOG_LEVELS, default=config.LOG_LEVEL)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, stream=sys.stderr)

    try:
        result = build_forest_from_path(
            args.input,
            orphan_policy=args.orphan_policy,
            check_spans=args.check_spans,
        )
    except RecordParseError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_PARSE_ERROR
    except InputReadError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_IO_ERROR

    rendered = render_forest(result.forest, fmt=args.format, indent=args.indent)
    if not args.output:
        sys.stdout.write(rendered)
        if not rendered.endswith("\n"):
            sys.stdout.write("\n")
        return EXIT_OK

    try:
        Path(args.output).write_text(rendered, encoding="utf-8")
    except OSError as exc:
        print(f"error: cannot write {args.output}: {exc}", file=sys.stderr)
        return EXIT_IO_ERROR
    logger.info("Wrote %d programs to %s", result.program_count, args.output)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
