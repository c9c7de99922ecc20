#!/usr/bin/env python3
"""
Source language detection CLI tool.

Guesses the programming language each binary was built from and prints the
evidence behind the guess.

Usage:
    python -m binlang.tools.detect_language <binary>... [--verbose] [--report FILE]
"""

import argparse
import logging
import sys
from pathlib import Path

from binlang.detector import detect_source_language
from binlang.platform_utils import configure_windows_console
from binlang.report import write_report
from binlang.result import DetectionResult


def print_result(binary: Path, result: DetectionResult, verbose: bool = False) -> None:
    """Print a per-file summary.

    Args:
        binary: Analyzed path
        result: Detection result for it
        verbose: Whether to list the candidate languages as well
    """
    print(f"{binary}:")
    for line in str(result).splitlines():
        print(f"  {line}")
    if verbose and result.candidate_languages:
        print(f"  Candidates: {', '.join(result.candidate_languages)}")


def main(argv: list[str] | None = None) -> int:
    configure_windows_console()

    parser = argparse.ArgumentParser(
        description="Guess the source language of compiled binaries"
    )
    parser.add_argument(
        "binaries", type=Path, nargs="+", help="Paths to binaries to analyze"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging and candidate languages",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write a MessagePack report of all results to this file",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    results: list[tuple[Path, DetectionResult]] = []
    failed = 0
    for binary in dict.fromkeys(args.binaries):
        try:
            result = detect_source_language(binary)
        except OSError as e:
            print(f"Error: {binary}: {e}", file=sys.stderr)
            failed += 1
            continue
        print_result(binary, result, args.verbose)
        results.append((binary, result))

    if args.report is not None:
        write_report(args.report, results)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
