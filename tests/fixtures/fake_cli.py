#!/usr/bin/env python3
"""Fake command for integration testing.

Prints numbered lines to stdout, optionally forever, so tests can observe
tagging, ordering, natural exit and forced termination.

Usage:
    python fake_cli.py [--lines N] [--interval SECONDS] [--forever]
                       [--text PREFIX] [--partial] [--long N]
                       [--print-env NAME ...] [--stderr TEXT] [--exit-code CODE]
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from typing import NoReturn


def emit(text: str, end: str = "\n") -> None:
    """Write to stdout and flush immediately."""
    sys.stdout.write(text + end)
    sys.stdout.flush()


def main() -> NoReturn:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Fake command for testing")
    parser.add_argument("--lines", type=int, default=3, help="Number of lines to print")
    parser.add_argument("--interval", type=float, default=0.0, help="Delay between lines")
    parser.add_argument("--forever", action="store_true", help="Print until killed")
    parser.add_argument("--text", type=str, default="line", help="Line prefix")
    parser.add_argument("--partial", action="store_true", help="Omit the final newline")
    parser.add_argument("--long", type=int, default=0, help="Print one line of N characters")
    parser.add_argument("--print-env", action="append", default=[], help="Print an env var")
    parser.add_argument("--stderr", type=str, default=None, help="Write text to stderr")
    parser.add_argument("--exit-code", type=int, default=0, help="Exit code")

    args = parser.parse_args()

    for name in args.print_env:
        emit(f"{name}={os.environ.get(name, '')}")

    if args.stderr is not None:
        sys.stderr.write(args.stderr + "\n")
        sys.stderr.flush()

    if args.long:
        emit("x" * args.long)

    i = 0
    while args.forever or i < args.lines:
        i += 1
        last = not args.forever and i == args.lines
        emit(f"{args.text} {i}", end="" if (last and args.partial) else "\n")
        if args.interval:
            time.sleep(args.interval)

    sys.exit(args.exit_code)


if __name__ == "__main__":
    main()
