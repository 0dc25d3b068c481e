"""
Command-line runner for the Funge machine.

Loads a program, steps it to halt, streams output to stdout, and answers
input suspensions from --input values or, when those run out, from stdin.

Usage:
    python -m funged.runner examples/hello.bf
    python -m funged.runner -e '"!olleH",,,,,,@'
    python -m funged.runner --stats --stack examples/hello.bf
    python -m funged.runner --input 12 --input x examples/echo.bf
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .host import FungeHost, InputExhausted, StepLimitExceeded, MAX_STEPS
from .machine import STEP_NEED_DECIMAL, STEP_NEED_CHARACTER

PROMPTS = {
    STEP_NEED_DECIMAL: "Enter Decimal",
    STEP_NEED_CHARACTER: "Enter Character",
}

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_STEP_LIMIT = 2


def configure_logging(verbose: bool):
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root = logging.getLogger("funged")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def read_line(need: int, stdin=None, stderr=None) -> str | None:
    """Prompt on stderr and read one line. None on EOF."""
    stdin = stdin or sys.stdin
    stderr = stderr or sys.stderr
    print(f"{PROMPTS[need]}: ", end="", file=stderr, flush=True)
    line = stdin.readline()
    if not line:
        return None
    return line


def run_program(host: FungeHost, inputs=(), max_steps: int = MAX_STEPS,
                stdout=None, stdin=None, stderr=None) -> int:
    """Step to halt, streaming output. Returns a process exit status."""
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    pending = list(inputs)

    def read_input(need):
        if pending:
            return pending.pop(0)
        return read_line(need, stdin, stderr)

    def write_output(text):
        stdout.write(text)
        stdout.flush()

    try:
        host.execute(read_input, max_steps, on_output=write_output)
    except StepLimitExceeded:
        print(f"Error: no halt after {max_steps} steps", file=stderr)
        return EXIT_STEP_LIMIT
    except InputExhausted:
        print("Error: end of input while the program was waiting", file=stderr)
        return EXIT_ERROR
    return EXIT_OK


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Run a Befunge-93 program on the Funge machine",
        prog="python -m funged.runner",
    )
    parser.add_argument("file", nargs="?", help="Path to program file")
    parser.add_argument("-e", "--expr", help="Program text given inline")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the `?` direction source")
    parser.add_argument("--max-steps", type=int, default=MAX_STEPS,
                        help=f"Abort after this many steps (default {MAX_STEPS})")
    parser.add_argument("-i", "--input", action="append", default=[],
                        help="Input line for `&`/`~` (repeatable, used in order)")
    parser.add_argument("--stack", action="store_true",
                        help="Print the final stack to stderr")
    parser.add_argument("--stats", action="store_true",
                        help="Print execution counters to stderr")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Trace every step")
    args = parser.parse_args(argv)

    if not args.file and args.expr is None:
        parser.error("Provide a program file or -e text")

    configure_logging(args.verbose)
    host = FungeHost(seed=args.seed)

    try:
        if args.file:
            path = Path(args.file)
            if not path.exists():
                print(f"Error: File not found: {path}", file=sys.stderr)
                return EXIT_ERROR
            host.load_file(path)
        else:
            host.load(args.expr)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    status = run_program(host, args.input, args.max_steps)

    if args.stack:
        print(f"Stack: {host.stack}", file=sys.stderr)
    if args.stats:
        print(host.machine.stats_summary(), file=sys.stderr)
    return status


if __name__ == "__main__":
    sys.exit(main())
