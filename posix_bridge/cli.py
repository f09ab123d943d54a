#!/usr/bin/env python3
"""
posix-bridge Command Line Interface.

This module provides a CLI for poking at the bridge from a shell. It can be
used in multiple ways:

1. As a module: python -m posix_bridge
2. As an entry point: posix-bridge (after pip install)
3. Direct execution: python cli.py

Commands:
    ops                      - List the bridged operations
    flags <table> <expr>     - Resolve a flag expression against a table
    call <operation> [args]  - Invoke an operation and print its outcome
    doctor                   - Check that the C library can be loaded
    version                  - Show version information

Global options:
    --simulate   use the in-memory native layer
    --libc PATH  load this C library
    --debug      enable debug logging
"""

import argparse
import dataclasses
import inspect
import logging
import platform
import sys
from typing import Any, List, Optional

from posix_bridge import __version__
from posix_bridge._libc_loader import LibcNotFoundError, LibcLocator, find_libc, get_platform_tag
from posix_bridge.exceptions import PosixBridgeError
from posix_bridge.flags import resolve_flags
from posix_bridge.operations import OPERATIONS, PosixBridge
from posix_bridge.tables import TABLES


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    BLUE = '\033[0;34m'
    BOLD = '\033[1m'
    NC = '\033[0m'  # No Color

    @classmethod
    def disable(cls):
        """Disable colors (for non-TTY output)."""
        cls.RED = ''
        cls.GREEN = ''
        cls.YELLOW = ''
        cls.BLUE = ''
        cls.BOLD = ''
        cls.NC = ''


if not sys.stdout.isatty():
    Colors.disable()


def print_info(msg: str) -> None:
    print(f"{Colors.BLUE}[INFO]{Colors.NC} {msg}")


def print_success(msg: str) -> None:
    print(f"{Colors.GREEN}[OK]{Colors.NC} {msg}")


def print_warning(msg: str) -> None:
    print(f"{Colors.YELLOW}[WARN]{Colors.NC} {msg}")


def print_error(msg: str) -> None:
    print(f"{Colors.RED}[ERROR]{Colors.NC} {msg}")


def parse_value(text: str) -> Any:
    """Parse a command line argument into an int where it looks like one.

    Decimal, ``0o`` and leading-zero octal (``0755``, as in chmod), and ``0x`` hex
    are recognized; anything else is returned unchanged.
    """
    lowered = text.lower()
    digits = lowered.lstrip("-")
    try:
        if lowered.startswith(("0o", "-0o")):
            return int(text, 8)
        if len(digits) > 1 and digits.startswith("0") and digits.isdigit():
            return int(text, 8)
        if lowered.startswith(("0x", "-0x")):
            return int(text, 16)
        return int(text, 10)
    except ValueError:
        return text


def parse_operation_args(name: str, texts: List[str]) -> List[Any]:
    """Parse the arguments of operation ``name``; ``str`` parameters keep the raw text."""
    params = list(inspect.signature(getattr(PosixBridge, f"_op_{name}")).parameters.values())[1:]
    values = []
    for index, text in enumerate(texts):
        if index < len(params) and params[index].annotation is str:
            values.append(text)
        else:
            values.append(parse_value(text))
    return values


def format_value(value: Any) -> str:
    if dataclasses.is_dataclass(value):
        return "\n".join(
            f"  {name}: {field_value!r}"
            for name, field_value in dataclasses.asdict(value).items()
        )
    return f"  {value!r}"


def make_bridge(args: argparse.Namespace) -> PosixBridge:
    return PosixBridge(simulate=args.simulate or None, libc_path=args.libc, debug=args.debug or None)


# ============================================================================
# COMMANDS
# ============================================================================

def cmd_ops(args: argparse.Namespace) -> int:
    """List operations with their arity and response shape."""
    width = max(len(name) for name in OPERATIONS)
    print(f"{Colors.BOLD}{'operation':<{width}}  args  shape{Colors.NC}")
    for spec in OPERATIONS.values():
        print(f"{spec.name:<{width}}  {spec.arity:>4}  {spec.shape.value:<28}  {spec.summary}")
    return 0


def cmd_flags(args: argparse.Namespace) -> int:
    """Resolve a flag expression against a named table."""
    table = TABLES.get(args.table)
    if table is None:
        print_error(f"Unknown table: {args.table}")
        print(f"  Tables: {', '.join(sorted(TABLES))}")
        return 2

    try:
        mask = resolve_flags(table, args.expression)
    except PosixBridgeError as e:
        print_error(e.message)
        print(f"  Valid names: {', '.join(table.names())}")
        return e.status

    print_success(f"{args.expression!r} -> {mask} ({mask:#x})")
    return 0


def cmd_call(args: argparse.Namespace) -> int:
    """Invoke one operation and print its outcome; the exit code is the outcome status."""
    if args.operation not in OPERATIONS:
        print_error(f"Unknown operation: {args.operation}")
        print("  Run 'posix-bridge ops' for the list")
        return 2

    try:
        bridge = make_bridge(args)
    except LibcNotFoundError as e:
        print_error(str(e))
        return 1

    values = parse_operation_args(args.operation, args.args)
    with bridge:
        outcome = bridge.call(args.operation, *values)

    if outcome.ok:
        print_success(f"{args.operation}: SUCCESS")
        if outcome.value is not None:
            print(format_value(outcome.value))
    else:
        print_error(f"{args.operation}: {outcome.kind.name} (status {outcome.status})")
        if outcome.detail:
            print(f"  {outcome.detail}")
    return outcome.status


def cmd_doctor(args: argparse.Namespace) -> int:
    """Check that the native layer is usable."""
    print_info("posix-bridge System Check")
    print()

    print("System Information:")
    print(f"  Platform: {platform.system()}")
    print(f"  Architecture: {platform.machine()}")
    print(f"  Python: {platform.python_version()}")
    print()

    ready = True
    print("C Library:")
    try:
        print_success(f"  platform tag: {get_platform_tag()}")
    except LibcNotFoundError as e:
        print_error(f"  {e.message}")
        ready = False

    if ready:
        print(f"  candidates: {', '.join(LibcLocator.candidates(args.libc))}")
        found = find_libc() if args.libc is None else args.libc
        try:
            LibcLocator.load(args.libc)
            print_success(f"  loaded: {found}")
        except LibcNotFoundError:
            print_error("  could not load the C library")
            ready = False

    print()
    print("Option Tables:")
    for name, table in TABLES.items():
        if len(table):
            print_success(f"  {name}: {len(table)} names")
        else:
            print_warning(f"  {name}: no names available on this platform")

    print()
    print("---")
    if ready:
        print_success("posix-bridge is ready to use!")
    else:
        print_warning("Native mode unavailable; use --simulate")
    return 0 if ready else 1


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"posix-bridge v{__version__}")
    print(f"Python: {platform.python_version()}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="posix-bridge",
        description="POSIX convention bridge command line interface",
    )

    parser.add_argument(
        "--version", "-V",
        action="store_true",
        help="Show version information"
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use the in-memory native layer instead of the C library"
    )
    parser.add_argument(
        "--libc",
        metavar="PATH",
        help="Path of the C library to load"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ops command
    ops_parser = subparsers.add_parser("ops", help="List the bridged operations")
    ops_parser.set_defaults(func=cmd_ops)

    # flags command
    flags_parser = subparsers.add_parser("flags", help="Resolve a flag expression")
    flags_parser.add_argument("table", help=f"Table name ({', '.join(sorted(TABLES))})")
    flags_parser.add_argument("expression", help="'|'-joined option names, e.g. PID|CONS")
    flags_parser.set_defaults(func=cmd_flags)

    # call command
    call_parser = subparsers.add_parser("call", help="Invoke an operation")
    call_parser.add_argument("operation", help="Operation name")
    call_parser.add_argument("args", nargs="*", help="Arguments (ints may use 0o or 0x)")
    call_parser.set_defaults(func=cmd_call)

    # doctor command
    doctor_parser = subparsers.add_parser("doctor", help="Check system requirements")
    doctor_parser.set_defaults(func=cmd_doctor)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )

    if args.version:
        return cmd_version(args)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
