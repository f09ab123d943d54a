#!/usr/bin/env python3
"""
Example 1: Named Options

Options that C takes as integer constants are passed by name. Names are
case-insensitive and combine with '|'. An unknown name is reported as
UNKNOWN_OPTION, blaming the first bad token.

By default, runs in simulation mode and prints the captured log messages.
Use --real to log through the host's syslog.
"""

import argparse
import sys

from posix_bridge import LOG_OPTIONS, PosixBridge, resolve_flags


def main():
    """Flag resolution and syslog example."""
    parser = argparse.ArgumentParser(description="Named options example")
    parser.add_argument("--real", "--libc", action="store_true",
                        help="Use the real C library instead of simulation")
    args = parser.parse_args()

    simulate = not args.real
    mode = "SIMULATION" if simulate else "NATIVE"
    print(f"=== Named Options Example ({mode} mode) ===\n")

    # Resolution on its own
    mask = resolve_flags(LOG_OPTIONS, "pid|NDELAY")
    print(f"[+] 'pid|NDELAY' resolves to {mask:#x}")

    with PosixBridge(simulate=simulate) as px:
        outcome = px.openlog("posix-bridge-demo", "PID|CONS", "LOCAL0")
        print(f"[+] openlog: {outcome.kind.name}")

        for priority in ("info", "NOTICE", "Warning"):
            outcome = px.syslog(priority, f"hello at {priority}")
            print(f"[+] syslog({priority!r}): {outcome.kind.name}")

        # A bad name anywhere fails the whole expression
        outcome = px.openlog("posix-bridge-demo", "PID|LOUD|CONS", "LOCAL0")
        print(f"[-] openlog with 'PID|LOUD|CONS': {outcome.kind.name}, blamed {outcome.detail!r}")

        if px.is_simulated():
            print("\nCaptured messages:")
            for message in px.backend.messages:
                print(f"  [{message['ident']}] {message['message']}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
