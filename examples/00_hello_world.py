#!/usr/bin/env python3
"""
Example 0: Hello World - The simplest posix-bridge example.

Asks the system for its name and the status of a directory, and prints the
outcomes. Works in simulation mode by default.
"""

import argparse
import sys

from posix_bridge import PosixBridge

def main():
    # Parse command line arguments
    parser = argparse.ArgumentParser(description="Hello World posix-bridge example")
    parser.add_argument("--real", "--libc", action="store_true",
                        help="Use the real C library instead of simulation")
    args = parser.parse_args()

    # Determine mode: simulation (default) or real C library
    simulate = not args.real
    mode = "SIMULATION" if simulate else "NATIVE"
    print(f"Running in {mode} mode")

    with PosixBridge(simulate=simulate) as px:
        # Every call returns an Outcome
        system = px.uname().value
        print(f"Hello from {system.sysname} {system.release} on {system.machine}")

        outcome = px.stat("/tmp")
        print(f"stat('/tmp'): {outcome.kind.name}, inode {outcome.value.ino}")

        outcome = px.stat("/no/such/path")
        print(f"stat('/no/such/path'): {outcome.kind.name}, status {outcome.status}")
        return 0

if __name__ == "__main__":
    sys.exit(main())
