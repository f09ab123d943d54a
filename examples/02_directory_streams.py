#!/usr/bin/env python3
"""
Example 2: Directory Streams and Handles

opendir() returns an opaque integer handle instead of a native pointer.
Handles are validated on every use: a closed or made-up handle is reported as
HANDLE_INVALID, and at most 256 streams can be open at once (REGISTRY_FULL).

By default, runs in simulation mode (no C library calls).
Use --real to list a real directory.
"""

import argparse
import sys

from posix_bridge import OutcomeKind, PosixBridge


def list_directory(px, path):
    handle = px.opendir(path).unwrap("opendir")
    names = []
    try:
        while True:
            name = px.readdir(handle).unwrap("readdir")
            if not name:
                break
            names.append(name)
    finally:
        px.closedir(handle)
    return names


def main():
    """Directory stream example."""
    parser = argparse.ArgumentParser(description="Directory streams example")
    parser.add_argument("--real", "--libc", action="store_true",
                        help="Use the real C library instead of simulation")
    parser.add_argument("path", nargs="?", default="/tmp", help="Directory to list")
    args = parser.parse_args()

    simulate = not args.real
    mode = "SIMULATION" if simulate else "NATIVE"
    print(f"=== Directory Streams Example ({mode} mode) ===\n")

    with PosixBridge(simulate=simulate) as px:
        print(f"[+] Entries of {args.path}: {list_directory(px, args.path)}")

        handle = px.opendir(args.path).value
        px.closedir(handle)
        outcome = px.readdir(handle)
        print(f"[-] readdir on closed handle {handle}: {outcome.kind.name}")

        outcome = px.readdir(424242)
        print(f"[-] readdir on made-up handle: {outcome.kind.name}")

        handles = []
        while True:
            outcome = px.opendir(args.path)
            if outcome.kind is OutcomeKind.REGISTRY_FULL:
                break
            handles.append(outcome.value)
        print(f"[-] Registry full after {len(handles)} open streams (status {outcome.status})")

        for handle in handles:
            px.closedir(handle)
        print(f"[+] Closed all streams: {len(px.registry)} left open")

    return 0


if __name__ == "__main__":
    sys.exit(main())
