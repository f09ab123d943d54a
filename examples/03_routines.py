#!/usr/bin/env python3
"""
Example 3: Exception-Raising Routines

The Posix wrapper turns outcomes into return values and exceptions, and adds
helpers the C library lacks: mkpath (mkdir -p), rmpath (rm -r), octal modes,
file-type predicates and GECOS splitting.

By default, runs in simulation mode.
Use --real to work in a real temporary directory.
"""

import argparse
import sys
import tempfile

from posix_bridge import NativeError, Posix, PosixBridge, PosixBridgeError
from posix_bridge.routines import isdir, islnk, octal


def main():
    """Routines example."""
    parser = argparse.ArgumentParser(description="Routines example")
    parser.add_argument("--real", "--libc", action="store_true",
                        help="Use the real C library instead of simulation")
    args = parser.parse_args()

    simulate = not args.real
    mode = "SIMULATION" if simulate else "NATIVE"
    print(f"=== Routines Example ({mode} mode) ===\n")

    base = "/tmp/posix-bridge-demo" if simulate else tempfile.mkdtemp(prefix="posix-bridge-")

    try:
        with PosixBridge(simulate=simulate) as bridge:
            posix = Posix(bridge)

            posix.mkpath(f"{base}/a/b", "0750")
            posix.symlink(f"{base}/a/b", f"{base}/latest")
            st = posix.lstat(f"{base}/latest")
            print(f"[+] {base}/latest is a symlink: {islnk(st['mode'])}")
            st = posix.stat(f"{base}/a/b")
            print(f"[+] {base}/a/b is a directory: {isdir(st['mode'])}, mode {octal(st['mode'])}")
            print(f"[+] Entries of {base}: {posix.listdir(base)}")

            try:
                posix.rmdir(f"{base}/a")
            except NativeError as e:
                print(f"[-] rmdir {base}/a: errno {e.errno} ({e.strerror})")

            posix.rmpath(base)
            print(f"[+] Removed {base}: exists now? {posix.stat(base) is not None}")

            user = posix.getpwuid(0)
            print(f"[+] uid 0 is {user['name']} ({user['gecos']['fullname'] or 'no name'})")
            print(f"[+] Groups listing root: {posix.getgrouplist('root') or '(none)'}")

    except PosixBridgeError as e:
        print(f"[-] Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
