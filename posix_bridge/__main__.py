#!/usr/bin/env python3
"""
Allow running posix_bridge as a module.

Usage:
    python -m posix_bridge [command] [args...]

Examples:
    python -m posix_bridge ops
    python -m posix_bridge doctor
    python -m posix_bridge --simulate call stat /tmp
"""

import sys
from posix_bridge.cli import main

if __name__ == "__main__":
    sys.exit(main())
