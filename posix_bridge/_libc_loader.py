"""
Platform detection and C library loader for posix-bridge.

This module detects the current platform, works out which C library names to
try, and loads the first one that the dynamic loader accepts. The library is
always opened with ``use_errno=True`` so errno set by a native call can be read
back through ``ctypes.get_errno()``.

Loaded libraries are cached behind a lock so the search runs once per process.
"""

import ctypes
import ctypes.util
import logging
import os
import sys
import threading
from typing import Dict, List, Optional

from posix_bridge.exceptions import PosixBridgeError

logger = logging.getLogger(__name__)

# Error code for loader errors
ERROR_CODE_LIBC_NOT_FOUND = "PB_ERR_LIBC_NOT_FOUND"

ENV_LIBC_PATH = "POSIX_BRIDGE_LIBC_PATH"


class LibcNotFoundError(PosixBridgeError):
    """
    Raised when the C library cannot be found or loaded.

    Attributes:
        search_paths: Candidates that were tried
        platform: Platform identifier
    """

    def __init__(
        self,
        message: str,
        search_paths: Optional[List[str]] = None,
        platform: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        context = {"platform": platform} if platform else {}
        if search_paths:
            context["search_paths"] = search_paths

        default_suggestion = suggestion or (
            "Try one of the following:\n"
            f"  1. Set {ENV_LIBC_PATH} to the C library location\n"
            "  2. Pass libc_path= to PosixBridge\n"
            "  3. Use the simulated native layer: PosixBridge(simulate=True)"
        )

        super().__init__(
            message,
            code=ERROR_CODE_LIBC_NOT_FOUND,
            context=context,
            suggestion=default_suggestion,
        )
        self.search_paths = search_paths or []
        self.platform = platform


def platform_machine() -> str:
    """
    Return the machine architecture.

    Wrapper around platform.machine() that can be mocked in tests.
    """
    import platform

    return platform.machine()


def get_platform_tag() -> str:
    """
    Return platform identifier for the current system.

    Returns:
        'linux_x86_64', 'linux_arm64', 'macos_x86_64', 'macos_arm64', or
        '<system>_<machine>' for other POSIX systems

    Raises:
        LibcNotFoundError: On platforms without a POSIX C library
    """
    system = sys.platform.lower()
    machine = platform_machine()

    if machine in ("AMD64", "amd64"):
        machine = "x86_64"
    elif machine == "aarch64":
        machine = "arm64"

    if system.startswith("win"):
        raise LibcNotFoundError(
            f"Unsupported platform: {system}",
            platform=system,
            suggestion="posix-bridge needs a POSIX C library (Linux, macOS or BSD).",
        )
    if system == "darwin":
        return f"macos_{machine}"
    if system.startswith("linux"):
        return f"linux_{machine}"
    return f"{system.rstrip('0123456789')}_{machine}"


def get_libc_names() -> List[str]:
    """
    Return default C library names for the current platform.

    Names without a directory are resolved by the dynamic loader.
    """
    system = sys.platform.lower()
    if system == "darwin":
        return ["libc.dylib", "/usr/lib/libSystem.B.dylib"]
    if system.startswith("linux"):
        return ["libc.so.6", "libc.so"]
    return ["libc.so", "libc.so.7"]


class LibcLocator:
    """
    Locates, loads and caches the C library.

    The search order is:
    1. Explicit path argument
    2. Environment variable: POSIX_BRIDGE_LIBC_PATH (or LIBC_PATH)
    3. ctypes.util.find_library("c")
    4. Platform default names

    Attributes:
        _cache: Loaded libraries keyed by the explicit path (None for the default search)
        _cache_lock: Thread lock for thread-safe caching
    """

    _cache: Dict[Optional[str], ctypes.CDLL] = {}
    _cache_lock = threading.Lock()

    @classmethod
    def candidates(cls, libc_path: Optional[str] = None) -> List[str]:
        """Return the ordered, de-duplicated list of names to try."""
        paths: List[Optional[str]] = [libc_path]
        paths.append(os.environ.get(ENV_LIBC_PATH) or os.environ.get("LIBC_PATH"))
        paths.append(ctypes.util.find_library("c"))
        paths.extend(get_libc_names())

        seen = set()
        unique_paths = []
        for path in paths:
            if path and path not in seen:
                unique_paths.append(path)
                seen.add(path)
        return unique_paths

    @classmethod
    def load(cls, libc_path: Optional[str] = None) -> ctypes.CDLL:
        """
        Load the C library, trying each candidate in order.

        Args:
            libc_path: Explicit library path, tried first

        Returns:
            Loaded CDLL instance (opened with use_errno=True)

        Raises:
            LibcNotFoundError: If no candidate can be loaded
        """
        lib = cls._cache.get(libc_path)
        if lib is not None:
            return lib

        with cls._cache_lock:
            # Double-check pattern after acquiring lock
            lib = cls._cache.get(libc_path)
            if lib is not None:
                return lib

            search_paths = cls.candidates(libc_path)
            for path in search_paths:
                try:
                    logger.debug(f"Attempting to load C library from: {path}")
                    lib = ctypes.CDLL(path, use_errno=True)
                except OSError as e:
                    logger.debug(f"Failed to load C library from {path}: {e}")
                    continue
                logger.info(f"Loaded C library from: {path}")
                cls._cache[libc_path] = lib
                return lib

            logger.error(f"C library not found. Tried: {search_paths}")
            raise LibcNotFoundError(
                "Could not load the C library from any location",
                search_paths=search_paths,
                platform=get_platform_tag(),
            )

    @classmethod
    def reset_cache(cls) -> None:
        """
        Forget loaded libraries.

        Primarily useful for testing; the next load() searches again.
        """
        with cls._cache_lock:
            cls._cache.clear()
            logger.debug("C library cache cleared")


# Module-level convenience functions

def load_libc(libc_path: Optional[str] = None) -> ctypes.CDLL:
    """Load (or return the cached) C library."""
    return LibcLocator.load(libc_path)


def find_libc() -> Optional[str]:
    """
    Return the first candidate the dynamic loader accepts, or None.

    Used for diagnostics; does not populate the cache.
    """
    for path in LibcLocator.candidates():
        try:
            ctypes.CDLL(path, use_errno=True)
        except OSError:
            continue
        return path
    return None
