"""
posix-bridge.

A convention-translation layer between Python and the POSIX C library.

C functions report failure through return codes plus errno, in several
incompatible ways. This package wraps them so that every call produces one
uniform ``Outcome``:

- Classification of each operation's native result by its response shape
  (errno is the truth, errno on the -1 sentinel, NULL means "not found",
  plain passthrough)
- Stringified options: ``"PID|CONS"`` instead of integer constants from C headers
- A bounded registry of opaque handles for directory streams, so callers never
  hold native pointers and stale handles are rejected
- Fixed-capacity output buffers that report overflow instead of truncating

Typical usage with the real C library:

    from posix_bridge import PosixBridge

    with PosixBridge() as px:
        outcome = px.stat("/etc/passwd")
        if outcome.ok:
            print(outcome.value.size)
        else:
            print("errno", outcome.status)

Exception-raising routines:

    from posix_bridge import PosixBridge, Posix, NativeError

    with PosixBridge() as bridge:
        posix = Posix(bridge)
        posix.mkpath("/tmp/a/b/c")
        for name in posix.listdir("/tmp/a"):
            print(name)
        try:
            posix.rmdir("/tmp/missing")
        except NativeError as e:
            print(e.errno, e.strerror)

Simulation mode (no C library calls):

    with PosixBridge(simulate=True) as px:
        px.openlog("myapp", "PID", "USER")
        px.syslog("NOTICE", "hello")
        print(px.backend.messages)
"""

from posix_bridge.outcome import ENODATA, STATUS_CODES, Outcome, OutcomeKind
from posix_bridge.exceptions import (
    PosixBridgeError,
    NativeError,
    ArgumentCountMismatchError,
    UnknownOptionError,
    BufferTooSmallError,
    HandleInvalidError,
    RegistryFullError,
    create_error_from_outcome,
)
from posix_bridge.flags import (
    DELIMITER,
    ParamTable,
    join_flags,
    resolve_flags,
    resolve_one,
)
from posix_bridge.tables import CLOCK_IDS, LOG_FACILITIES, LOG_OPTIONS, LOG_PRIORITIES, TABLES
from posix_bridge.classifier import ClassifierPolicy, ResponseShape, classify, invoke
from posix_bridge.registry import HandleRegistry
from posix_bridge.buffers import OutputBuffer
from posix_bridge.config import BridgeConfig
from posix_bridge._libc_loader import LibcLocator, LibcNotFoundError
from posix_bridge.results import (
    BrokenDownTime,
    ClockTime,
    GroupEntry,
    PasswdEntry,
    ProcessTimes,
    StatResult,
    SystemInfo,
    UnameResult,
)
from posix_bridge.operations import OPERATIONS, OperationSpec, PosixBridge, validate_arity
from posix_bridge.simulator import SimulatedBackend
from posix_bridge.routines import Posix

# Read version from version.txt to ensure consistency with packaging
import os

_version_file = os.path.join(os.path.dirname(__file__), "version.txt")
try:
    with open(_version_file, "r") as f:
        __version__ = f.read().strip()
except (IOError, OSError):
    # Fallback if version.txt is missing (e.g., in development)
    __version__ = "0.1.0"

__all__ = [
    # Version info
    "__version__",
    # Bridge
    "PosixBridge",
    "Posix",
    "BridgeConfig",
    "OperationSpec",
    "OPERATIONS",
    "validate_arity",
    "SimulatedBackend",
    "LibcLocator",
    # Outcomes and classification
    "Outcome",
    "OutcomeKind",
    "STATUS_CODES",
    "ENODATA",
    "ResponseShape",
    "ClassifierPolicy",
    "classify",
    "invoke",
    # Flags
    "DELIMITER",
    "ParamTable",
    "resolve_one",
    "resolve_flags",
    "join_flags",
    "TABLES",
    "CLOCK_IDS",
    "LOG_OPTIONS",
    "LOG_FACILITIES",
    "LOG_PRIORITIES",
    # Handles and buffers
    "HandleRegistry",
    "OutputBuffer",
    # Results
    "BrokenDownTime",
    "ClockTime",
    "GroupEntry",
    "PasswdEntry",
    "ProcessTimes",
    "StatResult",
    "SystemInfo",
    "UnameResult",
    # Exceptions
    "PosixBridgeError",
    "NativeError",
    "ArgumentCountMismatchError",
    "UnknownOptionError",
    "BufferTooSmallError",
    "HandleInvalidError",
    "RegistryFullError",
    "LibcNotFoundError",
    "create_error_from_outcome",
]
