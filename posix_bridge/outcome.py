"""
Uniform outcomes for bridged POSIX operations.

Every operation invoked through the bridge produces exactly one ``Outcome``.
The outcome is terminal: a failed operation never carries a partial value.

The ``status`` of an outcome is the errno-style code the bridge reports to
hosts that only understand integer status codes (0 means success). Bridge-level
failures reuse the codes a C caller would expect:

- ArgumentCountMismatch -> ENODATA
- UnknownOption         -> EINVAL
- HandleInvalid         -> EINVAL
- BufferTooSmall        -> ERANGE
- RegistryFull          -> EMFILE
"""

import errno
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class OutcomeKind(Enum):
    """Classified result kinds."""
    SUCCESS = "success"
    NATIVE_ERROR = "native_error"
    ARGUMENT_COUNT_MISMATCH = "argument_count_mismatch"
    UNKNOWN_OPTION = "unknown_option"
    BUFFER_TOO_SMALL = "buffer_too_small"
    HANDLE_INVALID = "handle_invalid"
    REGISTRY_FULL = "registry_full"


# ENODATA is missing from a few BSDs
ENODATA = getattr(errno, "ENODATA", 61)

STATUS_CODES = {
    OutcomeKind.SUCCESS: 0,
    OutcomeKind.ARGUMENT_COUNT_MISMATCH: ENODATA,
    OutcomeKind.UNKNOWN_OPTION: errno.EINVAL,
    OutcomeKind.BUFFER_TOO_SMALL: errno.ERANGE,
    OutcomeKind.HANDLE_INVALID: errno.EINVAL,
    OutcomeKind.REGISTRY_FULL: errno.EMFILE,
}


@dataclass(frozen=True)
class Outcome:
    """Result of one bridged operation.

    Attributes:
        kind: Outcome classification
        code: Native error code for NATIVE_ERROR, 0 otherwise
        value: Result payload on success (scalar, dataclass or None)
        detail: Human-readable detail (blamed token, capacity, handle, ...)
        context: Structured detail used to build exceptions
    """
    kind: OutcomeKind
    code: int = 0
    value: Any = None
    detail: str = ""
    context: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(OutcomeKind.SUCCESS, value=value)

    @classmethod
    def native_error(cls, code: int, detail: str = "") -> "Outcome":
        if not code:
            raise ValueError("native_error requires a non-zero error code")
        return cls(OutcomeKind.NATIVE_ERROR, code=code, detail=detail)

    @classmethod
    def argument_count_mismatch(cls, expected: int, got: int) -> "Outcome":
        return cls(
            OutcomeKind.ARGUMENT_COUNT_MISMATCH,
            detail=f"expected {expected} argument(s), got {got}",
            context={"expected": expected, "got": got},
        )

    @classmethod
    def unknown_option(cls, token: str, expression: Optional[str] = None) -> "Outcome":
        return cls(
            OutcomeKind.UNKNOWN_OPTION,
            detail=token,
            context={"token": token, "expression": expression},
        )

    @classmethod
    def buffer_too_small(cls, capacity: int, needed: Optional[int] = None) -> "Outcome":
        detail = f"capacity {capacity}"
        if needed is not None:
            detail += f", needed {needed}"
        return cls(
            OutcomeKind.BUFFER_TOO_SMALL,
            detail=detail,
            context={"capacity": capacity, "needed": needed},
        )

    @classmethod
    def handle_invalid(cls, handle: Any) -> "Outcome":
        return cls(OutcomeKind.HANDLE_INVALID, detail=repr(handle), context={"handle": handle})

    @classmethod
    def registry_full(cls, capacity: int) -> "Outcome":
        return cls(
            OutcomeKind.REGISTRY_FULL,
            detail=f"capacity {capacity}",
            context={"capacity": capacity},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def status(self) -> int:
        """Errno-style status code (0 on success)."""
        if self.kind is OutcomeKind.NATIVE_ERROR:
            return self.code
        return STATUS_CODES[self.kind]

    def raise_for_outcome(self, operation: Optional[str] = None) -> None:
        """Raise the exception matching this outcome (no-op on success)."""
        if self.ok:
            return
        from posix_bridge.exceptions import create_error_from_outcome

        raise create_error_from_outcome(self, operation=operation)

    def unwrap(self, operation: Optional[str] = None) -> Any:
        """Return the value, raising if the outcome is a failure."""
        self.raise_for_outcome(operation)
        return self.value

    def __repr__(self) -> str:
        if self.ok:
            return f"Outcome(SUCCESS, value={self.value!r})"
        if self.kind is OutcomeKind.NATIVE_ERROR:
            return f"Outcome(NATIVE_ERROR, code={self.code})"
        return f"Outcome({self.kind.name}, detail={self.detail!r})"
