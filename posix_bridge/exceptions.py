"""
Exception hierarchy for posix-bridge.

The bridge itself reports failures as ``Outcome`` values; these exceptions are
what the host-facing layer (``posix_bridge.routines``) and the flag resolver
raise, providing a structured way to handle failures from the native layer.
"""

import os
from typing import Any, Dict, Optional

from posix_bridge.outcome import STATUS_CODES, Outcome, OutcomeKind

# Error code constants
ERROR_CODE_UNKNOWN = "PB_ERR_UNKNOWN"
ERROR_CODE_NATIVE = "PB_ERR_NATIVE"
ERROR_CODE_ARGUMENT_COUNT = "PB_ERR_ARGUMENT_COUNT"
ERROR_CODE_UNKNOWN_OPTION = "PB_ERR_UNKNOWN_OPTION"
ERROR_CODE_BUFFER_TOO_SMALL = "PB_ERR_BUFFER_TOO_SMALL"
ERROR_CODE_HANDLE_INVALID = "PB_ERR_HANDLE_INVALID"
ERROR_CODE_REGISTRY_FULL = "PB_ERR_REGISTRY_FULL"


class PosixBridgeError(Exception):
    """
    Base exception class for all posix-bridge errors.

    Attributes:
        code: The error code identifying the type of error
        message: Human-readable error description
        context: Additional context information about the error
        suggestion: A suggested remediation action for the error
        outcome: The Outcome this error was created from, if any
    """

    status: int = 0

    def __init__(
        self,
        message: str,
        code: str = ERROR_CODE_UNKNOWN,
        context: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        outcome: Optional[Outcome] = None,
    ) -> None:
        """
        Initialize a PosixBridgeError instance.

        Args:
            message: A human-readable description of the error
            code: An error code identifying the type of error
            context: Additional context information relevant to the error
            suggestion: A suggested action to resolve the error
            outcome: The classified outcome behind the error
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.context = context or {}
        self.suggestion = suggestion
        self.outcome = outcome

    def __str__(self) -> str:
        """Return a formatted string representation of the error."""
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\nSuggestion: {self.suggestion}"
        return result

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return (
            f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r}, "
            f"context={self.context!r}, suggestion={self.suggestion!r})"
        )


class NativeError(PosixBridgeError, OSError):
    """
    Raised when the underlying OS call reported a failure.

    The native code is propagated verbatim. The class also derives from
    ``OSError`` so callers may treat it like any other OS failure.

    Attributes:
        errno: The native error code
        strerror: The platform's description of the code
    """

    def __init__(
        self,
        message: str,
        errno_code: int,
        context: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        outcome: Optional[Outcome] = None,
    ) -> None:
        ctx = context or {}
        ctx["errno"] = errno_code
        super().__init__(
            message,
            code=ERROR_CODE_NATIVE,
            context=ctx,
            suggestion=suggestion,
            outcome=outcome,
        )
        self.errno = errno_code
        self.strerror = os.strerror(errno_code)
        self.status = errno_code


class ArgumentCountMismatchError(PosixBridgeError):
    """
    Raised when an operation is invoked with the wrong number of arguments.

    This is a binding error and is never worth retrying.
    """

    status = STATUS_CODES[OutcomeKind.ARGUMENT_COUNT_MISMATCH]

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        got: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        outcome: Optional[Outcome] = None,
    ) -> None:
        ctx = context or {}
        if expected is not None:
            ctx["expected"] = expected
        if got is not None:
            ctx["got"] = got

        default_suggestion = suggestion or "Check the operation's signature with `posix-bridge ops`."
        super().__init__(
            message,
            code=ERROR_CODE_ARGUMENT_COUNT,
            context=ctx,
            suggestion=default_suggestion,
            outcome=outcome,
        )
        self.expected = expected
        self.got = got


class UnknownOptionError(PosixBridgeError, ValueError):
    """
    Raised when an option or flag name is not in the operation's table.

    Attributes:
        token: The first unresolvable token
        expression: The full flag expression, if one was parsed
    """

    status = STATUS_CODES[OutcomeKind.UNKNOWN_OPTION]

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        expression: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        outcome: Optional[Outcome] = None,
    ) -> None:
        ctx = context or {}
        if token is not None:
            ctx["token"] = token
        if expression is not None:
            ctx["expression"] = expression

        default_suggestion = suggestion or "Use names from the operation's table, joined with '|'."
        super().__init__(
            message,
            code=ERROR_CODE_UNKNOWN_OPTION,
            context=ctx,
            suggestion=default_suggestion,
            outcome=outcome,
        )
        self.token = token
        self.expression = expression


class BufferTooSmallError(PosixBridgeError):
    """
    Raised when a native result does not fit its fixed-capacity buffer.

    Truncated results are never returned.
    """

    status = STATUS_CODES[OutcomeKind.BUFFER_TOO_SMALL]

    def __init__(
        self,
        message: str,
        capacity: Optional[int] = None,
        needed: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        outcome: Optional[Outcome] = None,
    ) -> None:
        ctx = context or {}
        if capacity is not None:
            ctx["capacity"] = capacity
        if needed is not None:
            ctx["needed"] = needed

        super().__init__(
            message,
            code=ERROR_CODE_BUFFER_TOO_SMALL,
            context=ctx,
            suggestion=suggestion,
            outcome=outcome,
        )
        self.capacity = capacity
        self.needed = needed


class HandleInvalidError(PosixBridgeError):
    """
    Raised when a handle was never issued, was forged, or was already revoked.
    """

    status = STATUS_CODES[OutcomeKind.HANDLE_INVALID]

    def __init__(
        self,
        message: str,
        handle: Any = None,
        context: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        outcome: Optional[Outcome] = None,
    ) -> None:
        ctx = context or {}
        if handle is not None:
            ctx["handle"] = handle

        default_suggestion = suggestion or (
            "Pass back handles exactly as they were returned and do not reuse them after closing."
        )
        super().__init__(
            message,
            code=ERROR_CODE_HANDLE_INVALID,
            context=ctx,
            suggestion=default_suggestion,
            outcome=outcome,
        )
        self.handle = handle


class RegistryFullError(PosixBridgeError):
    """
    Raised when no more handles can be issued.

    Existing handles must be closed before new ones can be opened.
    """

    status = STATUS_CODES[OutcomeKind.REGISTRY_FULL]

    def __init__(
        self,
        message: str,
        capacity: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        outcome: Optional[Outcome] = None,
    ) -> None:
        ctx = context or {}
        if capacity is not None:
            ctx["capacity"] = capacity

        default_suggestion = suggestion or "Close handles that are no longer needed."
        super().__init__(
            message,
            code=ERROR_CODE_REGISTRY_FULL,
            context=ctx,
            suggestion=default_suggestion,
            outcome=outcome,
        )
        self.capacity = capacity


# Mapping of outcome kinds to exception classes
ERROR_CODE_MAP: Dict[OutcomeKind, type] = {
    OutcomeKind.NATIVE_ERROR: NativeError,
    OutcomeKind.ARGUMENT_COUNT_MISMATCH: ArgumentCountMismatchError,
    OutcomeKind.UNKNOWN_OPTION: UnknownOptionError,
    OutcomeKind.BUFFER_TOO_SMALL: BufferTooSmallError,
    OutcomeKind.HANDLE_INVALID: HandleInvalidError,
    OutcomeKind.REGISTRY_FULL: RegistryFullError,
}


def create_error_from_outcome(
    outcome: Outcome,
    operation: Optional[str] = None,
) -> PosixBridgeError:
    """
    Create the exception matching a failed outcome.

    Args:
        outcome: A non-success outcome
        operation: Name of the operation, used as message prefix

    Returns:
        An instance of the appropriate PosixBridgeError subclass

    Raises:
        ValueError: If the outcome is a success
    """
    if outcome.ok:
        raise ValueError("cannot create an error from a successful outcome")

    prefix = f"{operation}: " if operation else ""
    ctx = dict(outcome.context)
    if operation:
        ctx["operation"] = operation

    if outcome.kind is OutcomeKind.NATIVE_ERROR:
        return NativeError(
            f"{prefix}{os.strerror(outcome.code)}",
            outcome.code,
            context=ctx,
            outcome=outcome,
        )
    if outcome.kind is OutcomeKind.ARGUMENT_COUNT_MISMATCH:
        return ArgumentCountMismatchError(
            f"{prefix}{outcome.detail}",
            expected=ctx.pop("expected", None),
            got=ctx.pop("got", None),
            context=ctx,
            outcome=outcome,
        )
    if outcome.kind is OutcomeKind.UNKNOWN_OPTION:
        return UnknownOptionError(
            f"{prefix}unknown option {outcome.detail!r}",
            token=ctx.pop("token", None),
            expression=ctx.pop("expression", None),
            context=ctx,
            outcome=outcome,
        )
    if outcome.kind is OutcomeKind.BUFFER_TOO_SMALL:
        return BufferTooSmallError(
            f"{prefix}result does not fit buffer ({outcome.detail})",
            capacity=ctx.pop("capacity", None),
            needed=ctx.pop("needed", None),
            context=ctx,
            outcome=outcome,
        )
    if outcome.kind is OutcomeKind.HANDLE_INVALID:
        return HandleInvalidError(
            f"{prefix}invalid handle {outcome.detail}",
            handle=ctx.pop("handle", None),
            context=ctx,
            outcome=outcome,
        )
    return RegistryFullError(
        f"{prefix}handle registry full ({outcome.detail})",
        capacity=ctx.pop("capacity", None),
        context=ctx,
        outcome=outcome,
    )
