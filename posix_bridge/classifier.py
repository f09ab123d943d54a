"""
Outcome classification for native calls.

POSIX reports failures in several incompatible ways. Each bridged operation is
assigned one ``ResponseShape`` when it is defined, and that shape alone decides
how the native return value and errno become an ``Outcome``:

ERRNO_IS_TRUTH
    The return value is ignored and only errno matters. Used when the return
    value is ambiguous, may overflow, or collides with the error sentinel
    (``readlink``, ``strftime``, ``times``, ``clock_gettime``).
ERRNO_ON_SENTINEL
    "0 on success, -1 on failure with errno set" (``stat``, ``mkdir``,
    ``uname``, ...). errno is reported only when the sentinel came back.
NULL_MEANS_LOOKUP_FAILURE
    A pointer result where NULL means "not found" (``getpwnam``,
    ``localtime``, ``opendir``). POSIX leaves errno undefined on a negative
    lookup, so when errno is still 0 the policy's ``not_found_code`` is
    reported instead.
PASSTHROUGH
    The return value is the result and there is no error channel
    (``time``, ``umask``, ``mktime``).

errno is not reset by a successful call, so it is always cleared right before
the native call. The sequence clear -> call -> read runs under a lock so
concurrent callers sharing the indicator never interleave.
"""

import ctypes
import errno
import logging
import threading
from contextlib import nullcontext
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from posix_bridge.outcome import Outcome

logger = logging.getLogger(__name__)


class ResponseShape(Enum):
    """How an operation's native result maps to an outcome."""
    ERRNO_IS_TRUTH = "errno-is-truth"
    ERRNO_ON_SENTINEL = "errno-on-negative-sentinel"
    NULL_MEANS_LOOKUP_FAILURE = "null-means-lookup-failure"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class ClassifierPolicy:
    """Tunable parts of classification.

    Attributes:
        not_found_code: Reported when a lookup returned NULL and left errno unset
        sentinel: Native failure sentinel for ERRNO_ON_SENTINEL
        unset_failure_code: Reported when the sentinel came back but errno is 0
    """
    not_found_code: int = errno.ENOENT
    sentinel: int = -1
    unset_failure_code: int = errno.EIO


DEFAULT_POLICY = ClassifierPolicy()


# ============================================================================
# ERRNO INDICATORS
# ============================================================================

class ErrnoIndicator:
    """The side channel a native call reports its error code through."""

    def clear(self) -> None:
        self.set(0)

    def get(self) -> int:
        raise NotImplementedError

    def set(self, code: int) -> None:
        raise NotImplementedError


class CtypesErrno(ErrnoIndicator):
    """ctypes' private, thread-local errno copy.

    Only meaningful for functions loaded from a ``CDLL(..., use_errno=True)``;
    ctypes swaps the copy with the real errno around every such call.
    """

    def get(self) -> int:
        return ctypes.get_errno()

    def set(self, code: int) -> None:
        ctypes.set_errno(code)


class LocalErrno(ErrnoIndicator):
    """Thread-local errno used by the simulated native layer."""

    def __init__(self):
        self._local = threading.local()

    def get(self) -> int:
        return getattr(self._local, "value", 0)

    def set(self, code: int) -> None:
        self._local.value = code


# ============================================================================
# CLASSIFICATION
# ============================================================================

def _is_null(result: Any) -> bool:
    if result is None:
        return True
    if isinstance(result, int):
        return result == 0
    # ctypes pointers are falsy when NULL
    return not bool(result)


def classify(
    shape: ResponseShape,
    result: Any,
    code: int,
    policy: ClassifierPolicy = DEFAULT_POLICY,
) -> Outcome:
    """Turn a native result and the errno read after the call into an Outcome.

    The success value is the raw native result only for PASSTHROUGH; for the
    other shapes the wrapper builds the value from its out-parameters.

    Args:
        shape: The operation's response shape
        result: Raw native return value
        code: errno as read right after the call
        policy: Classification policy

    Returns:
        Classified outcome
    """
    if shape is ResponseShape.PASSTHROUGH:
        return Outcome.success(result)

    if shape is ResponseShape.ERRNO_IS_TRUTH:
        return Outcome.native_error(code) if code else Outcome.success()

    if shape is ResponseShape.ERRNO_ON_SENTINEL:
        if result == policy.sentinel:
            return Outcome.native_error(code or policy.unset_failure_code)
        return Outcome.success()

    if shape is ResponseShape.NULL_MEANS_LOOKUP_FAILURE:
        if _is_null(result):
            return Outcome.native_error(code or policy.not_found_code)
        return Outcome.success()

    raise ValueError(f"Unknown response shape: {shape!r}")


def invoke(
    shape: ResponseShape,
    call: Callable[[], Any],
    indicator: ErrnoIndicator,
    policy: ClassifierPolicy = DEFAULT_POLICY,
    lock: Optional[threading.RLock] = None,
) -> Outcome:
    """Run one native call as an atomic clear -> call -> read unit and classify it.

    Args:
        shape: The operation's response shape
        call: Zero-argument callable performing exactly the native call
        indicator: errno channel the call reports through
        policy: Classification policy
        lock: Lock shared by every caller of ``indicator``

    Returns:
        Classified outcome
    """
    with lock if lock is not None else nullcontext():
        indicator.clear()
        result = call()
        code = indicator.get()

    outcome = classify(shape, result, code, policy)
    logger.debug(f"{shape.value}: result={result!r} errno={code} -> {outcome.kind.name}")
    return outcome
