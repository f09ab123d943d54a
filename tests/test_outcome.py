"""
Tests for outcomes and the exception hierarchy.
"""

import errno
import os

import pytest

from posix_bridge.exceptions import (
    ERROR_CODE_MAP,
    ArgumentCountMismatchError,
    BufferTooSmallError,
    HandleInvalidError,
    NativeError,
    PosixBridgeError,
    RegistryFullError,
    UnknownOptionError,
    create_error_from_outcome,
)
from posix_bridge.outcome import ENODATA, STATUS_CODES, Outcome, OutcomeKind


class TestOutcome:
    """Tests for Outcome construction and queries."""

    def test_success(self):
        outcome = Outcome.success(42)
        assert outcome.ok
        assert outcome.value == 42
        assert outcome.status == 0
        assert outcome.unwrap() == 42

    def test_success_without_value(self):
        outcome = Outcome.success()
        assert outcome.ok
        assert outcome.value is None

    def test_native_error_carries_code(self):
        outcome = Outcome.native_error(errno.ENOENT)
        assert not outcome.ok
        assert outcome.kind is OutcomeKind.NATIVE_ERROR
        assert outcome.status == errno.ENOENT
        assert outcome.value is None

    def test_native_error_rejects_zero(self):
        with pytest.raises(ValueError):
            Outcome.native_error(0)

    @pytest.mark.parametrize("outcome,status", [
        (Outcome.argument_count_mismatch(2, 1), ENODATA),
        (Outcome.unknown_option("BOGUS"), errno.EINVAL),
        (Outcome.buffer_too_small(128, 200), errno.ERANGE),
        (Outcome.handle_invalid(7), errno.EINVAL),
        (Outcome.registry_full(256), errno.EMFILE),
    ])
    def test_bridge_failure_status_codes(self, outcome, status):
        assert not outcome.ok
        assert outcome.status == status

    def test_every_kind_has_a_status(self):
        for kind in OutcomeKind:
            if kind is not OutcomeKind.NATIVE_ERROR:
                assert kind in STATUS_CODES

    def test_structured_context(self):
        assert Outcome.argument_count_mismatch(3, 1).context == {"expected": 3, "got": 1}
        assert Outcome.unknown_option("X", "PID|X").context == {"token": "X", "expression": "PID|X"}
        assert Outcome.buffer_too_small(64, 70).context == {"capacity": 64, "needed": 70}

    def test_context_not_part_of_equality(self):
        assert Outcome.unknown_option("X") == Outcome.unknown_option("X", "PID|X")

    def test_raise_for_outcome_noop_on_success(self):
        Outcome.success().raise_for_outcome()

    def test_unwrap_raises_native_error(self):
        with pytest.raises(NativeError) as exc_info:
            Outcome.native_error(errno.EACCES).unwrap("mkdir")
        assert exc_info.value.errno == errno.EACCES
        assert "mkdir" in exc_info.value.message

    def test_repr(self):
        assert repr(Outcome.success(1)) == "Outcome(SUCCESS, value=1)"
        assert repr(Outcome.native_error(2)) == "Outcome(NATIVE_ERROR, code=2)"
        assert "BOGUS" in repr(Outcome.unknown_option("BOGUS"))


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_str_format(self):
        error = PosixBridgeError("boom", code="PB_ERR_TEST", suggestion="try again")
        assert str(error) == "[PB_ERR_TEST] boom\nSuggestion: try again"

    def test_repr(self):
        error = PosixBridgeError("boom")
        assert "PosixBridgeError" in repr(error)
        assert "boom" in repr(error)

    def test_native_error_is_oserror(self):
        error = NativeError("stat: missing", errno.ENOENT)
        assert isinstance(error, OSError)
        assert isinstance(error, PosixBridgeError)
        assert error.errno == errno.ENOENT
        assert error.strerror == os.strerror(errno.ENOENT)
        assert error.status == errno.ENOENT
        assert error.context["errno"] == errno.ENOENT

    def test_unknown_option_is_value_error(self):
        error = UnknownOptionError("bad", token="X", expression="PID|X")
        assert isinstance(error, ValueError)
        assert error.token == "X"
        assert error.expression == "PID|X"
        assert error.status == errno.EINVAL

    def test_status_per_class(self):
        assert ArgumentCountMismatchError("x").status == ENODATA
        assert BufferTooSmallError("x").status == errno.ERANGE
        assert HandleInvalidError("x").status == errno.EINVAL
        assert RegistryFullError("x").status == errno.EMFILE

    def test_error_code_map_covers_failures(self):
        failures = [kind for kind in OutcomeKind if kind is not OutcomeKind.SUCCESS]
        assert set(ERROR_CODE_MAP) == set(failures)


class TestCreateErrorFromOutcome:
    """Tests for create_error_from_outcome."""

    def test_rejects_success(self):
        with pytest.raises(ValueError):
            create_error_from_outcome(Outcome.success())

    @pytest.mark.parametrize("outcome,cls", [
        (Outcome.native_error(errno.ENOENT), NativeError),
        (Outcome.argument_count_mismatch(1, 0), ArgumentCountMismatchError),
        (Outcome.unknown_option("X"), UnknownOptionError),
        (Outcome.buffer_too_small(128), BufferTooSmallError),
        (Outcome.handle_invalid(99), HandleInvalidError),
        (Outcome.registry_full(256), RegistryFullError),
    ])
    def test_kind_to_class(self, outcome, cls):
        error = create_error_from_outcome(outcome)
        assert type(error) is cls
        assert error.outcome is outcome
        assert error.status == outcome.status

    def test_fields_from_context(self):
        error = create_error_from_outcome(Outcome.argument_count_mismatch(3, 1))
        assert (error.expected, error.got) == (3, 1)

        error = create_error_from_outcome(Outcome.unknown_option("X", "PID|X"))
        assert (error.token, error.expression) == ("X", "PID|X")

        error = create_error_from_outcome(Outcome.buffer_too_small(64, 70))
        assert (error.capacity, error.needed) == (64, 70)

        error = create_error_from_outcome(Outcome.handle_invalid(12))
        assert error.handle == 12

        error = create_error_from_outcome(Outcome.registry_full(256))
        assert error.capacity == 256

    def test_operation_prefix(self):
        error = create_error_from_outcome(Outcome.native_error(errno.ENOENT), operation="stat")
        assert error.message.startswith("stat: ")
        assert error.context["operation"] == "stat"

    def test_outcome_context_not_mutated(self):
        outcome = Outcome.unknown_option("X", "PID|X")
        create_error_from_outcome(outcome, operation="openlog")
        assert outcome.context == {"token": "X", "expression": "PID|X"}
