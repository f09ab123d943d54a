"""
Tests for stringified option resolution and the parameter tables.
"""

import errno
import syslog
import time

import pytest

from posix_bridge.exceptions import UnknownOptionError
from posix_bridge.flags import (
    ParamTable,
    join_flags,
    resolve_flags,
    resolve_one,
    try_resolve_flags,
    try_resolve_one,
)
from posix_bridge.outcome import OutcomeKind
from posix_bridge.tables import CLOCK_IDS, LOG_FACILITIES, LOG_OPTIONS, LOG_PRIORITIES, TABLES

OPTIONS = ParamTable("log_option", [
    ("CONS", 0x02),
    ("NDELAY", 0x08),
    ("NOWAIT", 0x10),
    ("PID", 0x01),
])


class TestParamTable:
    """Tests for ParamTable."""

    def test_lookup_case_insensitive(self):
        assert OPTIONS.lookup("ndelay") == 0x08
        assert OPTIONS.lookup("NDelay") == 0x08

    def test_lookup_missing(self):
        assert OPTIONS.lookup("BOGUS") is None

    def test_container_protocol(self):
        assert len(OPTIONS) == 4
        assert "pid" in OPTIONS
        assert "BOGUS" not in OPTIONS
        assert 1 not in OPTIONS
        assert list(OPTIONS)[0] == ("CONS", 0x02)

    def test_names_and_values_in_order(self):
        assert OPTIONS.names() == ["CONS", "NDELAY", "NOWAIT", "PID"]
        assert OPTIONS.values() == [0x02, 0x08, 0x10, 0x01]

    def test_rejects_duplicate_names(self):
        with pytest.raises(ValueError):
            ParamTable("t", [("PID", 1), ("pid", 2)])

    def test_rejects_empty_name(self):
        with pytest.raises(ValueError):
            ParamTable("t", [("", 1)])

    def test_rejects_delimiter_in_name(self):
        with pytest.raises(ValueError):
            ParamTable("t", [("A|B", 1)])


class TestResolveOne:
    """Tests for single-name resolution."""

    def test_resolves(self):
        assert resolve_one(OPTIONS, "NOWAIT") == 0x10

    def test_case_insensitive(self):
        assert resolve_one(OPTIONS, "nowait") == resolve_one(OPTIONS, "NOWAIT")

    @pytest.mark.parametrize("name", ["", "BOGUS", "PI", "LOG_PID", " PID", "PID|CONS"])
    def test_unknown(self, name):
        with pytest.raises(UnknownOptionError) as exc_info:
            resolve_one(OPTIONS, name)
        assert exc_info.value.token == name
        assert exc_info.value.context["table"] == "log_option"

    def test_try_form(self):
        assert try_resolve_one(OPTIONS, "PID").value == 0x01
        outcome = try_resolve_one(OPTIONS, "BOGUS")
        assert outcome.kind is OutcomeKind.UNKNOWN_OPTION
        assert outcome.detail == "BOGUS"
        assert outcome.status == errno.EINVAL


class TestResolveFlags:
    """Tests for |-joined flag expressions."""

    def test_single(self):
        assert resolve_flags(OPTIONS, "PID") == 0x01

    def test_combined(self):
        assert resolve_flags(OPTIONS, "PID|CONS") == 0x03

    def test_order_and_case_do_not_matter(self):
        assert resolve_flags(OPTIONS, "cons|Pid") == resolve_flags(OPTIONS, "PID|CONS")

    def test_repeated_name_is_idempotent(self):
        assert resolve_flags(OPTIONS, "PID|pid|PID") == 0x01

    def test_empty_expression_is_zero(self):
        assert resolve_flags(OPTIONS, "") == 0

    def test_first_bad_token_reported(self):
        with pytest.raises(UnknownOptionError) as exc_info:
            resolve_flags(OPTIONS, "PID|FOO|BAR")
        assert exc_info.value.token == "FOO"
        assert exc_info.value.expression == "PID|FOO|BAR"

    @pytest.mark.parametrize("expression", ["PID|", "|PID", "|", "PID||CONS"])
    def test_empty_token_is_unknown(self, expression):
        with pytest.raises(UnknownOptionError) as exc_info:
            resolve_flags(OPTIONS, expression)
        assert exc_info.value.token == ""

    def test_whitespace_not_trimmed(self):
        with pytest.raises(UnknownOptionError):
            resolve_flags(OPTIONS, "PID | CONS")

    def test_caller_string_unchanged(self):
        expression = "pid|cons"
        resolve_flags(OPTIONS, expression)
        assert expression == "pid|cons"

    def test_join_round_trip(self):
        expression = join_flags(["NDELAY", "PID"])
        assert expression == "NDELAY|PID"
        assert resolve_flags(OPTIONS, expression) == 0x09

    def test_try_form(self):
        assert try_resolve_flags(OPTIONS, "PID|CONS").value == 0x03
        outcome = try_resolve_flags(OPTIONS, "PID|BOGUS")
        assert outcome.kind is OutcomeKind.UNKNOWN_OPTION
        assert outcome.context == {"token": "BOGUS", "expression": "PID|BOGUS"}


class TestTables:
    """Tests for the built-in parameter tables."""

    def test_tables_by_name(self):
        assert set(TABLES) == {"clock_id", "log_option", "log_facility", "log_priority"}

    def test_log_values_match_host_constants(self):
        assert resolve_flags(LOG_OPTIONS, "PID|NDELAY") == syslog.LOG_PID | syslog.LOG_NDELAY
        assert resolve_one(LOG_FACILITIES, "local0") == syslog.LOG_LOCAL0
        assert resolve_one(LOG_PRIORITIES, "notice") == syslog.LOG_NOTICE

    def test_priorities_complete(self):
        assert LOG_PRIORITIES.names() == [
            "EMERG", "ALERT", "CRIT", "ERR", "WARNING", "NOTICE", "INFO", "DEBUG",
        ]

    @pytest.mark.skipif(not hasattr(time, "CLOCK_REALTIME"), reason="no clock_gettime")
    def test_clock_ids(self):
        assert resolve_one(CLOCK_IDS, "REALTIME") == time.CLOCK_REALTIME
        assert resolve_one(CLOCK_IDS, "monotonic") == time.CLOCK_MONOTONIC

    def test_prefixed_names_rejected(self):
        with pytest.raises(UnknownOptionError):
            resolve_one(LOG_PRIORITIES, "LOG_NOTICE")
