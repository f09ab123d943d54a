"""
Named parameter tables for the operations that take stringified options.

Values come from the host's own constants so they always match the C library
the bridge is talking to. Names whose constant the platform does not define
are left out of the table.
"""

import syslog
import time
from typing import Dict, Sequence, Tuple

from posix_bridge.flags import ParamTable


def _available(module, prefix: str, names: Sequence[str]) -> Tuple[Tuple[str, int], ...]:
    return tuple(
        (name, getattr(module, prefix + name))
        for name in names
        if hasattr(module, prefix + name)
    )


CLOCK_IDS = ParamTable("clock_id", _available(time, "CLOCK_", (
    "REALTIME",
    "MONOTONIC",
    "MONOTONIC_RAW",
    "PROCESS_CPUTIME_ID",
    "THREAD_CPUTIME_ID",
)))

LOG_OPTIONS = ParamTable("log_option", _available(syslog, "LOG_", (
    "CONS",
    "NDELAY",
    "NOWAIT",
    "PID",
)))

LOG_FACILITIES = ParamTable("log_facility", _available(syslog, "LOG_", (
    "AUTH",
    "AUTHPRIV",
    "CRON",
    "DAEMON",
    "FTP",
    "KERN",
    "LOCAL0",
    "LOCAL1",
    "LOCAL2",
    "LOCAL3",
    "LOCAL4",
    "LOCAL5",
    "LOCAL6",
    "LOCAL7",
    "LPR",
    "MAIL",
    "NEWS",
    "SYSLOG",
    "USER",
    "UUCP",
)))

LOG_PRIORITIES = ParamTable("log_priority", _available(syslog, "LOG_", (
    "EMERG",
    "ALERT",
    "CRIT",
    "ERR",
    "WARNING",
    "NOTICE",
    "INFO",
    "DEBUG",
)))

TABLES: Dict[str, ParamTable] = {
    table.name: table
    for table in (CLOCK_IDS, LOG_OPTIONS, LOG_FACILITIES, LOG_PRIORITIES)
}
