"""
Result payloads returned in ``Outcome.value`` by the bridged operations.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping

from posix_bridge.flags import DELIMITER


@dataclass(frozen=True)
class ClockTime:
    """Seconds and nanoseconds from clock_gettime / clock_getres."""
    sec: int
    nsec: int


@dataclass(frozen=True)
class BrokenDownTime:
    """Calendar time split into components, as in ``struct tm``.

    ``mon`` counts from 0 and ``year`` from 1900.
    """
    sec: int = 0
    min: int = 0
    hour: int = 0
    mday: int = 1
    mon: int = 0
    year: int = 70
    wday: int = 0
    yday: int = 0
    isdst: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BrokenDownTime":
        """Build from a dict such as the one routines.localtime() returns."""
        return cls(**{f.name: int(data[f.name]) for f in fields(cls) if f.name in data})

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class ProcessTimes:
    """CPU times in clock ticks, as in ``struct tms``."""
    utime: int
    stime: int
    cutime: int
    cstime: int


@dataclass(frozen=True)
class SystemInfo:
    """Load averages and memory figures, as in Linux ``struct sysinfo``."""
    uptime: int
    load1: int
    load5: int
    load15: int
    totalram: int
    freeram: int
    sharedram: int
    bufferram: int
    totalswap: int
    freeswap: int
    procs: int
    totalhigh: int
    freehigh: int
    mem_unit: int


@dataclass(frozen=True)
class UnameResult:
    sysname: str
    nodename: str
    release: str
    version: str
    machine: str


@dataclass(frozen=True)
class StatResult:
    """File status, as in ``struct stat``; times are whole seconds."""
    dev: int
    ino: int
    mode: int
    nlink: int
    uid: int
    gid: int
    rdev: int
    size: int
    blksize: int
    blocks: int
    atime: int
    mtime: int
    ctime: int


@dataclass(frozen=True)
class PasswdEntry:
    name: str
    passwd: str
    uid: int
    gid: int
    gecos: str
    dir: str
    shell: str


@dataclass(frozen=True)
class GroupEntry:
    """Group database entry; ``members`` is a ``|``-joined list of user names."""
    name: str
    passwd: str
    gid: int
    members: str

    @property
    def member_list(self) -> List[str]:
        return self.members.split(DELIMITER) if self.members else []
