"""
Host-facing POSIX routines.

``Posix`` wraps a ``PosixBridge`` and turns its outcomes into plain Python
values and exceptions: a failed operation raises the ``PosixBridgeError``
subclass matching its outcome, and ``last_errno`` always holds the status of
the most recent routine (0 on success).

The module also carries helpers the C library does not have: octal mode
conversion, file-type predicates for ``stat`` modes, and ``mkpath`` /
``rmpath`` (``mkdir -p`` and ``rm -r``).

Usage:
    from posix_bridge import PosixBridge
    from posix_bridge.routines import Posix, isdir, octal

    with PosixBridge(simulate=True) as bridge:
        px = Posix(bridge)
        px.mkpath("/tmp/a/b/c")
        st = px.stat("/tmp/a")
        print(isdir(st["mode"]), octal(st["mode"]))  # True 0755
"""

import logging
import os
import stat as stat_mode
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Union

from posix_bridge.operations import PosixBridge
from posix_bridge.outcome import Outcome

logger = logging.getLogger(__name__)

Mode = Union[int, str]

GECOS_FIELDS = ("fullname", "office", "workphone", "homephone")


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def strerror(code: int) -> str:
    """Return the message for an errno, or "" for 0."""
    return os.strerror(code) if code else ""


def mode(value: Mode) -> int:
    """Convert an octal permission representation to an integer.

    Accepts the octal digits as a string (``"0755"``, ``"755"``,
    ``"0o755"``) or as a decimal-looking int (``755``).

    Raises:
        ValueError: If the value contains non-octal digits
    """
    text = str(value).strip()
    if text.lower().startswith("0o"):
        text = text[2:]
    try:
        return int(text, 8)
    except ValueError:
        raise ValueError(f"not an octal mode: {value!r}") from None


def octal(value: int) -> str:
    """Return the low 12 bits of a mode as a 4-digit octal string (``"0644"``)."""
    return format(value & 0o7777, "04o")


def _as_mode(value: Mode) -> int:
    # ints are modes (0o755), strings are octal digits ("0755")
    if isinstance(value, int):
        return value
    return mode(value)


# File-type predicates on the "mode" field of stat()

def isreg(st_mode: int) -> bool:
    return stat_mode.S_ISREG(st_mode)


def isdir(st_mode: int) -> bool:
    return stat_mode.S_ISDIR(st_mode)


def ischr(st_mode: int) -> bool:
    return stat_mode.S_ISCHR(st_mode)


def isblk(st_mode: int) -> bool:
    return stat_mode.S_ISBLK(st_mode)


def isfifo(st_mode: int) -> bool:
    return stat_mode.S_ISFIFO(st_mode)


def islnk(st_mode: int) -> bool:
    return stat_mode.S_ISLNK(st_mode)


def issock(st_mode: int) -> bool:
    return stat_mode.S_ISSOCK(st_mode)


def split_gecos(gecos: str) -> Dict[str, str]:
    """Split a comma-separated GECOS field into its four conventional parts."""
    parts = gecos.split(",")
    parts += [""] * (len(GECOS_FIELDS) - len(parts))
    return dict(zip(GECOS_FIELDS, parts))


# ============================================================================
# ROUTINES
# ============================================================================

class Posix:
    """Exception-raising POSIX routines on top of a PosixBridge.

    Args:
        bridge: The bridge to call through

    Attributes:
        last_errno: Status code of the most recent routine (0 on success)

    Example:
        px = Posix(PosixBridge(simulate=True))
        px.setenv("LANG", "C")
        try:
            px.rmdir("/missing")
        except NativeError as e:
            print(e.errno, px.last_errno)  # 2 2
    """

    def __init__(self, bridge: PosixBridge):
        self.bridge = bridge
        self.last_errno = 0

    def _run(self, name: str, *args) -> Any:
        outcome = self.bridge.call(name, *args)
        self.last_errno = outcome.status
        return outcome.unwrap(name)

    def _try(self, name: str, *args) -> Optional[Any]:
        """Run without raising; None on failure."""
        outcome: Outcome = self.bridge.call(name, *args)
        self.last_errno = outcome.status
        return outcome.value if outcome.ok else None

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def time(self) -> int:
        return self._run("time")

    def localtime(self, t: Optional[int] = None) -> Dict[str, int]:
        """Local calendar time of ``t`` (default: now) as a dict."""
        return self._run("localtime", self.time() if t is None else t).as_dict()

    def gmtime(self, t: Optional[int] = None) -> Dict[str, int]:
        """UTC calendar time of ``t`` (default: now) as a dict."""
        return self._run("gmtime", self.time() if t is None else t).as_dict()

    def clock_gettime(self, clock: str = "REALTIME") -> Dict[str, int]:
        return asdict(self._run("clock_gettime", clock))

    def clock_getres(self, clock: str = "REALTIME") -> Dict[str, int]:
        return asdict(self._run("clock_getres", clock))

    def strftime(self, fmt: str, tm: Any) -> str:
        return self._run("strftime", fmt, tm)

    def mktime(self, tm: Any) -> int:
        return self._run("mktime", tm)

    def times(self) -> Dict[str, int]:
        return asdict(self._run("times"))

    # ------------------------------------------------------------------
    # System
    # ------------------------------------------------------------------

    def setenv(self, name: str, value: str, overwrite: bool = True) -> None:
        self._run("setenv", name, value, overwrite)

    def unsetenv(self, name: str) -> None:
        self._run("unsetenv", name)

    def sysinfo(self) -> Dict[str, int]:
        return asdict(self._run("sysinfo"))

    def uname(self) -> Dict[str, str]:
        return asdict(self._run("uname"))

    def openlog(self, ident: str, option: str = "", facility: str = "USER") -> None:
        """Configure syslog.

        Args:
            ident: Prefix of every message
            option: ``|``-joined CONS, NDELAY, NOWAIT, PID (case-insensitive)
            facility: AUTH, AUTHPRIV, CRON, DAEMON, FTP, KERN, LOCAL0-7, LPR,
                MAIL, NEWS, SYSLOG, USER or UUCP
        """
        self._run("openlog", ident, option, facility)

    def syslog(self, message: str, priority: str = "NOTICE") -> None:
        """Log ``message`` at ``priority`` (EMERG ... DEBUG)."""
        self._run("syslog", priority, message)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def chmod(self, path: str, perm: Mode) -> None:
        self._run("chmod", path, _as_mode(perm))

    def chown(self, path: str, uid: int, gid: int) -> None:
        self._run("chown", path, uid, gid)

    def lchown(self, path: str, uid: int, gid: int) -> None:
        self._run("lchown", path, uid, gid)

    def mkdir(self, path: str, perm: Mode = 0o755) -> None:
        self._run("mkdir", path, _as_mode(perm))

    def rmdir(self, path: str) -> None:
        self._run("rmdir", path)

    def unlink(self, path: str) -> None:
        self._run("unlink", path)

    def link(self, oldpath: str, newpath: str) -> None:
        self._run("link", oldpath, newpath)

    def symlink(self, oldpath: str, newpath: str) -> None:
        self._run("symlink", oldpath, newpath)

    def readlink(self, path: str) -> str:
        return self._run("readlink", path)

    def umask(self, mask: Mode) -> str:
        """Set the umask; returns the previous one as an octal string."""
        return octal(self._run("umask", _as_mode(mask)))

    def stat(self, path: str) -> Optional[Dict[str, int]]:
        """File status as a dict, or None (with ``last_errno`` set) on failure.

        Does not raise, so it doubles as an existence test.
        """
        result = self._try("stat", path)
        return asdict(result) if result is not None else None

    def lstat(self, path: str) -> Optional[Dict[str, int]]:
        """Like :meth:`stat` but reports on a symlink itself."""
        result = self._try("lstat", path)
        return asdict(result) if result is not None else None

    def opendir(self, path: str) -> int:
        return self._run("opendir", path)

    def readdir(self, handle: int) -> str:
        """Next entry name, or "" at the end of the stream."""
        return self._run("readdir", handle)

    def closedir(self, handle: int) -> None:
        self._run("closedir", handle)

    def listdir(self, path: str) -> List[str]:
        """All entry names of a directory except "." and ".."."""
        handle = self.opendir(path)
        names = []
        try:
            while True:
                name = self.readdir(handle)
                if not name:
                    break
                if name not in (".", ".."):
                    names.append(name)
        finally:
            self.bridge.closedir(handle)
        return names

    # ------------------------------------------------------------------
    # Non-POSIX helpers
    # ------------------------------------------------------------------

    def mkpath(self, path: str, perm: Mode = 0o755) -> None:
        """Create ``path`` and any missing parents, like ``mkdir -p``."""
        parts = path.split("/")
        for i in range(1, len(parts) + 1):
            prefix = "/".join(parts[:i])
            if not prefix or not parts[i - 1]:
                continue
            if self.stat(prefix) is None:
                self.mkdir(prefix, perm)

    def rmpath(self, path: str) -> None:
        """Remove ``path`` recursively, like ``rm -r``.

        Symlinks are removed, never followed.
        """
        entry = self._run("lstat", path)
        if isdir(entry.mode):
            for name in self.listdir(path):
                self.rmpath(f"{path.rstrip('/')}/{name}")
            self.rmdir(path)
        else:
            self.unlink(path)
        logger.debug(f"Removed {path}")

    # ------------------------------------------------------------------
    # Users and groups
    # ------------------------------------------------------------------

    @staticmethod
    def _passwd_dict(entry) -> Dict[str, Any]:
        data = asdict(entry)
        data["gecos"] = split_gecos(entry.gecos)
        return data

    def getpwnam(self, name: str) -> Dict[str, Any]:
        """Password entry with ``gecos`` split into fullname, office, workphone, homephone."""
        return self._passwd_dict(self._run("getpwnam", name))

    def getpwuid(self, uid: int) -> Dict[str, Any]:
        return self._passwd_dict(self._run("getpwuid", uid))

    def getgrnam(self, name: str) -> Dict[str, Any]:
        return asdict(self._run("getgrnam", name))

    def getgrgid(self, gid: int) -> Dict[str, Any]:
        return asdict(self._run("getgrgid", gid))

    def getgrouplist(self, user: str) -> str:
        """``|``-joined names of the groups listing ``user`` as a member."""
        return self._run("getgrouplist", user)
