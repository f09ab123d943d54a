"""
ctypes bindings to the POSIX C library.

This module provides the real native layer of the bridge. ``LibcBackend``
exposes one method per wrapped C function; each method performs exactly the
native call and nothing else:

- inputs arrive already resolved (option names turned into integers, handles
  turned into native pointers)
- out-parameters are stored as plain Python values on the ``out`` namespace
- the raw native return value is returned unchanged

Classification of the return value and errno happens in
``posix_bridge.classifier``; the backend never interprets failures itself.

The library is loaded with ``use_errno=True``, so the backend's errno
indicator is ctypes' private errno copy (``CtypesErrno``).
"""

import ctypes
import dataclasses
import errno
import logging
import os
import sys
from ctypes import (
    POINTER, Structure, c_char, c_char_p, c_int, c_int64, c_long, c_size_t,
    c_ssize_t, c_uint, c_uint32, c_uint64, c_ulong, c_ushort, c_ubyte, c_void_p,
    byref, create_string_buffer, sizeof,
)
from types import SimpleNamespace
from typing import Any, List, Optional

from posix_bridge._libc_loader import load_libc
from posix_bridge.classifier import CtypesErrno, ErrnoIndicator
from posix_bridge.results import BrokenDownTime

logger = logging.getLogger(__name__)

IS_DARWIN = sys.platform == "darwin"
IS_LINUX = sys.platform.startswith("linux")


# ============================================================================
# CTYPES STRUCTURE DEFINITIONS (match the C headers)
# ============================================================================

class Timespec(Structure):
    """struct timespec"""
    _fields_ = [
        ("tv_sec", c_long),
        ("tv_nsec", c_long),
    ]


class Tm(Structure):
    """struct tm (glibc and BSD both carry tm_gmtoff and tm_zone)."""
    _fields_ = [
        ("tm_sec", c_int),
        ("tm_min", c_int),
        ("tm_hour", c_int),
        ("tm_mday", c_int),
        ("tm_mon", c_int),
        ("tm_year", c_int),
        ("tm_wday", c_int),
        ("tm_yday", c_int),
        ("tm_isdst", c_int),
        ("tm_gmtoff", c_long),
        ("tm_zone", c_char_p),
    ]

    @staticmethod
    def fits(tm: BrokenDownTime) -> bool:
        return all(_fits(value, c_int) for value in dataclasses.astuple(tm))

    @classmethod
    def from_broken_down(cls, tm: BrokenDownTime) -> "Tm":
        return cls(
            tm_sec=tm.sec, tm_min=tm.min, tm_hour=tm.hour, tm_mday=tm.mday,
            tm_mon=tm.mon, tm_year=tm.year, tm_wday=tm.wday, tm_yday=tm.yday,
            tm_isdst=tm.isdst,
        )

    def to_broken_down(self) -> BrokenDownTime:
        return BrokenDownTime(
            sec=self.tm_sec, min=self.tm_min, hour=self.tm_hour, mday=self.tm_mday,
            mon=self.tm_mon, year=self.tm_year, wday=self.tm_wday, yday=self.tm_yday,
            isdst=self.tm_isdst,
        )


class Tms(Structure):
    """struct tms"""
    _fields_ = [
        ("tms_utime", c_long),
        ("tms_stime", c_long),
        ("tms_cutime", c_long),
        ("tms_cstime", c_long),
    ]


if IS_LINUX:
    _UTSNAME_LENGTH = 65
    _UTSNAME_FIELDS = ("sysname", "nodename", "release", "version", "machine", "domainname")
else:
    _UTSNAME_LENGTH = 256
    _UTSNAME_FIELDS = ("sysname", "nodename", "release", "version", "machine")


class Utsname(Structure):
    """struct utsname"""
    _fields_ = [(name, c_char * _UTSNAME_LENGTH) for name in _UTSNAME_FIELDS]


if IS_DARWIN:
    class Passwd(Structure):
        """struct passwd (BSD layout)"""
        _fields_ = [
            ("pw_name", c_char_p),
            ("pw_passwd", c_char_p),
            ("pw_uid", c_uint32),
            ("pw_gid", c_uint32),
            ("pw_change", c_long),
            ("pw_class", c_char_p),
            ("pw_gecos", c_char_p),
            ("pw_dir", c_char_p),
            ("pw_shell", c_char_p),
            ("pw_expire", c_long),
        ]
else:
    class Passwd(Structure):
        """struct passwd (glibc / musl layout)"""
        _fields_ = [
            ("pw_name", c_char_p),
            ("pw_passwd", c_char_p),
            ("pw_uid", c_uint32),
            ("pw_gid", c_uint32),
            ("pw_gecos", c_char_p),
            ("pw_dir", c_char_p),
            ("pw_shell", c_char_p),
        ]


class Group(Structure):
    """struct group"""
    _fields_ = [
        ("gr_name", c_char_p),
        ("gr_passwd", c_char_p),
        ("gr_gid", c_uint32),
        ("gr_mem", POINTER(c_char_p)),
    ]


if IS_DARWIN:
    class Dirent(Structure):
        """struct dirent (64-bit inode layout)"""
        _fields_ = [
            ("d_ino", c_uint64),
            ("d_seekoff", c_uint64),
            ("d_reclen", c_ushort),
            ("d_namlen", c_ushort),
            ("d_type", c_ubyte),
            ("d_name", c_char * 1024),
        ]
else:
    class Dirent(Structure):
        """struct dirent (glibc 64-bit layout)"""
        _fields_ = [
            ("d_ino", c_uint64),
            ("d_off", c_int64),
            ("d_reclen", c_ushort),
            ("d_type", c_ubyte),
            ("d_name", c_char * 256),
        ]


class Sysinfo(Structure):
    """struct sysinfo (Linux only)"""
    _fields_ = [
        ("uptime", c_long),
        ("loads", c_ulong * 3),
        ("totalram", c_ulong),
        ("freeram", c_ulong),
        ("sharedram", c_ulong),
        ("bufferram", c_ulong),
        ("totalswap", c_ulong),
        ("freeswap", c_ulong),
        ("procs", c_ushort),
        ("pad", c_ushort),
        ("totalhigh", c_ulong),
        ("freehigh", c_ulong),
        ("mem_unit", c_uint),
        ("_f", c_char * max(0, 20 - 2 * sizeof(c_long) - sizeof(c_uint))),
    ]


def _bytes(value: Optional[bytes]) -> bytes:
    return value if value is not None else b""


def _fsencode(path: Any) -> bytes:
    return os.fsencode(path)


def _fits(value: int, ctype: Any) -> bool:
    """Whether ``value`` is representable in the signed C type ``ctype``."""
    limit = 1 << (8 * sizeof(ctype) - 1)
    return -limit <= value < limit


def fill_stat(out: SimpleNamespace, st: os.stat_result) -> None:
    """Copy an os.stat_result into ``out`` using struct stat field names."""
    out.dev = st.st_dev
    out.ino = st.st_ino
    out.mode = st.st_mode
    out.nlink = st.st_nlink
    out.uid = st.st_uid
    out.gid = st.st_gid
    out.rdev = getattr(st, "st_rdev", 0)
    out.size = st.st_size
    out.blksize = getattr(st, "st_blksize", 0)
    out.blocks = getattr(st, "st_blocks", 0)
    out.atime = int(st.st_atime)
    out.mtime = int(st.st_mtime)
    out.ctime = int(st.st_ctime)


# ============================================================================
# LIBC BACKEND
# ============================================================================

class LibcBackend:
    """Native layer backed by the process's C library.

    Args:
        libc_path: Explicit path to the C library, or None to search defaults

    Raises:
        LibcNotFoundError: If the C library cannot be loaded
    """

    simulated = False

    def __init__(self, libc_path: Optional[str] = None):
        self.libc = load_libc(libc_path)
        self.errno: ErrnoIndicator = CtypesErrno()
        self._missing: set = set()
        # openlog() keeps the ident pointer, so the buffer must outlive the call
        self._log_ident = None
        self._setup_function_signatures()

    def _function(self, name: str):
        """Look up a libc symbol, preferring the 64-bit inode variant on macOS x86_64."""
        candidates = [name]
        if IS_DARWIN and name in ("opendir", "readdir", "closedir"):
            candidates.insert(0, f"{name}$INODE64")
        for symbol in candidates:
            try:
                return self.libc[symbol]
            except AttributeError:
                continue
        return None

    def _setup_function_signatures(self) -> None:
        """Setup ctypes function signatures for the wrapped libc functions."""
        self._fn = {}

        def declare(name, argtypes, restype):
            fn = self._function(name)
            if fn is None:
                logger.debug(f"libc has no {name}()")
                self._missing.add(name)
                return
            if argtypes is not None:
                fn.argtypes = argtypes
            fn.restype = restype
            self._fn[name] = fn

        # time_t time(time_t *tloc)
        declare("time", [c_void_p], c_long)
        # int clock_gettime(clockid_t clk_id, struct timespec *tp)
        declare("clock_gettime", [c_int, POINTER(Timespec)], c_int)
        # int clock_getres(clockid_t clk_id, struct timespec *res)
        declare("clock_getres", [c_int, POINTER(Timespec)], c_int)
        # struct tm *localtime_r(const time_t *timep, struct tm *result)
        declare("localtime_r", [POINTER(c_long), POINTER(Tm)], POINTER(Tm))
        # struct tm *gmtime_r(const time_t *timep, struct tm *result)
        declare("gmtime_r", [POINTER(c_long), POINTER(Tm)], POINTER(Tm))
        # time_t mktime(struct tm *tm)
        declare("mktime", [POINTER(Tm)], c_long)
        # size_t strftime(char *s, size_t max, const char *format, const struct tm *tm)
        declare("strftime", [c_char_p, c_size_t, c_char_p, POINTER(Tm)], c_size_t)
        # clock_t times(struct tms *buf)
        declare("times", [POINTER(Tms)], c_long)
        # int sysinfo(struct sysinfo *info)
        declare("sysinfo", [POINTER(Sysinfo)], c_int)
        # int uname(struct utsname *buf)
        declare("uname", [POINTER(Utsname)], c_int)
        # int setenv(const char *name, const char *value, int overwrite)
        declare("setenv", [c_char_p, c_char_p, c_int], c_int)
        # int unsetenv(const char *name)
        declare("unsetenv", [c_char_p], c_int)
        # void openlog(const char *ident, int option, int facility)
        declare("openlog", [c_char_p, c_int, c_int], None)
        # void syslog(int priority, const char *format, ...)
        declare("syslog", None, None)
        # mode_t umask(mode_t mask)
        declare("umask", [c_uint], c_uint)
        # ssize_t readlink(const char *path, char *buf, size_t bufsiz)
        declare("readlink", [c_char_p, c_char_p, c_size_t], c_ssize_t)
        # int link(const char *oldpath, const char *newpath)
        declare("link", [c_char_p, c_char_p], c_int)
        # int symlink(const char *target, const char *linkpath)
        declare("symlink", [c_char_p, c_char_p], c_int)
        # int unlink(const char *pathname)
        declare("unlink", [c_char_p], c_int)
        # int mkdir(const char *pathname, mode_t mode)
        declare("mkdir", [c_char_p, c_uint], c_int)
        # int rmdir(const char *pathname)
        declare("rmdir", [c_char_p], c_int)
        # int chmod(const char *pathname, mode_t mode)
        declare("chmod", [c_char_p, c_uint], c_int)
        # int chown(const char *pathname, uid_t owner, gid_t group)
        declare("chown", [c_char_p, c_uint32, c_uint32], c_int)
        # int lchown(const char *pathname, uid_t owner, gid_t group)
        declare("lchown", [c_char_p, c_uint32, c_uint32], c_int)
        # struct passwd *getpwnam(const char *name)
        declare("getpwnam", [c_char_p], POINTER(Passwd))
        # struct passwd *getpwuid(uid_t uid)
        declare("getpwuid", [c_uint32], POINTER(Passwd))
        # struct group *getgrnam(const char *name)
        declare("getgrnam", [c_char_p], POINTER(Group))
        # struct group *getgrgid(gid_t gid)
        declare("getgrgid", [c_uint32], POINTER(Group))
        # void setgrent(void) / struct group *getgrent(void) / void endgrent(void)
        declare("setgrent", [], None)
        declare("getgrent", [], POINTER(Group))
        declare("endgrent", [], None)
        # DIR *opendir(const char *name)
        declare("opendir", [c_char_p], c_void_p)
        # struct dirent *readdir(DIR *dirp)
        declare("readdir", [c_void_p], POINTER(Dirent))
        # int closedir(DIR *dirp)
        declare("closedir", [c_void_p], c_int)

    def _unsupported(self, name: str, result: Any = -1) -> Any:
        """Report ENOSYS for a function this libc lacks."""
        self.errno.set(errno.ENOSYS)
        return result

    # ========================================================================
    # TIME
    # ========================================================================

    def time(self) -> int:
        return self._fn["time"](None)

    def clock_gettime(self, clk_id: int, out: SimpleNamespace) -> int:
        return self._clock("clock_gettime", clk_id, out)

    def clock_getres(self, clk_id: int, out: SimpleNamespace) -> int:
        return self._clock("clock_getres", clk_id, out)

    def _clock(self, name: str, clk_id: int, out: SimpleNamespace) -> int:
        if name in self._missing:
            return self._unsupported(name)
        ts = Timespec()
        rc = self._fn[name](clk_id, byref(ts))
        out.sec = ts.tv_sec
        out.nsec = ts.tv_nsec
        return rc

    def localtime(self, t: int, out: SimpleNamespace):
        return self._broken_down("localtime_r", t, out)

    def gmtime(self, t: int, out: SimpleNamespace):
        return self._broken_down("gmtime_r", t, out)

    def _broken_down(self, name: str, t: int, out: SimpleNamespace):
        out.tm = BrokenDownTime()
        if not _fits(t, c_long):
            self.errno.set(errno.EOVERFLOW)
            return None
        tm = Tm()
        timep = c_long(t)
        result = self._fn[name](byref(timep), byref(tm))
        if result:
            out.tm = tm.to_broken_down()
        return result

    def mktime(self, tm: BrokenDownTime) -> int:
        if not Tm.fits(tm):
            self.errno.set(errno.EOVERFLOW)
            return -1
        native = Tm.from_broken_down(tm)
        return self._fn["mktime"](byref(native))

    def strftime(self, fmt: str, tm: BrokenDownTime, capacity: int, out: SimpleNamespace) -> int:
        if not Tm.fits(tm):
            out.text = b""
            return 0
        # format into a scratch buffer larger than the caller's so an
        # oversized result can be told apart from an empty one
        scratch_size = max(capacity * 8, 1024)
        scratch = create_string_buffer(scratch_size)
        native = Tm.from_broken_down(tm)
        count = self._fn["strftime"](scratch, scratch_size, _fsencode(fmt), byref(native))
        out.text = scratch.value if count else b""
        return count

    def times(self, out: SimpleNamespace) -> int:
        buf = Tms()
        rc = self._fn["times"](byref(buf))
        out.utime = buf.tms_utime
        out.stime = buf.tms_stime
        out.cutime = buf.tms_cutime
        out.cstime = buf.tms_cstime
        return rc

    # ========================================================================
    # SYSTEM
    # ========================================================================

    def sysinfo(self, out: SimpleNamespace) -> int:
        if "sysinfo" in self._missing:
            return self._unsupported("sysinfo")
        info = Sysinfo()
        rc = self._fn["sysinfo"](byref(info))
        if rc == 0:
            out.uptime = info.uptime
            out.load1, out.load5, out.load15 = info.loads
            out.totalram = info.totalram
            out.freeram = info.freeram
            out.sharedram = info.sharedram
            out.bufferram = info.bufferram
            out.totalswap = info.totalswap
            out.freeswap = info.freeswap
            out.procs = info.procs
            out.totalhigh = info.totalhigh
            out.freehigh = info.freehigh
            out.mem_unit = info.mem_unit
        return rc

    def uname(self, out: SimpleNamespace) -> int:
        buf = Utsname()
        rc = self._fn["uname"](byref(buf))
        for name in ("sysname", "nodename", "release", "version", "machine"):
            setattr(out, name, getattr(buf, name) if rc == 0 else b"")
        return rc

    def setenv(self, name: str, value: str, overwrite: int) -> int:
        return self._fn["setenv"](_fsencode(name), _fsencode(value), int(overwrite))

    def unsetenv(self, name: str) -> int:
        return self._fn["unsetenv"](_fsencode(name))

    # ========================================================================
    # SYSLOG
    # ========================================================================

    def openlog(self, ident: str, option: int, facility: int) -> None:
        self._log_ident = create_string_buffer(_fsencode(ident))
        self._fn["openlog"](self._log_ident, option, facility)

    def syslog(self, priority: int, message: str) -> None:
        self._fn["syslog"](c_int(priority), b"%s", c_char_p(_fsencode(message)))

    # ========================================================================
    # FILES AND DIRECTORIES
    # ========================================================================

    def umask(self, mask: int) -> int:
        return self._fn["umask"](mask) & 0o7777

    def stat(self, path: str, out: SimpleNamespace) -> int:
        return self._stat(os.stat, path, out)

    def lstat(self, path: str, out: SimpleNamespace) -> int:
        return self._stat(os.lstat, path, out)

    def _stat(self, fn, path: str, out: SimpleNamespace) -> int:
        # the stat symbol is versioned differently across C libraries, so the
        # host's own stat is the native call here
        try:
            st = fn(path)
        except OSError as e:
            self.errno.set(e.errno or errno.EIO)
            return -1
        fill_stat(out, st)
        return 0

    def readlink(self, path: str, capacity: int, out: SimpleNamespace) -> int:
        buf = create_string_buffer(capacity)
        count = self._fn["readlink"](_fsencode(path), buf, capacity)
        out.target = buf.raw[:count] if count > 0 else b""
        return count

    def link(self, oldpath: str, newpath: str) -> int:
        return self._fn["link"](_fsencode(oldpath), _fsencode(newpath))

    def symlink(self, oldpath: str, newpath: str) -> int:
        return self._fn["symlink"](_fsencode(oldpath), _fsencode(newpath))

    def unlink(self, path: str) -> int:
        return self._fn["unlink"](_fsencode(path))

    def mkdir(self, path: str, mode: int) -> int:
        return self._fn["mkdir"](_fsencode(path), mode)

    def rmdir(self, path: str) -> int:
        return self._fn["rmdir"](_fsencode(path))

    def chmod(self, path: str, mode: int) -> int:
        return self._fn["chmod"](_fsencode(path), mode)

    def chown(self, path: str, uid: int, gid: int) -> int:
        return self._fn["chown"](_fsencode(path), uid, gid)

    def lchown(self, path: str, uid: int, gid: int) -> int:
        return self._fn["lchown"](_fsencode(path), uid, gid)

    # ========================================================================
    # USERS AND GROUPS
    # ========================================================================

    def getpwnam(self, name: str, out: SimpleNamespace):
        return self._passwd(self._fn["getpwnam"](_fsencode(name)), out)

    def getpwuid(self, uid: int, out: SimpleNamespace):
        return self._passwd(self._fn["getpwuid"](uid), out)

    @staticmethod
    def _passwd(result, out: SimpleNamespace):
        if result:
            pw = result.contents
            out.name = _bytes(pw.pw_name)
            out.passwd = _bytes(pw.pw_passwd)
            out.uid = pw.pw_uid
            out.gid = pw.pw_gid
            out.gecos = _bytes(pw.pw_gecos)
            out.dir = _bytes(pw.pw_dir)
            out.shell = _bytes(pw.pw_shell)
        return result

    def getgrnam(self, name: str, out: SimpleNamespace):
        return self._group(self._fn["getgrnam"](_fsencode(name)), out)

    def getgrgid(self, gid: int, out: SimpleNamespace):
        return self._group(self._fn["getgrgid"](gid), out)

    @staticmethod
    def _members(gr: Group) -> List[bytes]:
        members = []
        i = 0
        while gr.gr_mem and gr.gr_mem[i] is not None:
            members.append(gr.gr_mem[i])
            i += 1
        return members

    def _group(self, result, out: SimpleNamespace):
        if result:
            gr = result.contents
            out.name = _bytes(gr.gr_name)
            out.passwd = _bytes(gr.gr_passwd)
            out.gid = gr.gr_gid
            out.members = self._members(gr)
        return result

    def getgrouplist(self, user: str, out: SimpleNamespace) -> None:
        """Collect the names of every group listing ``user`` as a member."""
        wanted = _fsencode(user)
        groups = []
        self._fn["setgrent"]()
        try:
            while True:
                result = self._fn["getgrent"]()
                if not result:
                    # some C libraries flag the end of the enumeration with ENOENT
                    if self.errno.get() == errno.ENOENT:
                        self.errno.clear()
                    break
                gr = result.contents
                if wanted in self._members(gr):
                    groups.append(_bytes(gr.gr_name))
        finally:
            self._fn["endgrent"]()
        out.groups = groups

    # ========================================================================
    # DIRECTORY STREAMS
    # ========================================================================

    def opendir(self, path: str):
        return self._fn["opendir"](_fsencode(path))

    def readdir(self, dirp: int, out: SimpleNamespace):
        result = self._fn["readdir"](dirp)
        out.name = result.contents.d_name if result else b""
        return result

    def closedir(self, dirp: int) -> int:
        return self._fn["closedir"](dirp)
