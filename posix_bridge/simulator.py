"""
Simulated native layer for testing and development.

``SimulatedBackend`` offers the same primitives as ``LibcBackend`` but keeps
all state in memory, so the bridge can run without touching the host:

- A virtual clock (``now``) that only moves when told to
- A virtual file tree with directories, regular files, symlinks, hard links,
  permission bits and owners
- An environment dict
- A syslog capture list (``messages``)
- User and group databases
- A umask
- Directory streams as opaque objects

Failures are reported the way the C library reports them: a sentinel return
value plus an errno stored in the backend's thread-local indicator.

Usage:
    from posix_bridge import PosixBridge
    from posix_bridge.simulator import SimulatedBackend

    backend = SimulatedBackend(files={"/etc/motd": b"hello"})
    with PosixBridge(backend=backend) as px:
        st = px.stat("/etc/motd").value
        print(st.size)  # 5
"""

import calendar
import errno
import logging
import stat as stat_mode
import time
from dataclasses import astuple, dataclass, field
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from posix_bridge.buffers import encode
from posix_bridge.classifier import LocalErrno
from posix_bridge.results import BrokenDownTime
from posix_bridge.tables import CLOCK_IDS

logger = logging.getLogger(__name__)

# Linux gives up after this many symlink hops in one path
MAX_SYMLINKS = 40

CLOCK_TICKS = 100

# struct tm fields are C ints
TM_FIELD_LIMIT = 1 << 31


class _Fail(Exception):
    """Internal: abort a primitive with an errno."""

    def __init__(self, code: int):
        super().__init__(errno.errorcode.get(code, code))
        self.code = code


# ============================================================================
# SIMULATED DATABASE ENTRIES
# ============================================================================

@dataclass
class SimulatedUser:
    """Entry of the simulated password database."""
    name: str
    uid: int
    gid: int
    gecos: str = ""
    dir: str = "/"
    shell: str = "/bin/sh"
    passwd: str = "x"


@dataclass
class SimulatedGroup:
    """Entry of the simulated group database."""
    name: str
    gid: int
    members: List[str] = field(default_factory=list)
    passwd: str = "x"


DEFAULT_USERS = [
    SimulatedUser("root", 0, 0, "root", "/root", "/bin/bash"),
    SimulatedUser("daemon", 1, 1, "daemon", "/usr/sbin", "/usr/sbin/nologin"),
    SimulatedUser("nobody", 65534, 65534, "nobody", "/nonexistent", "/usr/sbin/nologin"),
]

DEFAULT_GROUPS = [
    SimulatedGroup("root", 0),
    SimulatedGroup("daemon", 1),
    SimulatedGroup("wheel", 10, ["root"]),
    SimulatedGroup("staff", 50, ["root", "daemon"]),
    SimulatedGroup("nogroup", 65534),
]


# ============================================================================
# VIRTUAL FILE TREE
# ============================================================================

@dataclass(eq=False)
class SimulatedNode:
    """Inode of the virtual file tree.

    Attributes:
        kind: S_IFDIR, S_IFREG or S_IFLNK
        perm: Permission bits
        children: Directory entries (directories only)
        data: File content (regular files only)
        target: Link target (symlinks only)
    """
    kind: int
    perm: int
    ino: int
    uid: int = 0
    gid: int = 0
    mtime: int = 0
    nlink: int = 1
    children: Dict[str, "SimulatedNode"] = field(default_factory=dict)
    data: bytes = b""
    target: str = ""

    @property
    def is_dir(self) -> bool:
        return self.kind == stat_mode.S_IFDIR

    @property
    def is_link(self) -> bool:
        return self.kind == stat_mode.S_IFLNK

    @property
    def size(self) -> int:
        if self.is_link:
            return len(encode(self.target))
        if self.is_dir:
            return 4096
        return len(self.data)


@dataclass(eq=False)
class SimulatedDir:
    """Open directory stream over a snapshot of a directory's entries."""
    path: str
    entries: List[str]
    position: int = 0
    closed: bool = False


def _tm_fits(tm: BrokenDownTime) -> bool:
    return all(-TM_FIELD_LIMIT <= value < TM_FIELD_LIMIT for value in astuple(tm))


def _split(path: str) -> List[str]:
    return [part for part in path.split("/") if part and part != "."]


# ============================================================================
# SIMULATED BACKEND
# ============================================================================

class SimulatedBackend:
    """In-memory native layer.

    Args:
        files: Initial regular files, path -> content (parents are created)
        directories: Initial directories (parents are created)
        symlinks: Initial symlinks, link path -> target
        environ: Initial environment
        users: Password database (defaults to root, daemon, nobody)
        groups: Group database
        now: Initial virtual time in seconds since the Epoch
        utc_offset: Offset of local time from UTC in seconds
        uname: Overrides for the uname() fields
        umask: Initial file mode creation mask
        lookup_leaves_errno_unset: If True, a lookup that finds nothing leaves
            errno at 0 as glibc does; if False it reports ESRCH

    Example:
        backend = SimulatedBackend(now=0, utc_offset=3600)
        with PosixBridge(backend=backend) as px:
            px.localtime(0).value.hour  # 1
    """

    simulated = True

    def __init__(
        self,
        files: Optional[Dict[str, bytes]] = None,
        directories: Optional[List[str]] = None,
        symlinks: Optional[Dict[str, str]] = None,
        environ: Optional[Dict[str, str]] = None,
        users: Optional[List[SimulatedUser]] = None,
        groups: Optional[List[SimulatedGroup]] = None,
        now: int = 1_700_000_000,
        utc_offset: int = 0,
        uname: Optional[Dict[str, str]] = None,
        umask: int = 0o022,
        lookup_leaves_errno_unset: bool = True,
    ):
        self.errno = LocalErrno()
        self.now = now
        self.utc_offset = utc_offset
        self.started = now
        self.environ: Dict[str, str] = dict(environ or {})
        self.users: List[SimulatedUser] = list(DEFAULT_USERS if users is None else users)
        self.groups: List[SimulatedGroup] = list(DEFAULT_GROUPS if groups is None else groups)
        self.lookup_leaves_errno_unset = lookup_leaves_errno_unset
        self.uname_fields = {
            "sysname": "Linux",
            "nodename": "simulated",
            "release": "6.0.0-sim",
            "version": "#1 SMP",
            "machine": "x86_64",
        }
        self.uname_fields.update(uname or {})

        # Syslog capture: dicts with ident, option, facility, priority, message
        self.messages: List[Dict[str, Any]] = []
        self._log_ident = ""
        self._log_option = 0
        self._log_facility = 0

        self._umask = umask & 0o777
        self._next_ino = 1
        self.open_dirs: List[SimulatedDir] = []
        self.root = self._new_node(stat_mode.S_IFDIR, 0o755)
        self.root.nlink = 2

        for path in ["/tmp", *(directories or [])]:
            self._makedirs(path)
        for path, content in (files or {}).items():
            self.add_file(path, content)
        for path, target in (symlinks or {}).items():
            self._check(self.symlink(target, path), path)

        logger.debug("SimulatedBackend created")

    # ========================================================================
    # SETUP HELPERS
    # ========================================================================

    def _new_node(self, kind: int, perm: int, **kwargs) -> SimulatedNode:
        node = SimulatedNode(kind=kind, perm=perm, ino=self._next_ino, mtime=self.now, **kwargs)
        self._next_ino += 1
        return node

    def _check(self, rc: int, path: str) -> None:
        if rc != 0:
            code = self.errno.get()
            raise OSError(code, f"simulated setup failed: {errno.errorcode.get(code, code)}", path)

    def _makedirs(self, path: str) -> None:
        current = ""
        for part in _split(path):
            current += "/" + part
            try:
                node = self._lookup(current)
            except _Fail:
                self._check(self.mkdir(current, 0o755), current)
                continue
            if not node.is_dir:
                raise OSError(errno.ENOTDIR, "not a directory", current)

    def add_file(self, path: str, content: bytes = b"", mode: int = 0o644) -> None:
        """Create (or replace) a regular file, creating missing parents."""
        parts = _split(path)
        if parts[:-1]:
            self._makedirs("/" + "/".join(parts[:-1]))
        parent, name = self._parent(path)
        existing = parent.children.get(name)
        if existing is not None and existing.kind == stat_mode.S_IFREG:
            existing.data = content
            return
        parent.children[name] = self._new_node(stat_mode.S_IFREG, mode & 0o7777, data=content)

    def advance(self, seconds: int) -> None:
        """Move the virtual clock forward."""
        self.now += seconds

    def _fail(self, code: int, result: Any = -1) -> Any:
        self.errno.set(code)
        return result

    # ========================================================================
    # PATH RESOLUTION
    # ========================================================================

    def _lookup(self, path: str, follow_last: bool = True) -> SimulatedNode:
        """Resolve ``path`` (relative paths start at /) to a node."""
        if not path:
            raise _Fail(errno.ENOENT)
        stack = [self.root]
        pending = _split(path)
        hops = 0
        while pending:
            name = pending.pop(0)
            current = stack[-1]
            if not current.is_dir:
                raise _Fail(errno.ENOTDIR)
            if name == "..":
                if len(stack) > 1:
                    stack.pop()
                continue
            child = current.children.get(name)
            if child is None:
                raise _Fail(errno.ENOENT)
            if child.is_link and (pending or follow_last):
                hops += 1
                if hops > MAX_SYMLINKS:
                    raise _Fail(errno.ELOOP)
                if child.target.startswith("/"):
                    stack = [self.root]
                pending = _split(child.target) + pending
                continue
            stack.append(child)
        return stack[-1]

    def _parent(self, path: str):
        """Return (directory node, final name); name is None for the root."""
        if not path:
            raise _Fail(errno.ENOENT)
        parts = _split(path)
        if not parts:
            return self.root, None
        parent = self._lookup("/" + "/".join(parts[:-1]))
        if not parent.is_dir:
            raise _Fail(errno.ENOTDIR)
        return parent, parts[-1]

    # ========================================================================
    # TIME
    # ========================================================================

    def time(self) -> int:
        return self.now

    def clock_gettime(self, clk_id: int, out: SimpleNamespace) -> int:
        if clk_id not in CLOCK_IDS.values():
            return self._fail(errno.EINVAL)
        if clk_id == CLOCK_IDS.lookup("REALTIME"):
            out.sec = self.now
        else:
            out.sec = self.now - self.started
        out.nsec = 0
        return 0

    def clock_getres(self, clk_id: int, out: SimpleNamespace) -> int:
        if clk_id not in CLOCK_IDS.values():
            return self._fail(errno.EINVAL)
        out.sec = 0
        out.nsec = 1
        return 0

    def localtime(self, t: int, out: SimpleNamespace):
        return self._broken_down(t + self.utc_offset, out)

    def gmtime(self, t: int, out: SimpleNamespace):
        return self._broken_down(t, out)

    def _broken_down(self, t: int, out: SimpleNamespace):
        try:
            st = time.gmtime(t)
        except (OverflowError, OSError, ValueError):
            return self._fail(errno.EOVERFLOW, None)
        out.tm = BrokenDownTime(
            sec=st.tm_sec, min=st.tm_min, hour=st.tm_hour, mday=st.tm_mday,
            mon=st.tm_mon - 1, year=st.tm_year - 1900, wday=(st.tm_wday + 1) % 7,
            yday=st.tm_yday - 1, isdst=0,
        )
        return out.tm

    @staticmethod
    def _struct_time(tm: BrokenDownTime) -> "time.struct_time":
        return time.struct_time((
            tm.year + 1900, tm.mon + 1, tm.mday, tm.hour, tm.min, tm.sec,
            (tm.wday - 1) % 7, tm.yday + 1, tm.isdst,
        ))

    def mktime(self, tm: BrokenDownTime) -> int:
        if not _tm_fits(tm):
            return self._fail(errno.EOVERFLOW)
        try:
            seconds = calendar.timegm((tm.year + 1900, tm.mon + 1, tm.mday, tm.hour, tm.min, tm.sec))
        except (OverflowError, ValueError):
            return self._fail(errno.EOVERFLOW)
        return seconds - self.utc_offset

    def strftime(self, fmt: str, tm: BrokenDownTime, capacity: int, out: SimpleNamespace) -> int:
        text = b""
        if _tm_fits(tm):
            try:
                text = encode(time.strftime(fmt, self._struct_time(tm)))
            except (OverflowError, ValueError):
                text = b""
        out.text = text
        return len(text)

    def times(self, out: SimpleNamespace) -> int:
        out.utime = 0
        out.stime = 0
        out.cutime = 0
        out.cstime = 0
        return (self.now - self.started) * CLOCK_TICKS

    # ========================================================================
    # SYSTEM
    # ========================================================================

    def sysinfo(self, out: SimpleNamespace) -> int:
        out.uptime = self.now - self.started
        out.load1 = out.load5 = out.load15 = 0
        out.totalram = 1 << 30
        out.freeram = 1 << 29
        out.sharedram = 0
        out.bufferram = 0
        out.totalswap = 0
        out.freeswap = 0
        out.procs = 1
        out.totalhigh = 0
        out.freehigh = 0
        out.mem_unit = 1
        return 0

    def uname(self, out: SimpleNamespace) -> int:
        for name, value in self.uname_fields.items():
            setattr(out, name, encode(value))
        return 0

    @staticmethod
    def _valid_env_name(name: str) -> bool:
        return bool(name) and "=" not in name

    def setenv(self, name: str, value: str, overwrite: int) -> int:
        if not self._valid_env_name(name):
            return self._fail(errno.EINVAL)
        if overwrite or name not in self.environ:
            self.environ[name] = value
        return 0

    def unsetenv(self, name: str) -> int:
        if not self._valid_env_name(name):
            return self._fail(errno.EINVAL)
        self.environ.pop(name, None)
        return 0

    # ========================================================================
    # SYSLOG
    # ========================================================================

    def openlog(self, ident: str, option: int, facility: int) -> None:
        self._log_ident = ident
        self._log_option = option
        self._log_facility = facility

    def syslog(self, priority: int, message: str) -> None:
        self.messages.append({
            "ident": self._log_ident,
            "option": self._log_option,
            "facility": self._log_facility,
            "priority": priority,
            "message": message,
        })
        logger.debug(f"syslog({priority}): {message}")

    # ========================================================================
    # FILES AND DIRECTORIES
    # ========================================================================

    def umask(self, mask: int) -> int:
        previous = self._umask
        self._umask = mask & 0o777
        return previous

    def stat(self, path: str, out: SimpleNamespace) -> int:
        return self._stat(path, out, follow=True)

    def lstat(self, path: str, out: SimpleNamespace) -> int:
        return self._stat(path, out, follow=False)

    def _stat(self, path: str, out: SimpleNamespace, follow: bool) -> int:
        try:
            node = self._lookup(path, follow_last=follow)
        except _Fail as e:
            return self._fail(e.code)
        out.dev = 1
        out.ino = node.ino
        out.mode = node.kind | node.perm
        out.nlink = node.nlink
        out.uid = node.uid
        out.gid = node.gid
        out.rdev = 0
        out.size = node.size
        out.blksize = 4096
        out.blocks = (node.size + 511) // 512
        out.atime = out.mtime = out.ctime = node.mtime
        return 0

    def readlink(self, path: str, capacity: int, out: SimpleNamespace) -> int:
        try:
            node = self._lookup(path, follow_last=False)
        except _Fail as e:
            return self._fail(e.code)
        if not node.is_link:
            return self._fail(errno.EINVAL)
        # like the C call: silently truncated to the buffer size
        target = encode(node.target)[:capacity]
        out.target = target
        return len(target)

    def _create(self, path: str, make) -> int:
        try:
            parent, name = self._parent(path)
            if name is None or name in parent.children:
                raise _Fail(errno.EEXIST)
            if name == "..":
                raise _Fail(errno.EEXIST)
            parent.children[name] = make()
            parent.mtime = self.now
        except _Fail as e:
            return self._fail(e.code)
        return 0

    def link(self, oldpath: str, newpath: str) -> int:
        try:
            node = self._lookup(oldpath, follow_last=False)
        except _Fail as e:
            return self._fail(e.code)
        if node.is_dir:
            return self._fail(errno.EPERM)
        rc = self._create(newpath, lambda: node)
        if rc == 0:
            node.nlink += 1
        return rc

    def symlink(self, oldpath: str, newpath: str) -> int:
        if not oldpath:
            return self._fail(errno.ENOENT)
        return self._create(
            newpath, lambda: self._new_node(stat_mode.S_IFLNK, 0o777, target=oldpath)
        )

    def _remove(self, path: str, want_dir: bool) -> int:
        try:
            parent, name = self._parent(path)
            if name is None:
                raise _Fail(errno.EBUSY if want_dir else errno.EISDIR)
            if name == "..":
                raise _Fail(errno.ENOTEMPTY if want_dir else errno.EISDIR)
            node = parent.children.get(name)
            if node is None:
                raise _Fail(errno.ENOENT)
            if want_dir:
                if not node.is_dir:
                    raise _Fail(errno.ENOTDIR)
                if node.children:
                    raise _Fail(errno.ENOTEMPTY)
                parent.nlink -= 1
            elif node.is_dir:
                raise _Fail(errno.EISDIR)
            del parent.children[name]
            node.nlink -= 1
            parent.mtime = self.now
        except _Fail as e:
            return self._fail(e.code)
        return 0

    def unlink(self, path: str) -> int:
        return self._remove(path, want_dir=False)

    def rmdir(self, path: str) -> int:
        return self._remove(path, want_dir=True)

    def mkdir(self, path: str, mode: int) -> int:
        def make():
            node = self._new_node(stat_mode.S_IFDIR, mode & 0o7777 & ~self._umask)
            node.nlink = 2
            return node

        rc = self._create(path, make)
        if rc == 0:
            self._parent(path)[0].nlink += 1
        return rc

    def chmod(self, path: str, mode: int) -> int:
        try:
            node = self._lookup(path)
        except _Fail as e:
            return self._fail(e.code)
        node.perm = mode & 0o7777
        return 0

    def _chown(self, path: str, uid: int, gid: int, follow: bool) -> int:
        try:
            node = self._lookup(path, follow_last=follow)
        except _Fail as e:
            return self._fail(e.code)
        # (uid_t)-1 / (gid_t)-1 leave the id unchanged
        if uid not in (-1, 0xFFFFFFFF):
            node.uid = uid
        if gid not in (-1, 0xFFFFFFFF):
            node.gid = gid
        return 0

    def chown(self, path: str, uid: int, gid: int) -> int:
        return self._chown(path, uid, gid, follow=True)

    def lchown(self, path: str, uid: int, gid: int) -> int:
        return self._chown(path, uid, gid, follow=False)

    # ========================================================================
    # USERS AND GROUPS
    # ========================================================================

    def _not_found(self) -> None:
        if not self.lookup_leaves_errno_unset:
            self.errno.set(errno.ESRCH)
        return None

    @staticmethod
    def _fill_user(user: SimulatedUser, out: SimpleNamespace) -> SimulatedUser:
        out.name = encode(user.name)
        out.passwd = encode(user.passwd)
        out.uid = user.uid
        out.gid = user.gid
        out.gecos = encode(user.gecos)
        out.dir = encode(user.dir)
        out.shell = encode(user.shell)
        return user

    @staticmethod
    def _fill_group(group: SimulatedGroup, out: SimpleNamespace) -> SimulatedGroup:
        out.name = encode(group.name)
        out.passwd = encode(group.passwd)
        out.gid = group.gid
        out.members = [encode(member) for member in group.members]
        return group

    def getpwnam(self, name: str, out: SimpleNamespace):
        for user in self.users:
            if user.name == name:
                return self._fill_user(user, out)
        return self._not_found()

    def getpwuid(self, uid: int, out: SimpleNamespace):
        for user in self.users:
            if user.uid == uid:
                return self._fill_user(user, out)
        return self._not_found()

    def getgrnam(self, name: str, out: SimpleNamespace):
        for group in self.groups:
            if group.name == name:
                return self._fill_group(group, out)
        return self._not_found()

    def getgrgid(self, gid: int, out: SimpleNamespace):
        for group in self.groups:
            if group.gid == gid:
                return self._fill_group(group, out)
        return self._not_found()

    def getgrouplist(self, user: str, out: SimpleNamespace) -> None:
        out.groups = [encode(group.name) for group in self.groups if user in group.members]

    # ========================================================================
    # DIRECTORY STREAMS
    # ========================================================================

    def opendir(self, path: str):
        try:
            node = self._lookup(path)
        except _Fail as e:
            return self._fail(e.code, None)
        if not node.is_dir:
            return self._fail(errno.ENOTDIR, None)
        dirp = SimulatedDir(path=path, entries=[".", ".."] + sorted(node.children))
        self.open_dirs.append(dirp)
        return dirp

    def readdir(self, dirp: SimulatedDir, out: SimpleNamespace):
        if dirp.closed:
            return self._fail(errno.EBADF, None)
        if dirp.position >= len(dirp.entries):
            # end of stream: NULL with errno untouched
            out.name = b""
            return None
        name = dirp.entries[dirp.position]
        dirp.position += 1
        out.name = encode(name)
        return name

    def closedir(self, dirp: SimulatedDir) -> int:
        if dirp.closed:
            return self._fail(errno.EBADF)
        dirp.closed = True
        self.open_dirs.remove(dirp)
        return 0
