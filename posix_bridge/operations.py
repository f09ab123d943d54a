"""
Operation catalogue and the PosixBridge dispatcher.

Every bridged operation is declared once in ``OPERATIONS`` with its argument
count and response shape. ``PosixBridge.call`` runs each invocation through
the same pipeline:

1. argument count check (ArgumentCountMismatch, nothing else happens)
2. option name resolution (UnknownOption)
3. handle validation against the registry (HandleInvalid)
4. the native call, classified by the operation's response shape
5. copying string results into fixed-capacity buffers (BufferTooSmall)

The bridge never raises for a classified failure; it returns the Outcome.
Use ``posix_bridge.routines.Posix`` for an exception-raising interface.

Usage:
    from posix_bridge import PosixBridge

    with PosixBridge(simulate=True) as px:
        outcome = px.call("mkdir", "/tmp/work", 0o755)
        if not outcome.ok:
            print(outcome.status)
"""

import dataclasses
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, Iterable, List, Optional

from posix_bridge import buffers
from posix_bridge.buffers import OutputBuffer
from posix_bridge.classifier import ClassifierPolicy, ResponseShape, invoke
from posix_bridge.config import BridgeConfig
from posix_bridge.flags import DELIMITER, try_resolve_flags, try_resolve_one
from posix_bridge.outcome import Outcome
from posix_bridge.registry import HandleRegistry
from posix_bridge.results import (
    BrokenDownTime, ClockTime, GroupEntry, PasswdEntry, ProcessTimes,
    StatResult, SystemInfo, UnameResult,
)
from posix_bridge.tables import CLOCK_IDS, LOG_FACILITIES, LOG_OPTIONS, LOG_PRIORITIES

logger = logging.getLogger(__name__)


# ============================================================================
# OPERATION CATALOGUE
# ============================================================================

@dataclass(frozen=True)
class OperationSpec:
    """Declaration of one bridged operation.

    Attributes:
        name: Operation name
        arity: Number of caller-supplied arguments
        shape: How the native result is classified
        summary: One-line description
    """
    name: str
    arity: int
    shape: ResponseShape
    summary: str


_T = ResponseShape.ERRNO_IS_TRUTH
_S = ResponseShape.ERRNO_ON_SENTINEL
_N = ResponseShape.NULL_MEANS_LOOKUP_FAILURE
_P = ResponseShape.PASSTHROUGH

OPERATIONS: Dict[str, OperationSpec] = {spec.name: spec for spec in (
    OperationSpec("time", 0, _P, "Seconds since the Epoch"),
    OperationSpec("clock_gettime", 1, _T, "Read a clock (REALTIME, MONOTONIC, ...)"),
    OperationSpec("clock_getres", 1, _T, "Resolution of a clock"),
    OperationSpec("localtime", 1, _N, "Break seconds down into local calendar time"),
    OperationSpec("gmtime", 1, _N, "Break seconds down into UTC calendar time"),
    OperationSpec("mktime", 1, _P, "Convert local calendar time to seconds"),
    OperationSpec("strftime", 2, _T, "Format calendar time"),
    OperationSpec("times", 0, _T, "Process CPU times"),
    OperationSpec("sysinfo", 0, _S, "System load and memory statistics"),
    OperationSpec("uname", 0, _S, "System identification"),
    OperationSpec("setenv", 3, _S, "Set an environment variable"),
    OperationSpec("unsetenv", 1, _S, "Remove an environment variable"),
    OperationSpec("openlog", 3, _T, "Open a connection to the system logger"),
    OperationSpec("syslog", 2, _T, "Send a message to the system logger"),
    OperationSpec("umask", 1, _P, "Set the file mode creation mask"),
    OperationSpec("stat", 1, _S, "File status, following symlinks"),
    OperationSpec("lstat", 1, _S, "File status, not following symlinks"),
    OperationSpec("readlink", 1, _T, "Read a symlink's target"),
    OperationSpec("link", 2, _S, "Create a hard link"),
    OperationSpec("symlink", 2, _S, "Create a symbolic link"),
    OperationSpec("unlink", 1, _S, "Remove a directory entry"),
    OperationSpec("mkdir", 2, _S, "Create a directory"),
    OperationSpec("rmdir", 1, _S, "Remove an empty directory"),
    OperationSpec("chmod", 2, _S, "Change file permission bits"),
    OperationSpec("chown", 3, _S, "Change file owner, following symlinks"),
    OperationSpec("lchown", 3, _S, "Change file owner, not following symlinks"),
    OperationSpec("getpwnam", 1, _N, "Password entry by user name"),
    OperationSpec("getpwuid", 1, _N, "Password entry by user id"),
    OperationSpec("getgrnam", 1, _N, "Group entry by group name"),
    OperationSpec("getgrgid", 1, _N, "Group entry by group id"),
    OperationSpec("getgrouplist", 1, _T, "Names of the groups listing a user"),
    OperationSpec("opendir", 1, _N, "Open a directory stream, returning a handle"),
    OperationSpec("readdir", 1, _T, "Next entry name of a directory stream"),
    OperationSpec("closedir", 1, _S, "Close a directory stream and revoke its handle"),
)}


def validate_arity(spec: OperationSpec, argc: int) -> Outcome:
    """Check the caller's argument count against an operation's declared arity.

    Returns:
        Success, or ArgumentCountMismatch
    """
    if argc != spec.arity:
        return Outcome.argument_count_mismatch(spec.arity, argc)
    return Outcome.success()


# ============================================================================
# RESULT COPYING
# ============================================================================

def _copy(data: Any, capacity: int) -> Outcome:
    """Copy a native string into a fresh ``capacity``-byte buffer."""
    buf = OutputBuffer(capacity)
    copied = buf.write(data)
    if not copied.ok:
        return copied
    return Outcome.success(buf.value)


def _copy_fields(out: SimpleNamespace, capacities: Dict[str, int]) -> Outcome:
    """Copy several string out-parameters; the first overflow wins."""
    values = {}
    for name, capacity in capacities.items():
        copied = _copy(getattr(out, name), capacity)
        if not copied.ok:
            return copied
        values[name] = copied.value
    return Outcome.success(values)


def _join(items: Iterable[Any], capacity: int) -> Outcome:
    """Join names with ``|`` into a ``capacity``-byte buffer."""
    buf = OutputBuffer(capacity)
    for index, item in enumerate(items):
        if index:
            appended = buf.append(DELIMITER)
            if not appended.ok:
                return appended
        appended = buf.append(item)
        if not appended.ok:
            return appended
    return Outcome.success(buf.value)


def _broken_down_arg(tm: Any) -> BrokenDownTime:
    if isinstance(tm, BrokenDownTime):
        return tm
    if isinstance(tm, Mapping):
        return BrokenDownTime.from_mapping(tm)
    raise TypeError(f"expected BrokenDownTime or mapping, got {type(tm).__name__}")


def _fields_of(out: SimpleNamespace, result_type) -> Dict[str, Any]:
    return {f.name: getattr(out, f.name) for f in dataclasses.fields(result_type)}


# ============================================================================
# BRIDGE
# ============================================================================

class PosixBridge:
    """Convention-translation layer between Python and the C library.

    Args:
        config: Settings; built from the environment when None
        backend: Native layer to use (LibcBackend or SimulatedBackend); built
            from ``config`` when None
        **overrides: BridgeConfig fields overriding ``config`` or the
            environment (simulate, libc_path, registry_capacity,
            not_found_code, debug)

    Raises:
        LibcNotFoundError: If the C library cannot be loaded (real mode only)
        ValueError: On invalid configuration

    Example:
        with PosixBridge(simulate=True) as px:
            handle = px.opendir("/tmp").value
            while True:
                name = px.readdir(handle).value
                if not name:
                    break
                print(name)
            px.closedir(handle)
    """

    def __init__(self, config: Optional[BridgeConfig] = None, backend: Any = None, **overrides):
        if config is None:
            config = BridgeConfig.from_env(**overrides)
        elif overrides:
            config = dataclasses.replace(
                config, **{key: value for key, value in overrides.items() if value is not None}
            )
        self.config = config

        if config.debug:
            logging.getLogger("posix_bridge").setLevel(logging.DEBUG)

        if backend is None:
            if config.simulate:
                from posix_bridge.simulator import SimulatedBackend

                backend = SimulatedBackend()
            else:
                from posix_bridge.native import LibcBackend

                backend = LibcBackend(config.libc_path)
        self._backend = backend

        self.policy = ClassifierPolicy(not_found_code=config.not_found_code)
        self.registry = HandleRegistry(config.registry_capacity)
        # serializes clear -> call -> read of the shared errno indicator,
        # and handle validation with the native call that uses the handle
        self._lock = threading.RLock()
        self._opened = False

        mode = "SIMULATION" if self.is_simulated() else "native"
        logger.info(f"PosixBridge created ({mode} mode)")

    def __enter__(self) -> "PosixBridge":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        mode = "simulated" if self.is_simulated() else "native"
        return f"PosixBridge({mode}, {self.registry!r})"

    @property
    def backend(self) -> Any:
        return self._backend

    def is_simulated(self) -> bool:
        return bool(getattr(self._backend, "simulated", False))

    def open(self) -> None:
        if self._opened:
            return
        self._opened = True
        logger.info("PosixBridge opened")

    def close(self) -> None:
        """Close every directory stream still registered and clear the registry."""
        leaked = len(self.registry)
        if leaked:
            logger.warning(f"Closing {leaked} directory stream(s) left open")
        with self._lock:
            self.registry.clear(closer=self._backend.closedir)
        if self._opened:
            self._opened = False
            logger.info("PosixBridge closed")

    @staticmethod
    def operations() -> List[OperationSpec]:
        """Return every operation declaration in catalogue order."""
        return list(OPERATIONS.values())

    # ========================================================================
    # DISPATCH
    # ========================================================================

    def call(self, name: str, *args) -> Outcome:
        """Invoke operation ``name`` with positional ``args``.

        Returns:
            The classified Outcome

        Raises:
            ValueError: If ``name`` is not a known operation
        """
        spec = OPERATIONS.get(name)
        if spec is None:
            raise ValueError(f"Unknown operation: {name}")

        outcome = validate_arity(spec, len(args))
        if outcome.ok:
            outcome = getattr(self, f"_op_{name}")(*args)

        logger.debug(f"{name}{args!r} -> {outcome!r}")
        return outcome

    def _native(self, name: str, call: Callable[[], Any]) -> Outcome:
        return invoke(OPERATIONS[name].shape, call, self._backend.errno, self.policy, self._lock)

    # ========================================================================
    # TIME
    # ========================================================================

    def _op_time(self) -> Outcome:
        return self._native("time", self._backend.time)

    def _clock(self, name: str, clock: str) -> Outcome:
        resolved = try_resolve_one(CLOCK_IDS, clock)
        if not resolved.ok:
            return resolved
        out = SimpleNamespace()
        fn = getattr(self._backend, name)
        outcome = self._native(name, lambda: fn(resolved.value, out))
        if not outcome.ok:
            return outcome
        return Outcome.success(ClockTime(out.sec, out.nsec))

    def _op_clock_gettime(self, clock: str) -> Outcome:
        return self._clock("clock_gettime", clock)

    def _op_clock_getres(self, clock: str) -> Outcome:
        return self._clock("clock_getres", clock)

    def _broken_down(self, name: str, seconds: int) -> Outcome:
        out = SimpleNamespace()
        fn = getattr(self._backend, name)
        outcome = self._native(name, lambda: fn(int(seconds), out))
        if not outcome.ok:
            return outcome
        return Outcome.success(out.tm)

    def _op_localtime(self, seconds: int) -> Outcome:
        return self._broken_down("localtime", seconds)

    def _op_gmtime(self, seconds: int) -> Outcome:
        return self._broken_down("gmtime", seconds)

    def _op_mktime(self, tm: Any) -> Outcome:
        tm = _broken_down_arg(tm)
        return self._native("mktime", lambda: self._backend.mktime(tm))

    def _op_strftime(self, fmt: str, tm: Any) -> Outcome:
        tm = _broken_down_arg(tm)
        out = SimpleNamespace()
        outcome = self._native(
            "strftime", lambda: self._backend.strftime(fmt, tm, buffers.STRFTIME_RESULT, out)
        )
        if not outcome.ok:
            return outcome
        return _copy(out.text, buffers.STRFTIME_RESULT)

    def _op_times(self) -> Outcome:
        out = SimpleNamespace()
        outcome = self._native("times", lambda: self._backend.times(out))
        if not outcome.ok:
            return outcome
        return Outcome.success(ProcessTimes(**_fields_of(out, ProcessTimes)))

    # ========================================================================
    # SYSTEM
    # ========================================================================

    def _op_sysinfo(self) -> Outcome:
        out = SimpleNamespace()
        outcome = self._native("sysinfo", lambda: self._backend.sysinfo(out))
        if not outcome.ok:
            return outcome
        return Outcome.success(SystemInfo(**_fields_of(out, SystemInfo)))

    def _op_uname(self) -> Outcome:
        out = SimpleNamespace()
        outcome = self._native("uname", lambda: self._backend.uname(out))
        if not outcome.ok:
            return outcome
        copied = _copy_fields(out, {
            f.name: buffers.UNAME_FIELD for f in dataclasses.fields(UnameResult)
        })
        if not copied.ok:
            return copied
        return Outcome.success(UnameResult(**copied.value))

    def _op_setenv(self, name: str, value: str, overwrite: Any) -> Outcome:
        return self._native(
            "setenv", lambda: self._backend.setenv(name, value, 1 if overwrite else 0)
        )

    def _op_unsetenv(self, name: str) -> Outcome:
        return self._native("unsetenv", lambda: self._backend.unsetenv(name))

    # ========================================================================
    # SYSLOG
    # ========================================================================

    def _op_openlog(self, ident: str, option: str, facility: str) -> Outcome:
        option_mask = try_resolve_flags(LOG_OPTIONS, option)
        if not option_mask.ok:
            return option_mask
        facility_mask = try_resolve_flags(LOG_FACILITIES, facility)
        if not facility_mask.ok:
            return facility_mask
        return self._native(
            "openlog",
            lambda: self._backend.openlog(ident, option_mask.value, facility_mask.value),
        )

    def _op_syslog(self, priority: str, message: str) -> Outcome:
        level = try_resolve_one(LOG_PRIORITIES, priority)
        if not level.ok:
            return level
        return self._native("syslog", lambda: self._backend.syslog(level.value, message))

    # ========================================================================
    # FILES AND DIRECTORIES
    # ========================================================================

    def _op_umask(self, mask: int) -> Outcome:
        return self._native("umask", lambda: self._backend.umask(int(mask)))

    def _stat(self, name: str, path: str) -> Outcome:
        out = SimpleNamespace()
        fn = getattr(self._backend, name)
        outcome = self._native(name, lambda: fn(path, out))
        if not outcome.ok:
            return outcome
        return Outcome.success(StatResult(**_fields_of(out, StatResult)))

    def _op_stat(self, path: str) -> Outcome:
        return self._stat("stat", path)

    def _op_lstat(self, path: str) -> Outcome:
        return self._stat("lstat", path)

    def _op_readlink(self, path: str) -> Outcome:
        capacity = buffers.READLINK_RESULT
        out = SimpleNamespace(count=0)

        def call():
            out.count = self._backend.readlink(path, capacity, out)
            return out.count

        outcome = self._native("readlink", call)
        if not outcome.ok:
            return outcome
        # readlink fills the whole buffer without a terminator when it truncates
        if out.count >= capacity:
            return Outcome.buffer_too_small(capacity)
        return _copy(out.target, capacity)

    def _op_link(self, oldpath: str, newpath: str) -> Outcome:
        return self._native("link", lambda: self._backend.link(oldpath, newpath))

    def _op_symlink(self, oldpath: str, newpath: str) -> Outcome:
        return self._native("symlink", lambda: self._backend.symlink(oldpath, newpath))

    def _op_unlink(self, path: str) -> Outcome:
        return self._native("unlink", lambda: self._backend.unlink(path))

    def _op_mkdir(self, path: str, mode: int) -> Outcome:
        return self._native("mkdir", lambda: self._backend.mkdir(path, int(mode)))

    def _op_rmdir(self, path: str) -> Outcome:
        return self._native("rmdir", lambda: self._backend.rmdir(path))

    def _op_chmod(self, path: str, mode: int) -> Outcome:
        return self._native("chmod", lambda: self._backend.chmod(path, int(mode)))

    def _op_chown(self, path: str, uid: int, gid: int) -> Outcome:
        return self._native("chown", lambda: self._backend.chown(path, int(uid), int(gid)))

    def _op_lchown(self, path: str, uid: int, gid: int) -> Outcome:
        return self._native("lchown", lambda: self._backend.lchown(path, int(uid), int(gid)))

    # ========================================================================
    # USERS AND GROUPS
    # ========================================================================

    def _passwd(self, name: str, key: Any) -> Outcome:
        out = SimpleNamespace()
        fn = getattr(self._backend, name)
        outcome = self._native(name, lambda: fn(key, out))
        if not outcome.ok:
            return outcome
        copied = _copy_fields(out, {
            "name": buffers.PW_NAME,
            "passwd": buffers.PW_PASSWD,
            "gecos": buffers.PW_GECOS,
            "dir": buffers.PW_DIR,
            "shell": buffers.PW_SHELL,
        })
        if not copied.ok:
            return copied
        return Outcome.success(PasswdEntry(uid=out.uid, gid=out.gid, **copied.value))

    def _op_getpwnam(self, name: str) -> Outcome:
        return self._passwd("getpwnam", name)

    def _op_getpwuid(self, uid: int) -> Outcome:
        return self._passwd("getpwuid", int(uid))

    def _group(self, name: str, key: Any) -> Outcome:
        out = SimpleNamespace()
        fn = getattr(self._backend, name)
        outcome = self._native(name, lambda: fn(key, out))
        if not outcome.ok:
            return outcome
        copied = _copy_fields(out, {"name": buffers.GR_NAME, "passwd": buffers.GR_PASSWD})
        if not copied.ok:
            return copied
        members = _join(out.members, buffers.GR_MEMBERS)
        if not members.ok:
            return members
        return Outcome.success(GroupEntry(gid=out.gid, members=members.value, **copied.value))

    def _op_getgrnam(self, name: str) -> Outcome:
        return self._group("getgrnam", name)

    def _op_getgrgid(self, gid: int) -> Outcome:
        return self._group("getgrgid", int(gid))

    def _op_getgrouplist(self, user: str) -> Outcome:
        out = SimpleNamespace()
        outcome = self._native("getgrouplist", lambda: self._backend.getgrouplist(user, out))
        if not outcome.ok:
            return outcome
        return _join(out.groups, buffers.GROUP_LIST)

    # ========================================================================
    # DIRECTORY STREAMS
    # ========================================================================

    def _op_opendir(self, path: str) -> Outcome:
        opened = SimpleNamespace(dirp=None)

        def call():
            opened.dirp = self._backend.opendir(path)
            return opened.dirp

        with self._lock:
            if len(self.registry) >= self.registry.capacity:
                return Outcome.registry_full(self.registry.capacity)

            outcome = self._native("opendir", call)
            if not outcome.ok:
                return outcome

            registered = self.registry.register(opened.dirp)
            if not registered.ok:
                self._backend.closedir(opened.dirp)
            return registered

    def _op_readdir(self, handle: int) -> Outcome:
        out = SimpleNamespace()
        with self._lock:
            dirp = self.registry.lookup(handle)
            if not dirp.ok:
                return dirp
            # a NULL entry with errno unset is the end of the stream
            outcome = self._native("readdir", lambda: self._backend.readdir(dirp.value, out))
        if not outcome.ok:
            return outcome
        return _copy(out.name, buffers.DIRENT_NAME)

    def _op_closedir(self, handle: int) -> Outcome:
        with self._lock:
            revoked = self.registry.revoke(handle)
            if not revoked.ok:
                return revoked
            return self._native("closedir", lambda: self._backend.closedir(revoked.value))

    # ========================================================================
    # PUBLIC OPERATIONS
    # ========================================================================

    def time(self) -> Outcome:
        return self.call("time")

    def clock_gettime(self, clock: str) -> Outcome:
        return self.call("clock_gettime", clock)

    def clock_getres(self, clock: str) -> Outcome:
        return self.call("clock_getres", clock)

    def localtime(self, seconds: int) -> Outcome:
        return self.call("localtime", seconds)

    def gmtime(self, seconds: int) -> Outcome:
        return self.call("gmtime", seconds)

    def mktime(self, tm: Any) -> Outcome:
        return self.call("mktime", tm)

    def strftime(self, fmt: str, tm: Any) -> Outcome:
        return self.call("strftime", fmt, tm)

    def times(self) -> Outcome:
        return self.call("times")

    def sysinfo(self) -> Outcome:
        return self.call("sysinfo")

    def uname(self) -> Outcome:
        return self.call("uname")

    def setenv(self, name: str, value: str, overwrite: Any = True) -> Outcome:
        return self.call("setenv", name, value, overwrite)

    def unsetenv(self, name: str) -> Outcome:
        return self.call("unsetenv", name)

    def openlog(self, ident: str, option: str = "", facility: str = "USER") -> Outcome:
        return self.call("openlog", ident, option, facility)

    def syslog(self, priority: str, message: str) -> Outcome:
        return self.call("syslog", priority, message)

    def umask(self, mask: int) -> Outcome:
        return self.call("umask", mask)

    def stat(self, path: str) -> Outcome:
        return self.call("stat", path)

    def lstat(self, path: str) -> Outcome:
        return self.call("lstat", path)

    def readlink(self, path: str) -> Outcome:
        return self.call("readlink", path)

    def link(self, oldpath: str, newpath: str) -> Outcome:
        return self.call("link", oldpath, newpath)

    def symlink(self, oldpath: str, newpath: str) -> Outcome:
        return self.call("symlink", oldpath, newpath)

    def unlink(self, path: str) -> Outcome:
        return self.call("unlink", path)

    def mkdir(self, path: str, mode: int) -> Outcome:
        return self.call("mkdir", path, mode)

    def rmdir(self, path: str) -> Outcome:
        return self.call("rmdir", path)

    def chmod(self, path: str, mode: int) -> Outcome:
        return self.call("chmod", path, mode)

    def chown(self, path: str, uid: int, gid: int) -> Outcome:
        return self.call("chown", path, uid, gid)

    def lchown(self, path: str, uid: int, gid: int) -> Outcome:
        return self.call("lchown", path, uid, gid)

    def getpwnam(self, name: str) -> Outcome:
        return self.call("getpwnam", name)

    def getpwuid(self, uid: int) -> Outcome:
        return self.call("getpwuid", uid)

    def getgrnam(self, name: str) -> Outcome:
        return self.call("getgrnam", name)

    def getgrgid(self, gid: int) -> Outcome:
        return self.call("getgrgid", gid)

    def getgrouplist(self, user: str) -> Outcome:
        return self.call("getgrouplist", user)

    def opendir(self, path: str) -> Outcome:
        return self.call("opendir", path)

    def readdir(self, handle: int) -> Outcome:
        return self.call("readdir", handle)

    def closedir(self, handle: int) -> Outcome:
        return self.call("closedir", handle)
