"""
Tests for the exception-raising routines and mode helpers.
"""

import errno
import stat

import pytest

from posix_bridge.exceptions import (
    ArgumentCountMismatchError,
    BufferTooSmallError,
    HandleInvalidError,
    NativeError,
    UnknownOptionError,
)
from posix_bridge.routines import (
    isblk,
    ischr,
    isdir,
    isfifo,
    islnk,
    isreg,
    issock,
    mode,
    octal,
    split_gecos,
    strerror,
)


class TestModeHelpers:
    """Tests for mode conversion and file-type predicates."""

    @pytest.mark.parametrize("value,expected", [
        ("0755", 0o755),
        ("755", 0o755),
        ("0o644", 0o644),
        (755, 0o755),
        ("4755", 0o4755),
    ])
    def test_mode(self, value, expected):
        assert mode(value) == expected

    @pytest.mark.parametrize("value", ["0789", "rwx", "", 0o755 + 0.5])
    def test_mode_rejects(self, value):
        with pytest.raises(ValueError):
            mode(value)

    def test_octal(self):
        assert octal(0o755) == "0755"
        assert octal(stat.S_IFDIR | 0o700) == "0700"
        assert octal(0o4755) == "4755"

    @pytest.mark.parametrize("predicate,kind", [
        (isreg, stat.S_IFREG),
        (isdir, stat.S_IFDIR),
        (ischr, stat.S_IFCHR),
        (isblk, stat.S_IFBLK),
        (isfifo, stat.S_IFIFO),
        (islnk, stat.S_IFLNK),
        (issock, stat.S_IFSOCK),
    ])
    def test_predicates(self, predicate, kind):
        assert predicate(kind | 0o644)

    def test_symlink_is_not_regular(self):
        assert not isreg(stat.S_IFLNK | 0o777)
        assert not isdir(stat.S_IFSOCK | 0o777)

    def test_strerror(self):
        assert strerror(0) == ""
        assert strerror(errno.ENOENT)

    def test_split_gecos(self):
        assert split_gecos("Alice Smith,Room 42,555-0100,555-0199") == {
            "fullname": "Alice Smith",
            "office": "Room 42",
            "workphone": "555-0100",
            "homephone": "555-0199",
        }

    def test_split_gecos_short(self):
        assert split_gecos("root") == {
            "fullname": "root", "office": "", "workphone": "", "homephone": "",
        }


class TestPosixTime:
    """Tests for the time routines."""

    def test_time(self, posix, backend):
        backend.advance(10)
        assert posix.time() == 10
        assert posix.last_errno == 0

    def test_gmtime_defaults_to_now(self, posix, backend):
        backend.advance(86400)
        assert posix.gmtime()["mday"] == 2

    def test_localtime_dict_round_trips_through_mktime(self, posix):
        tm = posix.localtime(123456)
        assert posix.mktime(tm) == 123456

    def test_strftime(self, posix):
        assert posix.strftime("%H:%M", posix.gmtime(3660)) == "01:01"

    def test_clock_gettime(self, posix, backend):
        backend.advance(7)
        assert posix.clock_gettime() == {"sec": 7, "nsec": 0}

    def test_unknown_clock_raises(self, posix):
        with pytest.raises(UnknownOptionError) as exc_info:
            posix.clock_getres("SUNDIAL")
        assert exc_info.value.token == "SUNDIAL"
        assert posix.last_errno == errno.EINVAL

    def test_times(self, posix):
        assert set(posix.times()) == {"utime", "stime", "cutime", "cstime"}


class TestPosixSystem:
    """Tests for environment, uname, sysinfo and syslog routines."""

    def test_setenv(self, posix, backend):
        posix.setenv("EDITOR", "vi")
        posix.setenv("EDITOR", "emacs", overwrite=False)
        assert backend.environ["EDITOR"] == "vi"
        posix.unsetenv("EDITOR")
        assert "EDITOR" not in backend.environ

    def test_setenv_invalid(self, posix):
        with pytest.raises(NativeError) as exc_info:
            posix.setenv("A=B", "x")
        assert exc_info.value.errno == errno.EINVAL
        assert posix.last_errno == errno.EINVAL

    def test_uname(self, posix):
        assert posix.uname()["sysname"] == "Linux"

    def test_sysinfo(self, posix):
        assert "uptime" in posix.sysinfo()

    def test_syslog(self, posix, backend):
        posix.openlog("app", "pid", "local3")
        posix.syslog("hello")
        posix.syslog("oops", "err")
        assert [m["message"] for m in backend.messages] == ["hello", "oops"]

    def test_syslog_bad_priority(self, posix):
        with pytest.raises(UnknownOptionError):
            posix.syslog("hello", "SHOUT")


class TestPosixFiles:
    """Tests for the file routines."""

    def test_stat_returns_dict(self, posix):
        st = posix.stat("/etc/motd")
        assert isreg(st["mode"])
        assert st["size"] == 6

    def test_stat_missing_returns_none(self, posix):
        assert posix.stat("/missing") is None
        assert posix.last_errno == errno.ENOENT

    def test_lstat(self, posix):
        assert islnk(posix.lstat("/etc/motd.link")["mode"])
        assert posix.lstat("/missing") is None

    def test_mkdir_with_octal_string(self, posix):
        posix.umask(0)
        posix.mkdir("/tmp/d", "0750")
        assert octal(posix.stat("/tmp/d")["mode"]) == "0750"

    def test_mkdir_default_mode(self, posix):
        posix.mkdir("/tmp/d")
        assert octal(posix.stat("/tmp/d")["mode"]) == "0755"

    def test_mkdir_existing_raises(self, posix):
        with pytest.raises(NativeError) as exc_info:
            posix.mkdir("/tmp")
        assert exc_info.value.errno == errno.EEXIST
        assert "mkdir" in exc_info.value.message

    def test_chmod(self, posix):
        posix.chmod("/etc/motd", "600")
        assert octal(posix.stat("/etc/motd")["mode"]) == "0600"
        posix.chmod("/etc/motd", 0o640)
        assert octal(posix.stat("/etc/motd")["mode"]) == "0640"

    def test_chown(self, posix):
        posix.chown("/etc/motd", 1000, 1000)
        assert posix.stat("/etc/motd")["uid"] == 1000
        posix.lchown("/etc/motd.link", 5, 5)
        assert posix.lstat("/etc/motd.link")["gid"] == 5

    def test_umask_returns_octal_string(self, posix):
        assert posix.umask("077") == "0022"
        assert posix.umask(0o022) == "0077"

    def test_links(self, posix):
        posix.link("/etc/motd", "/tmp/hard")
        posix.symlink("/tmp/hard", "/tmp/soft")
        assert posix.readlink("/tmp/soft") == "/tmp/hard"
        posix.unlink("/tmp/soft")
        assert posix.lstat("/tmp/soft") is None

    def test_readlink_too_long_raises(self, posix):
        posix.symlink("t" * 2000, "/tmp/long")
        with pytest.raises(BufferTooSmallError) as exc_info:
            posix.readlink("/tmp/long")
        assert exc_info.value.capacity == 1024
        assert posix.last_errno == errno.ERANGE

    def test_rmdir_not_empty(self, posix):
        with pytest.raises(NativeError) as exc_info:
            posix.rmdir("/home")
        assert exc_info.value.errno == errno.ENOTEMPTY


class TestPosixDirectories:
    """Tests for directory stream routines and the path helpers."""

    def test_listdir(self, posix, bridge):
        assert posix.listdir("/home") == ["alice"]
        assert len(bridge.registry) == 0

    def test_listdir_missing(self, posix):
        with pytest.raises(NativeError):
            posix.listdir("/missing")

    def test_stream_routines(self, posix):
        handle = posix.opendir("/home/alice")
        assert posix.readdir(handle) == "."
        assert posix.readdir(handle) == ".."
        assert posix.readdir(handle) == ""
        posix.closedir(handle)
        with pytest.raises(HandleInvalidError) as exc_info:
            posix.readdir(handle)
        assert exc_info.value.handle == handle

    def test_mkpath(self, posix):
        posix.mkpath("/tmp/a/b/c")
        assert isdir(posix.stat("/tmp/a/b/c")["mode"])

    def test_mkpath_existing(self, posix):
        posix.mkpath("/home/alice")
        posix.mkpath("/home//alice/")
        assert posix.listdir("/home") == ["alice"]

    def test_mkpath_through_file(self, posix):
        with pytest.raises(NativeError) as exc_info:
            posix.mkpath("/etc/motd/sub")
        assert exc_info.value.errno == errno.ENOTDIR

    def test_rmpath(self, posix):
        posix.mkpath("/tmp/a/b")
        posix.symlink("/etc", "/tmp/a/b/etc")
        posix.link("/etc/motd", "/tmp/a/motd")
        posix.rmpath("/tmp/a")
        assert posix.stat("/tmp/a") is None
        assert posix.stat("/etc/motd") is not None
        assert posix.stat("/etc/motd.link") is not None

    def test_rmpath_file(self, posix):
        posix.rmpath("/etc/motd.link")
        assert posix.lstat("/etc/motd.link") is None

    def test_rmpath_missing(self, posix):
        with pytest.raises(NativeError):
            posix.rmpath("/missing")


class TestPosixUsers:
    """Tests for user and group routines."""

    def test_getpwnam_splits_gecos(self, posix):
        entry = posix.getpwnam("alice")
        assert entry["uid"] == 1000
        assert entry["gecos"]["fullname"] == "Alice Smith"
        assert entry["gecos"]["homephone"] == "555-0199"

    def test_getpwuid(self, posix):
        assert posix.getpwuid(0)["name"] == "root"

    def test_getpwnam_missing(self, posix):
        with pytest.raises(NativeError) as exc_info:
            posix.getpwnam("mallory")
        assert exc_info.value.errno == errno.ENOENT

    def test_groups(self, posix):
        assert posix.getgrnam("wheel")["members"] == "root"
        assert posix.getgrgid(50)["name"] == "staff"
        assert posix.getgrouplist("alice") == "staff"


class TestArityThroughRoutines:
    """Argument count mismatches surface as exceptions from the bridge."""

    def test_unwrap_mismatch(self, bridge):
        with pytest.raises(ArgumentCountMismatchError) as exc_info:
            bridge.call("stat").unwrap("stat")
        assert (exc_info.value.expected, exc_info.value.got) == (1, 0)
