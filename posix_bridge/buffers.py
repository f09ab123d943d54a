"""
Fixed-capacity, always null-terminated character buffers.

Native string results are copied into buffers whose capacity is fixed per
operation field. A result that does not fit is reported as BufferTooSmall;
the buffer then holds the longest prefix that fits and is still terminated.
"""

import ctypes
from typing import Union

from posix_bridge.outcome import Outcome

ENCODING = "utf-8"
ERRORS = "surrogateescape"

# Capacities of the original extension's output fields
UNAME_FIELD = 128
STRFTIME_RESULT = 128
READLINK_RESULT = 1024
DIRENT_NAME = 256
PW_NAME = 64
PW_PASSWD = 64
PW_GECOS = 256
PW_DIR = 1024
PW_SHELL = 1024
GR_NAME = 64
GR_PASSWD = 64
GR_MEMBERS = 4096
GROUP_LIST = 4096


def encode(text: Union[str, bytes]) -> bytes:
    if isinstance(text, bytes):
        return text
    return text.encode(ENCODING, ERRORS)


def decode(data: bytes) -> str:
    return data.decode(ENCODING, ERRORS)


class OutputBuffer:
    """A ``capacity``-byte character buffer, terminator included.

    Args:
        capacity: Buffer size in bytes, at least 1

    Raises:
        ValueError: If capacity < 1
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"buffer capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._buf = ctypes.create_string_buffer(capacity)

    def __repr__(self) -> str:
        return f"OutputBuffer({self.capacity}, {self.value!r})"

    def __len__(self) -> int:
        return len(self._buf.value)

    @property
    def value(self) -> str:
        """Content up to the terminator."""
        return decode(self._buf.value)

    @property
    def raw(self) -> bytes:
        return self._buf.raw

    def clear(self) -> None:
        self._buf[0] = b"\x00"

    def is_terminated(self) -> bool:
        return b"\x00" in self._buf.raw

    def _copy_at(self, offset: int, data: bytes) -> Outcome:
        room = self.capacity - 1 - offset
        fits = len(data) <= room
        n = len(data) if fits else max(room, 0)
        if n:
            ctypes.memmove(ctypes.addressof(self._buf) + offset, data, n)
        self._buf[offset + n] = b"\x00"
        if fits:
            return Outcome.success()
        return Outcome.buffer_too_small(self.capacity, offset + len(data) + 1)

    def write(self, text: Union[str, bytes]) -> Outcome:
        """Replace the content with ``text``.

        Returns:
            Success, or BufferTooSmall with the prefix kept
        """
        return self._copy_at(0, encode(text))

    def append(self, text: Union[str, bytes]) -> Outcome:
        """Append ``text`` after the current content.

        Returns:
            Success, or BufferTooSmall with the prefix kept
        """
        return self._copy_at(len(self._buf.value), encode(text))
