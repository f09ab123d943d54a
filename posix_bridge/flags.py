"""
Stringified option resolution.

Native options are exposed by name instead of by integer constant, so callers
never need to look values up in C headers. The common prefix of the native
constant is stripped (``LOG_PID`` becomes ``PID``) and names compare
case-insensitively.

Several names combine into one bitmask when joined with ``|``:

    >>> table = ParamTable("log_option", [("CONS", 0x02), ("PID", 0x01)])
    >>> resolve_flags(table, "pid|CONS")
    3
"""

import logging
from typing import Iterable, Iterator, List, Sequence, Tuple

from posix_bridge.exceptions import UnknownOptionError
from posix_bridge.outcome import Outcome

logger = logging.getLogger(__name__)

DELIMITER = "|"


class ParamTable:
    """Ordered, immutable table of (name, value) pairs for one operation argument.

    Names are unique under case-insensitive comparison and never contain the
    flag delimiter. Lookup is a linear scan where the first match wins, which
    is fine for the small tables the bridge uses.

    Args:
        name: Table name, used in error messages
        entries: Sequence of (name, value) pairs

    Raises:
        ValueError: On a duplicate name, an empty name or a name containing '|'
    """

    def __init__(self, name: str, entries: Iterable[Tuple[str, int]]):
        self.name = name
        seen = set()
        checked: List[Tuple[str, int]] = []
        for entry_name, value in entries:
            if not entry_name:
                raise ValueError(f"{name}: empty option name")
            if DELIMITER in entry_name:
                raise ValueError(f"{name}: option name {entry_name!r} contains {DELIMITER!r}")
            folded = entry_name.casefold()
            if folded in seen:
                raise ValueError(f"{name}: duplicate option name {entry_name!r}")
            seen.add(folded)
            checked.append((entry_name, int(value)))
        self._entries: Tuple[Tuple[str, int], ...] = tuple(checked)

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        folded = name.casefold()
        return any(entry_name.casefold() == folded for entry_name, _ in self._entries)

    def __repr__(self) -> str:
        return f"ParamTable({self.name!r}, {len(self._entries)} entries)"

    def names(self) -> List[str]:
        """Return the option names in table order."""
        return [entry_name for entry_name, _ in self._entries]

    def values(self) -> List[int]:
        return [value for _, value in self._entries]

    def lookup(self, name: str):
        """Return the value for ``name`` or None."""
        folded = name.casefold()
        for entry_name, value in self._entries:
            if entry_name.casefold() == folded:
                return value
        return None


def resolve_one(table: ParamTable, name: str) -> int:
    """Resolve a single option name to its value.

    Matching is exact and case-insensitive; there is no prefix or fuzzy
    matching.

    Raises:
        UnknownOptionError: If ``name`` is not in the table
    """
    value = table.lookup(name) if name else None
    if value is None:
        raise UnknownOptionError(
            f"{table.name}: unknown option {name!r}",
            token=name,
            context={"table": table.name},
        )
    return value


def resolve_flags(table: ParamTable, expression: str) -> int:
    """Resolve a ``|``-joined flag expression to a combined bitmask.

    An empty expression means "no flags" and yields 0. The whole expression
    fails when any token is empty or unknown; the first bad token from the
    left is the one reported. The caller's string is never modified.

    Raises:
        UnknownOptionError: On an empty or unresolvable token
    """
    if expression == "":
        return 0

    mask = 0
    for token in expression.split(DELIMITER):
        try:
            mask |= resolve_one(table, token)
        except UnknownOptionError as e:
            raise UnknownOptionError(
                f"{table.name}: unknown option {token!r} in {expression!r}",
                token=token,
                expression=expression,
                context={"table": table.name},
            ) from e
    logger.debug(f"Resolved {table.name} flags {expression!r} -> {mask:#x}")
    return mask


def join_flags(names: Sequence[str]) -> str:
    """Build a flag expression from option names."""
    return DELIMITER.join(names)


def try_resolve_one(table: ParamTable, name: str) -> Outcome:
    """Outcome-returning form of :func:`resolve_one`."""
    try:
        return Outcome.success(resolve_one(table, name))
    except UnknownOptionError as e:
        return Outcome.unknown_option(e.token)


def try_resolve_flags(table: ParamTable, expression: str) -> Outcome:
    """Outcome-returning form of :func:`resolve_flags`."""
    try:
        return Outcome.success(resolve_flags(table, expression))
    except UnknownOptionError as e:
        return Outcome.unknown_option(e.token, expression)
