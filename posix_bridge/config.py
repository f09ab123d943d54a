"""
Bridge configuration.

Settings come from constructor arguments first and environment variables
second:

    POSIX_BRIDGE_SIMULATE            1/true/yes to use the simulated native layer
    POSIX_BRIDGE_LIBC_PATH           explicit C library path (LIBC_PATH also accepted)
    POSIX_BRIDGE_REGISTRY_CAPACITY   maximum number of open handles (default 256)
    POSIX_BRIDGE_NOT_FOUND_CODE      errno reported for an empty lookup, as a
                                     number or a name such as ESRCH (default ENOENT)
    POSIX_BRIDGE_DEBUG               1/true/yes for debug logging
"""

import errno
import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from posix_bridge.registry import DEFAULT_CAPACITY

ENV_PREFIX = "POSIX_BRIDGE_"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name}: expected a boolean, got {raw!r}")


def parse_errno(raw: str) -> int:
    """Parse an errno given as a number or a symbolic name."""
    value = raw.strip()
    if value.isdigit():
        return int(value)
    code = errno.__dict__.get(value.upper())
    if not isinstance(code, int):
        raise ValueError(f"unknown errno name {raw!r}")
    return code


@dataclass
class BridgeConfig:
    """Runtime settings of a PosixBridge.

    Attributes:
        simulate: Use the in-memory native layer instead of the C library
        libc_path: Explicit path of the C library to load
        registry_capacity: Maximum number of simultaneously open handles
        not_found_code: errno reported when a lookup finds nothing and the
            C library left errno unset
        debug: Enable debug logging
    """
    simulate: bool = False
    libc_path: Optional[str] = None
    registry_capacity: int = DEFAULT_CAPACITY
    not_found_code: int = errno.ENOENT
    debug: bool = False

    def __post_init__(self):
        if self.registry_capacity < 1:
            raise ValueError(f"registry_capacity must be positive, got {self.registry_capacity}")
        if self.not_found_code <= 0:
            raise ValueError(f"not_found_code must be a positive errno, got {self.not_found_code}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "BridgeConfig":
        """Build a config from the environment, then apply keyword overrides.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Field values that win over the environment; None is ignored

        Raises:
            ValueError: On malformed environment values or unknown overrides
        """
        env = os.environ if environ is None else environ
        values = {}

        raw = env.get(ENV_PREFIX + "SIMULATE")
        if raw is not None:
            values["simulate"] = _parse_bool(ENV_PREFIX + "SIMULATE", raw)

        raw = env.get(ENV_PREFIX + "LIBC_PATH") or env.get("LIBC_PATH")
        if raw:
            values["libc_path"] = raw

        raw = env.get(ENV_PREFIX + "REGISTRY_CAPACITY")
        if raw is not None:
            try:
                values["registry_capacity"] = int(raw)
            except ValueError:
                raise ValueError(
                    f"{ENV_PREFIX}REGISTRY_CAPACITY: expected an integer, got {raw!r}"
                ) from None

        raw = env.get(ENV_PREFIX + "NOT_FOUND_CODE")
        if raw is not None:
            values["not_found_code"] = parse_errno(raw)

        raw = env.get(ENV_PREFIX + "DEBUG")
        if raw is not None:
            values["debug"] = _parse_bool(ENV_PREFIX + "DEBUG", raw)

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise ValueError(f"Unknown configuration option: {key}")
            if value is not None:
                values[key] = value

        return cls(**values)
