"""
Shared fixtures for the posix-bridge test suite.

Run with: pytest tests/ -v
"""

import os

import pytest

from posix_bridge import BridgeConfig, PosixBridge
from posix_bridge._libc_loader import LibcLocator, LibcNotFoundError
from posix_bridge.routines import Posix
from posix_bridge.simulator import SimulatedBackend, SimulatedGroup, SimulatedUser


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's POSIX_BRIDGE_* settings out of the tests."""
    for name in list(os.environ):
        if name.startswith("POSIX_BRIDGE_") or name == "LIBC_PATH":
            monkeypatch.delenv(name)


@pytest.fixture
def backend():
    return SimulatedBackend(
        files={"/etc/motd": b"hello\n"},
        directories=["/home/alice"],
        symlinks={"/etc/motd.link": "/etc/motd"},
        users=[
            SimulatedUser("root", 0, 0, "root", "/root", "/bin/bash"),
            SimulatedUser(
                "alice", 1000, 1000, "Alice Smith,Room 42,555-0100,555-0199",
                "/home/alice", "/bin/zsh",
            ),
        ],
        groups=[
            SimulatedGroup("root", 0),
            SimulatedGroup("wheel", 10, ["root"]),
            SimulatedGroup("staff", 50, ["root", "alice"]),
            SimulatedGroup("alice", 1000),
        ],
        now=0,
    )


@pytest.fixture
def bridge(backend):
    with PosixBridge(config=BridgeConfig(), backend=backend) as px:
        yield px


@pytest.fixture
def posix(bridge):
    return Posix(bridge)


@pytest.fixture
def native_bridge():
    """Bridge over the real C library; skipped where none can be loaded."""
    try:
        px = PosixBridge(config=BridgeConfig())
    except LibcNotFoundError as e:
        pytest.skip(f"C library not available: {e.message}")
    with px:
        yield px


@pytest.fixture
def fresh_loader():
    LibcLocator.reset_cache()
    yield LibcLocator
    LibcLocator.reset_cache()
