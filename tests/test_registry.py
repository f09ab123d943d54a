"""
Tests for the opaque handle registry.
"""

import threading
from unittest.mock import MagicMock

import pytest

from posix_bridge.outcome import OutcomeKind
from posix_bridge.registry import DEFAULT_CAPACITY, HandleRegistry


class TestRegister:
    """Tests for issuing handles."""

    def test_default_capacity(self):
        assert DEFAULT_CAPACITY == 256
        assert HandleRegistry().capacity == 256

    def test_register_and_lookup(self):
        registry = HandleRegistry()
        resource = object()
        handle = registry.register(resource).value
        assert isinstance(handle, int)
        assert handle > 0
        assert registry.lookup(handle).value is resource
        assert registry.is_registered(handle)
        assert len(registry) == 1

    def test_handles_distinct(self):
        registry = HandleRegistry()
        handles = {registry.register(i).value for i in range(10)}
        assert len(handles) == 10

    def test_fills_to_capacity(self):
        registry = HandleRegistry()
        for i in range(256):
            assert registry.register(i).ok
        outcome = registry.register("one too many")
        assert outcome.kind is OutcomeKind.REGISTRY_FULL
        assert outcome.context["capacity"] == 256
        assert len(registry) == 256

    def test_full_registry_accepts_after_revoke(self):
        registry = HandleRegistry(capacity=2)
        first = registry.register("a").value
        registry.register("b")
        assert not registry.register("c").ok
        registry.revoke(first)
        assert registry.register("c").ok

    @pytest.mark.parametrize("capacity", [0, -1, 1.5, "8", True])
    def test_rejects_bad_capacity(self, capacity):
        with pytest.raises(ValueError):
            HandleRegistry(capacity)

    def test_capacity_one(self):
        registry = HandleRegistry(capacity=1)
        handle = registry.register("only").value
        assert registry.lookup(handle).value == "only"
        assert not registry.register("more").ok


class TestRevoke:
    """Tests for revoking handles."""

    def test_revoke_returns_resource(self):
        registry = HandleRegistry()
        handle = registry.register("dir").value
        outcome = registry.revoke(handle)
        assert outcome.ok
        assert outcome.value == "dir"
        assert len(registry) == 0

    def test_double_revoke_is_invalid(self):
        registry = HandleRegistry()
        handle = registry.register("dir").value
        registry.revoke(handle)
        outcome = registry.revoke(handle)
        assert outcome.kind is OutcomeKind.HANDLE_INVALID
        assert outcome.context["handle"] == handle

    def test_lookup_after_revoke_is_invalid(self):
        registry = HandleRegistry()
        handle = registry.register("dir").value
        registry.revoke(handle)
        assert registry.lookup(handle).kind is OutcomeKind.HANDLE_INVALID
        assert not registry.is_registered(handle)

    def test_stale_handle_does_not_match_slot_reuse(self):
        registry = HandleRegistry(capacity=1)
        old = registry.register("first").value
        registry.revoke(old)
        new = registry.register("second").value
        assert new != old
        assert registry.lookup(old).kind is OutcomeKind.HANDLE_INVALID
        assert registry.lookup(new).value == "second"


class TestInvalidHandles:
    """Tests for forged and malformed handles."""

    @pytest.mark.parametrize("handle", [0, -1, None, "1", 1.0, True, 10 ** 12])
    def test_never_issued(self, handle):
        registry = HandleRegistry()
        registry.register("dir")
        assert registry.lookup(handle).kind is OutcomeKind.HANDLE_INVALID
        assert registry.revoke(handle).kind is OutcomeKind.HANDLE_INVALID

    def test_forged_neighbour(self):
        registry = HandleRegistry()
        handle = registry.register("dir").value
        assert registry.lookup(handle + 1).kind is OutcomeKind.HANDLE_INVALID

    def test_slot_beyond_capacity(self):
        registry = HandleRegistry(capacity=3)
        registry.register("a")
        # capacity 3 uses two slot bits, so slot index 3 exists in the encoding only
        forged = (1 << 2) | 3
        assert registry.lookup(forged).kind is OutcomeKind.HANDLE_INVALID


class TestClear:
    """Tests for bulk release."""

    def test_live_handles(self):
        registry = HandleRegistry()
        handles = [registry.register(i).value for i in range(3)]
        registry.revoke(handles[1])
        assert sorted(registry.live_handles()) == sorted([handles[0], handles[2]])

    def test_clear_calls_closer(self):
        registry = HandleRegistry()
        for name in ("a", "b", "c"):
            registry.register(name)
        closer = MagicMock()
        assert registry.clear(closer) == 3
        assert sorted(c.args[0] for c in closer.call_args_list) == ["a", "b", "c"]
        assert len(registry) == 0
        assert registry.live_handles() == []

    def test_clear_empty(self):
        assert HandleRegistry().clear() == 0


class TestConcurrency:
    """Tests for concurrent use."""

    def test_concurrent_register_never_exceeds_capacity(self):
        registry = HandleRegistry(capacity=64)
        results = []
        results_lock = threading.Lock()

        def worker():
            for i in range(20):
                outcome = registry.register(i)
                with results_lock:
                    results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        issued = [o.value for o in results if o.ok]
        full = [o for o in results if o.kind is OutcomeKind.REGISTRY_FULL]
        assert len(issued) == 64
        assert len(set(issued)) == 64
        assert len(full) == 8 * 20 - 64
        assert len(registry) == 64
