"""
Bounded registry of opaque handles for long-lived native resources.

Callers never see native pointers. Opening a resource (e.g. a directory
stream) registers it and hands back an integer handle; every operation that
accepts a handle validates it here first, which is the only defense against
stale, forged or already-closed handles.

A handle packs a slot index and that slot's generation:

    handle = (generation << slot_bits) | slot

The generation is bumped each time the slot is released, so a handle kept
after ``revoke`` never matches the slot's next occupant.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from posix_bridge.outcome import Outcome

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 256

_EMPTY = object()


@dataclass
class _Slot:
    generation: int = 1
    resource: Any = _EMPTY


class HandleRegistry:
    """Fixed-capacity handle arena.

    All methods are atomic with respect to each other.

    Args:
        capacity: Maximum number of live handles

    Raises:
        ValueError: If capacity is not a positive integer
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self._capacity = capacity
        self._slot_bits = max(1, (capacity - 1).bit_length())
        self._slots: List[_Slot] = [_Slot() for _ in range(capacity)]
        # stack of free slot indexes, lowest index on top
        self._free: List[int] = list(range(capacity - 1, -1, -1))
        self._count = 0
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def __repr__(self) -> str:
        return f"HandleRegistry({len(self)}/{self._capacity})"

    # ------------------------------------------------------------------
    # Handle encoding
    # ------------------------------------------------------------------

    def _encode(self, slot: int, generation: int) -> int:
        return (generation << self._slot_bits) | slot

    def _decode(self, handle: Any) -> Optional[_Slot]:
        """Return the live slot ``handle`` names, or None."""
        if not isinstance(handle, int) or isinstance(handle, bool) or handle <= 0:
            return None
        slot_index = handle & ((1 << self._slot_bits) - 1)
        generation = handle >> self._slot_bits
        if slot_index >= self._capacity:
            return None
        slot = self._slots[slot_index]
        if slot.resource is _EMPTY or slot.generation != generation:
            return None
        return slot

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, resource: Any) -> Outcome:
        """Track ``resource`` and issue a handle for it.

        Returns:
            Success with the new handle as value, or RegistryFull
        """
        with self._lock:
            if self._count >= self._capacity:
                logger.debug(f"Registry full ({self._capacity} handles)")
                return Outcome.registry_full(self._capacity)
            slot_index = self._free.pop()
            slot = self._slots[slot_index]
            slot.resource = resource
            self._count += 1
            handle = self._encode(slot_index, slot.generation)
        logger.debug(f"Registered handle {handle} (slot {slot_index})")
        return Outcome.success(handle)

    def is_registered(self, handle: Any) -> bool:
        """Return True if ``handle`` names a live resource."""
        with self._lock:
            return self._decode(handle) is not None

    def lookup(self, handle: Any) -> Outcome:
        """Return the resource behind ``handle``.

        Returns:
            Success with the resource as value, or HandleInvalid
        """
        with self._lock:
            slot = self._decode(handle)
            if slot is None:
                return Outcome.handle_invalid(handle)
            return Outcome.success(slot.resource)

    def revoke(self, handle: Any) -> Outcome:
        """Invalidate ``handle`` and free its slot.

        Returns:
            Success with the released resource as value, or HandleInvalid
        """
        with self._lock:
            slot = self._decode(handle)
            if slot is None:
                return Outcome.handle_invalid(handle)
            resource = slot.resource
            slot.resource = _EMPTY
            slot.generation += 1
            self._free.append(handle & ((1 << self._slot_bits) - 1))
            self._count -= 1
        logger.debug(f"Revoked handle {handle}")
        return Outcome.success(resource)

    def live_handles(self) -> List[int]:
        """Return every live handle (order is unspecified)."""
        with self._lock:
            return [
                self._encode(index, slot.generation)
                for index, slot in enumerate(self._slots)
                if slot.resource is not _EMPTY
            ]

    def clear(self, closer: Optional[Callable[[Any], Any]] = None) -> int:
        """Revoke every live handle.

        Args:
            closer: Called with each released resource

        Returns:
            Number of handles revoked
        """
        with self._lock:
            handles = self.live_handles()
            for handle in handles:
                resource = self.revoke(handle).value
                if closer is not None:
                    closer(resource)
        return len(handles)
