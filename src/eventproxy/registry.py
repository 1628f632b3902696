"""
Listener registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional

Callback = Callable[..., Any]


@dataclass(frozen=True)
class Channel:
    """
    Internal event key.

    Synthetic keys (the all-events channel, `any` rendezvous points, `group`
    results) are tagged with a `kind` so they never collide with the keys
    callers choose.
    """

    key: Hashable
    kind: str


ALL_EVENTS = Channel("__all__", "all")


@dataclass
class _Slot:
    callback: Callback
    # cleared on removal; the slot is dropped at the end of the next dispatch
    alive: bool = field(default=True)

    def call(self, *args: Any) -> Any:
        """
        Call the callback with the given arguments.
        """
        return self.callback(*args)


class Registry:
    """
    Ordered callback slots per event key.

    Removal never splices a list that may be under iteration: it marks the
    slot as a tombstone, and tombstones are compacted once the outermost
    dispatch of that key finishes. Dispatch works on a snapshot of the slots,
    so callbacks may bind, unbind and re-trigger freely.
    """

    def __init__(self) -> None:
        """
        Initialize an empty registry.
        """
        self._slots: Dict[Hashable, List[_Slot]] = {}
        self._dispatching: Dict[Hashable, int] = {}

    # -------------------- mutation --------------------
    def add(self, key: Hashable, callback: Callback, *, at_front: bool = False) -> None:
        """
        Register `callback` for `key`.

        Args:
            key (Hashable): The event key.
            callback (Callback): The callback to register.
            at_front (bool, optional): Put the callback before every callback
                                       already registered for `key`.
                                       Defaults to False.

        Returns:
            None
        """
        slots = self._slots.setdefault(key, [])
        if at_front:
            slots.insert(0, _Slot(callback))
        else:
            slots.append(_Slot(callback))

    def remove(
        self, key: Optional[Hashable] = None, callback: Optional[Callback] = None
    ) -> int:
        """
        Unregister callbacks.

        - No `key`: every callback of every key.
        - `key` only: every callback of `key`.
        - `key` and `callback`: every registration of `callback` for `key`.

        Args:
            key (Optional[Hashable], optional): The event key. Defaults to None.
            callback (Optional[Callback], optional): The callback to remove.
                                                     Defaults to None.

        Returns:
            int: The number of removed registrations.
        """
        if key is None:
            removed = 0
            for slots in self._slots.values():
                removed += self._kill(slots)
            self._slots.clear()
            return removed

        slots = self._slots.get(key)
        if not slots:
            return 0
        if callback is None:
            del self._slots[key]
            return self._kill(slots)
        return self._kill(slots, callback)

    @staticmethod
    def _kill(slots: List[_Slot], callback: Optional[Callback] = None) -> int:
        removed = 0
        for slot in slots:
            if slot.alive and (callback is None or slot.callback == callback):
                slot.alive = False
                removed += 1
        return removed

    # -------------------- dispatch --------------------
    def dispatch(self, key: Hashable, *args: Any) -> int:
        """
        Call every live callback of `key` with `args`, in registration order.
        Exceptions raised by callbacks propagate.

        Args:
            key (Hashable): The event key.
            *args: Positional arguments passed to every callback.

        Returns:
            int: The number of callbacks called.
        """
        slots = self._slots.get(key)
        if not slots:
            return 0

        snapshot = list(slots)
        self._dispatching[key] = self._dispatching.get(key, 0) + 1
        called = 0
        try:
            for slot in snapshot:
                if slot.alive:
                    slot.call(*args)
                    called += 1
        finally:
            depth = self._dispatching.pop(key) - 1
            if depth:
                self._dispatching[key] = depth
            else:
                self._compact(key)
        return called

    def _compact(self, key: Hashable) -> None:
        slots = self._slots.get(key)
        if slots is None:
            return
        live = [slot for slot in slots if slot.alive]
        if live:
            self._slots[key] = live
        else:
            del self._slots[key]

    # -------------------- lookup --------------------
    def receivers(self, key: Hashable) -> List[Callback]:
        """Return the live callbacks of `key`, in call order."""
        return [slot.callback for slot in self._slots.get(key, []) if slot.alive]

    def keys(self) -> List[Hashable]:
        """Return the keys that have at least one live callback."""
        return [key for key in self._slots if key in self]

    def __contains__(self, key: Any) -> bool:
        return any(slot.alive for slot in self._slots.get(key, []))

    def __len__(self) -> int:
        return len(self.keys())
