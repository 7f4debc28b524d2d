"""
Minimal event channel used between cameras, the coordinator and the UI.

A ``Signal`` has a single producer (the object that owns it) and any number
of subscribers. Emission is synchronous and happens on whatever scheduler
callback the producer is running in, so subscribers never race each other.
"""

from typing import Any, Callable, List


class Signal:
    def __init__(self, name: str = ""):
        self.name = name
        self._slots: List[Callable[..., Any]] = []

    def connect(self, slot: Callable[..., Any]) -> Callable[[], None]:
        """Subscribe ``slot``. Returns a callable that undoes the subscription."""
        if slot not in self._slots:
            self._slots.append(slot)
        return lambda: self.disconnect(slot)

    def disconnect(self, slot: Callable[..., Any]) -> None:
        if slot in self._slots:
            self._slots.remove(slot)

    def emit(self, *args: Any) -> None:
        # Slots may disconnect themselves while being called
        for slot in list(self._slots):
            slot(*args)

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self):
        return f"Signal({self.name!r}, slots={len(self._slots)})"
