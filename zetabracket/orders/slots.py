from __future__ import annotations
from typing import Iterable, Set

from zetabracket.errors import NoFreeTriggerSlot

MAX_TRIGGER_ORDERS = 128

class TriggerSlotAllocator:
    """Hands out free trigger-order bits for one margin account."""

    def __init__(self, max_slots: int = MAX_TRIGGER_ORDERS):
        self.max_slots = max_slots
        self.in_use: Set[int] = set()

    def sync(self, in_use: Iterable[int]) -> None:
        self.in_use = {int(b) for b in in_use if 0 <= int(b) < self.max_slots}

    def allocate(self) -> int:
        for bit in range(self.max_slots):
            if bit not in self.in_use:
                self.in_use.add(bit)
                return bit
        raise NoFreeTriggerSlot(f"all {self.max_slots} trigger order slots are in use")

    def release(self, bit: int) -> None:
        self.in_use.discard(int(bit))
