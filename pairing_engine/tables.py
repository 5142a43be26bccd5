from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Final

from .errors import CapacityExceededError
from .models import MIN_TABLE_NUMBER, Player, TableSlot
from .validation import validate_table_number

log: Final = logging.getLogger("pairing-engine.tables")


class TableAllocator:
    """Hands out table numbers for new pairings.

    Preference order: the requested table when it is free, then the lowest
    cleared slot, then the lowest number never used. Everything stays within
    ``1..max_tables``.
    """

    def __init__(
        self, tournament_id: str, slots: Iterable[TableSlot], max_tables: int
    ) -> None:
        self.tournament_id = tournament_id
        self.max_tables = max_tables
        self._slots: dict[int, TableSlot] = {
            slot.table_number: slot for slot in slots
        }

    @property
    def occupied(self) -> set[int]:
        return {number for number, slot in self._slots.items() if slot.is_occupied}

    @property
    def free(self) -> list[int]:
        return sorted(
            number
            for number, slot in self._slots.items()
            if not slot.is_occupied and number <= self.max_tables
        )

    def validate(self, table_number: object) -> int:
        return validate_table_number(table_number, self.max_tables)

    def _is_available(self, table_number: int) -> bool:
        if table_number < MIN_TABLE_NUMBER or table_number > self.max_tables:
            return False
        slot = self._slots.get(table_number)
        return slot is None or not slot.is_occupied

    def choose(self, preferred_table: int | None = None) -> int:
        if preferred_table is not None and self._is_available(preferred_table):
            return preferred_table
        free = self.free
        if free:
            return free[0]
        for number in range(MIN_TABLE_NUMBER, self.max_tables + 1):
            if number not in self._slots:
                return number
        raise CapacityExceededError(
            f"All {self.max_tables} tables are in use; raise the table limit "
            "or wait for a match to finish"
        )

    def assign(
        self, first: Player, second: Player, preferred_table: int | None = None
    ) -> TableSlot:
        number = self.choose(preferred_table)
        slot = self._slots.get(number)
        if slot is None:
            slot = TableSlot(tournament_id=self.tournament_id, table_number=number)
            self._slots[number] = slot
        slot.seat(first, second)
        log.debug(
            "Table %s assigned to %s vs %s", number, first.player_id, second.player_id
        )
        return slot


__all__ = ["TableAllocator"]
