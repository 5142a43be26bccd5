from __future__ import annotations

from collections.abc import Iterable

from .models import MatchRecord


class OpponentHistory:
    """Symmetric index of who has already played whom.

    Byes and rows missing either player never count as a meeting. The index
    is a snapshot: build a fresh one for each pairing pass.
    """

    def __init__(self) -> None:
        self._opponents: dict[str, set[str]] = {}
        self._winning_tables: dict[str, tuple[str, int]] = {}

    @classmethod
    def build(cls, records: Iterable[MatchRecord]) -> OpponentHistory:
        history = cls()
        for record in records:
            history.add(record)
        return history

    def add(self, record: MatchRecord) -> None:
        if record.is_bye or not record.is_complete:
            return
        first, second = record.player1_id, record.player2_id
        self._opponents.setdefault(first, set()).add(second)
        self._opponents.setdefault(second, set()).add(first)
        if record.winner_id:
            previous = self._winning_tables.get(record.winner_id)
            if previous is None or record.timestamp >= previous[0]:
                self._winning_tables[record.winner_id] = (
                    record.timestamp,
                    record.table_number,
                )

    def past_opponents_of(self, player_id: str) -> frozenset[str]:
        return frozenset(self._opponents.get(player_id, ()))

    def have_met(self, first: str, second: str) -> bool:
        return second in self._opponents.get(first, ())

    def last_winning_table(self, player_id: str) -> int | None:
        entry = self._winning_tables.get(player_id)
        if entry is None:
            return None
        return entry[1]


__all__ = ["OpponentHistory"]
