from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Final

from .config import ScoringRules
from .errors import DataIntegrityError, InvalidStateError, NotFoundError
from .models import (
    DRAW_LABEL,
    MatchRecord,
    Player,
    PlayerStatus,
    TableSlot,
    utc_now_iso,
)
from .registry import PlayerRegistry
from .storage import TournamentStorage

log: Final = logging.getLogger("pairing-engine.results")


class Outcome(StrEnum):
    WIN = "win"
    DRAW = "draw"


class ResultRecorder:
    """Moves players through match states and writes the match history."""

    def __init__(
        self,
        storage: TournamentStorage,
        registry: PlayerRegistry,
        *,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._storage = storage
        self._registry = registry
        self._clock = clock

    @property
    def tournament_id(self) -> str:
        return self._registry.tournament_id

    def find_slot(self, player_id: str, *, open_only: bool = False) -> TableSlot | None:
        for slot in self._storage.list_tables(self.tournament_id):
            if not slot.seats(player_id):
                continue
            if open_only and not slot.is_open:
                continue
            return slot
        return None

    def _load_opponent(self, slot: TableSlot, player_id: str) -> Player:
        opponent_id = slot.opponent_of(player_id)
        opponent = self._registry.find(opponent_id) if opponent_id else None
        if opponent is None:
            raise DataIntegrityError(
                f"Table {slot.table_number} lists an opponent for {player_id} "
                "that is not registered"
            )
        return opponent

    def _append_record(
        self,
        slot: TableSlot,
        first: Player,
        second: Player,
        *,
        is_draw: bool,
        timestamp: str,
        round_number: int | None = None,
    ) -> MatchRecord:
        if is_draw:
            # Keep the board's seating order for draws.
            if slot.player1_id == second.player_id:
                first, second = second, first
        record = MatchRecord(
            tournament_id=self.tournament_id,
            match_id=self._storage.next_match_id(self.tournament_id),
            timestamp=timestamp,
            table_number=slot.table_number,
            player1_id=first.player_id,
            player1_name=first.name,
            player2_id=second.player_id,
            player2_name=second.name,
            winner_id=None if is_draw else first.player_id,
            result_label=DRAW_LABEL if is_draw else first.name,
            round_number=round_number,
        )
        self._storage.save_match(record)
        return record

    def change_state(
        self,
        player_id: str,
        new_status: PlayerStatus,
        opponent_new_status: PlayerStatus | None = None,
        outcome: Outcome | None = None,
    ) -> MatchRecord | None:
        """Apply a ladder transition for ``player_id`` and their current opponent.

        With an ``outcome`` the player is the winner (or one side of a draw) and
        a history row is written before the table is released.
        """
        player = self._registry.get(player_id)
        if player.is_dropped:
            raise InvalidStateError(f"Player {player_id} has already dropped out")
        self._registry.check_transition(player, new_status)

        slot: TableSlot | None = None
        opponent: Player | None = None
        if player.status is PlayerStatus.IN_PROGRESS:
            slot = self.find_slot(player_id)
            if slot is None:
                raise DataIntegrityError(
                    f"Player {player_id} is marked in progress but has no table"
                )
            opponent = self._load_opponent(slot, player_id)

        if (
            opponent is not None
            and opponent.is_dropped
            and opponent_new_status is not PlayerStatus.DROPPED
        ):
            raise InvalidStateError(
                f"Opponent {opponent.player_id} has already dropped out"
            )

        record = None
        if outcome is not None:
            if slot is None or opponent is None:
                raise InvalidStateError(
                    f"Player {player_id} is not currently in a match"
                )
            timestamp = self._clock()
            is_draw = outcome is Outcome.DRAW
            record = self._append_record(
                slot, player, opponent, is_draw=is_draw, timestamp=timestamp
            )
            self._registry.apply_result(
                player, opponent, is_draw=is_draw, timestamp=timestamp
            )

        if slot is not None:
            slot.vacate()
            self._storage.save_table(slot)

        player.status = new_status
        self._registry.save(player)
        if opponent is not None and opponent_new_status is not None:
            opponent.status = opponent_new_status
            self._registry.save(opponent)

        log.info(
            "Player %s -> %s%s",
            player_id,
            new_status.value,
            f" ({outcome.value})" if outcome else "",
        )
        return record

    def record_round_result(
        self, player_id: str, *, round_number: int, draw: bool = False
    ) -> MatchRecord:
        """Record the open Swiss board of ``player_id``; they win unless ``draw``."""
        player = self._registry.get(player_id)
        if player.is_dropped:
            raise InvalidStateError(f"Player {player_id} has already dropped out")
        slot = self.find_slot(player_id, open_only=True)
        if slot is None:
            raise InvalidStateError(
                f"Player {player_id} has no open match in round {round_number}"
            )
        opponent = self._load_opponent(slot, player_id)
        if opponent.is_dropped:
            raise InvalidStateError(
                f"Opponent {opponent.player_id} has already dropped out"
            )

        timestamp = self._clock()
        record = self._append_record(
            slot,
            player,
            opponent,
            is_draw=draw,
            timestamp=timestamp,
            round_number=round_number,
        )
        self._registry.apply_result(player, opponent, is_draw=draw, timestamp=timestamp)
        slot.result = record.result_label
        self._storage.save_table(slot)
        log.info(
            "Round %s table %s: %s",
            round_number,
            slot.table_number,
            record.result_label,
        )
        return record

    def correct_match_result(
        self, match_id: str, *, scoring: ScoringRules | None = None
    ) -> MatchRecord:
        """Flip the winner of a decided match and move the stats across.

        ``scoring`` is given for Swiss tournaments so the points for the win are
        moved as well. Live statuses and tables are left alone.
        """
        record = self._storage.get_match(self.tournament_id, match_id)
        if record is None:
            raise NotFoundError(f"Match {match_id} was not found")
        if record.is_bye:
            raise InvalidStateError(
                f"Match {match_id} is a bye and cannot be corrected"
            )
        if record.is_draw:
            raise InvalidStateError(
                f"Match {match_id} is a draw and cannot be corrected"
            )

        old_winner_id = record.winner_id or ""
        old_loser_id = record.opponent_of(old_winner_id)
        if old_loser_id is None:
            raise DataIntegrityError(
                f"Match {match_id} names a winner that did not play in it"
            )
        old_winner = self._registry.find(old_winner_id)
        old_loser = self._registry.find(old_loser_id)
        if old_winner is None or old_loser is None:
            raise DataIntegrityError(f"Match {match_id} refers to unknown players")

        if record.player1_id == old_winner_id:
            record.player1_id, record.player2_id = record.player2_id, record.player1_id
            record.player1_name, record.player2_name = (
                record.player2_name,
                record.player1_name,
            )
        record.winner_id = old_loser.player_id
        record.result_label = record.player1_name or old_loser.name
        self._storage.save_match(record)

        old_winner.wins = max(old_winner.wins - 1, 0)
        old_winner.losses += 1
        old_loser.wins += 1
        old_loser.losses = max(old_loser.losses - 1, 0)
        if scoring is not None:
            swing = scoring.points_win - scoring.points_loss
            old_winner.points = max(old_winner.points - swing, 0)
            old_loser.points += swing
        self._registry.save(old_winner)
        self._registry.save(old_loser)
        log.info(
            "Match %s corrected: %s now beats %s",
            match_id,
            old_loser.player_id,
            old_winner.player_id,
        )
        return record


__all__ = ["Outcome", "ResultRecorder"]
