from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Final

from .config import ScoringRules
from .errors import InvalidStateError, NotFoundError, ValidationError
from .models import (
    Player,
    PlayerStatus,
    TournamentStatus,
    Variant,
    available_status,
    statuses_for,
    utc_now_iso,
)
from .storage import TournamentStorage
from .validation import normalize_player_name

log: Final = logging.getLogger("pairing-engine.registry")


def ladder_order(players: Iterable[Player]) -> list[Player]:
    """Wins descending, then most recent ``last_match_at`` first.

    Favouring the most recent finisher keeps a winner at the table instead of
    queueing them behind players who have been waiting longer. Players without
    a timestamp come last; the player number settles remaining ties.
    """
    ordered = sorted(players, key=lambda player: player.number)
    ordered.sort(key=lambda player: player.last_match_at, reverse=True)
    ordered.sort(key=lambda player: player.wins, reverse=True)
    return ordered


def swiss_order(players: Iterable[Player]) -> list[Player]:
    """Points descending, wins descending, fewer matches played first."""
    return sorted(
        players,
        key=lambda player: (
            -player.points,
            -player.wins,
            player.matches_played,
            player.number,
        ),
    )


class PlayerRegistry:
    def __init__(
        self,
        storage: TournamentStorage,
        tournament_id: str,
        variant: Variant,
        *,
        scoring: ScoringRules | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._storage = storage
        self.tournament_id = tournament_id
        self.variant = variant
        self.scoring = scoring or ScoringRules()
        self._clock = clock

    def find(self, player_id: str) -> Player | None:
        return self._storage.get_player(self.tournament_id, player_id)

    def get(self, player_id: str) -> Player:
        player = self.find(player_id)
        if player is None:
            raise NotFoundError(f"Player {player_id} was not found")
        return player

    def list_all(self) -> list[Player]:
        return self._storage.list_players(self.tournament_id)

    def save(self, player: Player) -> None:
        self._storage.save_player(player)

    def register(
        self,
        name: str | None,
        *,
        tournament_status: TournamentStatus = TournamentStatus.IN_PROGRESS,
    ) -> Player:
        if tournament_status is TournamentStatus.FINISHED:
            raise ValidationError(
                "The tournament has finished; new players cannot register"
            )
        player_id = self._storage.next_player_id(self.tournament_id)
        now = self._clock()
        player = Player(
            tournament_id=self.tournament_id,
            player_id=player_id,
            name=normalize_player_name(name, player_id),
            status=available_status(self.variant),
            last_match_at=now if self.variant is Variant.LADDER else "",
            registered_at=now,
        )
        self._storage.save_player(player)
        log.info("Registered player %s (%s)", player.player_id, player.name)
        return player

    def check_transition(self, player: Player, new_status: PlayerStatus) -> None:
        if new_status not in statuses_for(self.variant):
            raise ValidationError(
                f"Status {new_status.value} is not used in "
                f"{self.variant.value} tournaments"
            )
        if player.status.is_terminal and not new_status.is_terminal:
            raise InvalidStateError(
                f"Player {player.player_id} has already dropped out"
            )

    def set_status(self, player_id: str, new_status: PlayerStatus) -> Player:
        player = self.get(player_id)
        self.check_transition(player, new_status)
        player.status = new_status
        self._storage.save_player(player)
        log.info("Player %s is now %s", player.player_id, new_status.value)
        return player

    def apply_result(
        self,
        winner: Player,
        loser: Player | None,
        *,
        is_draw: bool = False,
        timestamp: str | None = None,
    ) -> None:
        """Credit one concluded match; ``loser=None`` records a bye.

        For a draw ``winner`` and ``loser`` are simply the two participants.
        Not idempotent: call exactly once per concluded match.
        """
        stamp = timestamp or self._clock()
        scoring_points = self.variant is Variant.SWISS
        if loser is None:
            winner.wins += 1
            winner.matches_played += 1
            if scoring_points:
                winner.points += self.scoring.points_bye
            winner.last_match_at = stamp
            self._storage.save_player(winner)
            return

        for player in (winner, loser):
            player.matches_played += 1
            player.last_match_at = stamp
        if is_draw:
            if scoring_points:
                winner.points += self.scoring.points_draw
                loser.points += self.scoring.points_draw
        else:
            winner.wins += 1
            loser.losses += 1
            if scoring_points:
                winner.points += self.scoring.points_win
                loser.points += self.scoring.points_loss
        self._storage.save_player(winner)
        self._storage.save_player(loser)

    def apply_bye(self, player: Player, timestamp: str | None = None) -> None:
        self.apply_result(player, None, timestamp=timestamp)

    def list_waiting(self) -> list[Player]:
        return ladder_order(
            player
            for player in self.list_all()
            if player.status is PlayerStatus.WAITING
        )

    def list_active(self) -> list[Player]:
        return swiss_order(
            player for player in self.list_all() if player.status is PlayerStatus.ACTIVE
        )


__all__ = ["PlayerRegistry", "ladder_order", "swiss_order"]
