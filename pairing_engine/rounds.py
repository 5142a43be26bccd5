from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Final

from .config import ScoringRules
from .errors import InvalidStateError
from .history import OpponentHistory
from .models import (
    Player,
    TournamentConfig,
    TournamentStatus,
    available_status,
    utc_now_iso,
)
from .pairing import PairingEngine, PairingOutcome
from .registry import PlayerRegistry
from .storage import TournamentStorage

log: Final = logging.getLogger("pairing-engine.rounds")


def opponent_win_rate(
    player: Player,
    players_by_id: Mapping[str, Player],
    history: OpponentHistory,
    *,
    floor: float,
) -> float:
    """Mean of the floored match-win rates of ``player``'s past opponents.

    Dropped opponents and opponents who have not finished a match are left
    out. A player without any qualifying opponent gets ``floor``.
    """
    rates: list[float] = []
    for opponent_id in history.past_opponents_of(player.player_id):
        opponent = players_by_id.get(opponent_id)
        if opponent is None or opponent.is_dropped or opponent.matches_played <= 0:
            continue
        rates.append(max(opponent.match_win_rate, floor))
    if not rates:
        return floor
    return sum(rates) / len(rates)


@dataclass(frozen=True, slots=True)
class RoundStatus:
    current_round: int
    completed_matches: int
    total_matches: int
    is_complete: bool
    status: TournamentStatus


class RoundController:
    """Swiss round lifecycle: start, complete, finish."""

    def __init__(
        self,
        storage: TournamentStorage,
        registry: PlayerRegistry,
        pairing: PairingEngine,
        *,
        scoring: ScoringRules | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._storage = storage
        self._registry = registry
        self._pairing = pairing
        self.scoring = scoring or ScoringRules()
        self._clock = clock

    @property
    def tournament_id(self) -> str:
        return self._registry.tournament_id

    def config(self) -> TournamentConfig:
        return self._storage.get_config(self.tournament_id)

    def is_round_complete(self) -> bool:
        return all(
            slot.result
            for slot in self._storage.list_tables(self.tournament_id)
            if slot.is_occupied
        )

    def round_status(self) -> RoundStatus:
        config = self.config()
        occupied = [
            slot
            for slot in self._storage.list_tables(self.tournament_id)
            if slot.is_occupied
        ]
        completed = sum(1 for slot in occupied if slot.result)
        return RoundStatus(
            current_round=config.current_round,
            completed_matches=completed,
            total_matches=len(occupied),
            is_complete=completed == len(occupied),
            status=config.status,
        )

    def recompute_opponent_win_rates(
        self, players: Iterable[Player] | None = None
    ) -> dict[str, float]:
        roster = list(players) if players is not None else self._registry.list_all()
        players_by_id = {player.player_id: player for player in roster}
        history = OpponentHistory.build(self._storage.list_matches(self.tournament_id))
        rates: dict[str, float] = {}
        for player in roster:
            rate = opponent_win_rate(
                player, players_by_id, history, floor=self.scoring.omw_floor
            )
            rates[player.player_id] = rate
            if player.opponent_win_rate != rate:
                player.opponent_win_rate = rate
                self._registry.save(player)
        log.debug("Recomputed opponent win rates for %d players", len(rates))
        return rates

    def start_new_round(self) -> tuple[TournamentConfig, PairingOutcome]:
        config = self.config()
        if config.is_finished:
            raise InvalidStateError("The tournament has already finished")
        if not self.is_round_complete():
            raise InvalidStateError(
                f"Round {config.current_round} still has matches without a result"
            )
        if len(self._registry.list_active()) < 2:
            raise InvalidStateError("At least two active players are needed")

        outcome, history = self._pairing.propose()
        if outcome.is_empty:
            raise InvalidStateError(
                "No pairing is possible: every remaining player has already met"
            )

        self._storage.clear_tables(self.tournament_id)
        config.current_round += 1
        if config.current_round >= 2:
            self.recompute_opponent_win_rates()
        self._pairing.seat(outcome, history, config, round_number=config.current_round)
        config.updated_at = self._clock()
        self._storage.save_config(config)
        log.info(
            "Round %s started with %d table(s)%s",
            config.current_round,
            len(outcome.seated),
            " and a bye" if outcome.bye_player else "",
        )
        return config, outcome

    def finish_tournament(self) -> TournamentConfig:
        config = self.config()
        if config.is_finished:
            raise InvalidStateError("The tournament has already finished")
        if not self.is_round_complete():
            raise InvalidStateError(
                f"Round {config.current_round} still has matches without a result"
            )
        self.recompute_opponent_win_rates()
        config.status = TournamentStatus.FINISHED
        config.updated_at = self._clock()
        self._storage.save_config(config)
        log.info(
            "Tournament %s finished after %s round(s)",
            self.tournament_id,
            config.current_round,
        )
        return config

    def reset_tournament(self) -> TournamentConfig:
        """Return the tournament to round 0 with every player back in play.

        Stats, opponent rates and the match history are cleared; dropped
        players are reinstated. Registrations are kept.
        """
        players = self._registry.list_all()
        status = available_status(self._registry.variant)
        for player in players:
            player.points = 0
            player.wins = 0
            player.losses = 0
            player.matches_played = 0
            player.opponent_win_rate = 0.0
            player.last_match_at = ""
            player.status = status
            self._registry.save(player)
        matches = self._storage.clear_matches(self.tournament_id)
        self._storage.clear_tables(self.tournament_id)

        config = self.config()
        config.current_round = 0
        config.status = TournamentStatus.IN_PROGRESS
        config.updated_at = self._clock()
        self._storage.save_config(config)
        log.info(
            "Tournament %s reset: %d player(s) kept, %d match record(s) removed",
            self.tournament_id,
            len(players),
            matches,
        )
        return config


__all__ = ["RoundController", "RoundStatus", "opponent_win_rate"]
