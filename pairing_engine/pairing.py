"""Pairing strategies and the seating step that persists their output.

Both variants share one rule for choosing opponents: walk the ordered list,
take the first player and pair them with the first later player they have not
met yet. A player with no such partner is set aside rather than forced into a
rematch.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from itertools import groupby
from typing import Final

from .errors import CapacityExceededError
from .history import OpponentHistory
from .models import (
    BYE_LABEL,
    MatchRecord,
    Player,
    PlayerStatus,
    TableSlot,
    TournamentConfig,
    Variant,
    utc_now_iso,
)
from .registry import PlayerRegistry, ladder_order, swiss_order
from .storage import TournamentStorage
from .tables import TableAllocator

log: Final = logging.getLogger("pairing-engine.pairing")

Pair = tuple[Player, Player]


def pair_avoiding_rematches(
    players: Sequence[Player], history: OpponentHistory
) -> tuple[list[Pair], list[Player]]:
    remaining = list(players)
    pairs: list[Pair] = []
    unmatched: list[Player] = []
    while remaining:
        first = remaining.pop(0)
        met = history.past_opponents_of(first.player_id)
        for index, candidate in enumerate(remaining):
            if candidate.player_id not in met:
                pairs.append((first, remaining.pop(index)))
                break
        else:
            unmatched.append(first)
    return pairs, unmatched


@dataclass(slots=True)
class PairingOutcome:
    pairs: list[Pair] = field(default_factory=list)
    bye_player: Player | None = None
    unmatched: list[Player] = field(default_factory=list)
    seated: list[TableSlot] = field(default_factory=list)
    skipped: list[Pair] = field(default_factory=list)
    bye_record: MatchRecord | None = None

    @property
    def unmatched_count(self) -> int:
        return len(self.unmatched)

    @property
    def is_empty(self) -> bool:
        return not self.pairs and self.bye_player is None


class LadderStrategy:
    variant: Final = Variant.LADDER

    def propose(
        self, players: Sequence[Player], history: OpponentHistory
    ) -> PairingOutcome:
        eligible = ladder_order(
            player for player in players if player.status is PlayerStatus.WAITING
        )
        pairs, unmatched = pair_avoiding_rematches(eligible, history)
        return PairingOutcome(pairs=pairs, unmatched=unmatched)


class SwissStrategy:
    """Score-group pairing with a bye for the lowest-ranked odd player out.

    Players on equal points are shuffled with ``rng`` so repeated rounds do not
    always produce the same boards. When a score group cannot pair internally
    the scan simply continues into the next group.
    """

    variant: Final = Variant.SWISS

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def shuffle_point_groups(self, ordered: Sequence[Player]) -> list[Player]:
        shuffled: list[Player] = []
        for _, group in groupby(ordered, key=lambda player: player.points):
            members = list(group)
            self._rng.shuffle(members)
            shuffled.extend(members)
        return shuffled

    def propose(
        self, players: Sequence[Player], history: OpponentHistory
    ) -> PairingOutcome:
        eligible = swiss_order(
            player for player in players if player.status is PlayerStatus.ACTIVE
        )
        bye_player = None
        if len(eligible) % 2 == 1:
            bye_player = eligible.pop()
        pairs, unmatched = pair_avoiding_rematches(
            self.shuffle_point_groups(eligible), history
        )
        return PairingOutcome(pairs=pairs, bye_player=bye_player, unmatched=unmatched)


class PairingEngine:
    """Runs a strategy against stored state and seats the resulting pairs."""

    def __init__(
        self,
        storage: TournamentStorage,
        registry: PlayerRegistry,
        strategy: LadderStrategy | SwissStrategy,
        *,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._storage = storage
        self._registry = registry
        self.strategy = strategy
        self._clock = clock

    @property
    def tournament_id(self) -> str:
        return self._registry.tournament_id

    def propose(self) -> tuple[PairingOutcome, OpponentHistory]:
        history = OpponentHistory.build(self._storage.list_matches(self.tournament_id))
        outcome = self.strategy.propose(self._registry.list_all(), history)
        return outcome, history

    def run(
        self, config: TournamentConfig, *, round_number: int | None = None
    ) -> PairingOutcome:
        outcome, history = self.propose()
        return self.seat(outcome, history, config, round_number=round_number)

    def seat(
        self,
        outcome: PairingOutcome,
        history: OpponentHistory,
        config: TournamentConfig,
        *,
        round_number: int | None = None,
    ) -> PairingOutcome:
        timestamp = self._clock()
        if outcome.bye_player is not None:
            outcome.bye_record = self._award_bye(
                outcome, timestamp=timestamp, round_number=round_number
            )

        ladder = self.strategy.variant is Variant.LADDER
        allocator = TableAllocator(
            self.tournament_id,
            self._storage.list_tables(self.tournament_id),
            config.max_tables,
        )
        for first, second in outcome.pairs:
            preferred = history.last_winning_table(first.player_id) if ladder else None
            try:
                slot = allocator.assign(first, second, preferred)
            except CapacityExceededError as exc:
                log.warning(
                    "Could not seat %s vs %s: %s",
                    first.player_id,
                    second.player_id,
                    exc,
                )
                outcome.skipped.append((first, second))
                continue
            self._storage.save_table(slot)
            if ladder:
                for player in (first, second):
                    player.status = PlayerStatus.IN_PROGRESS
                    self._registry.save(player)
            outcome.seated.append(slot)

        if outcome.unmatched:
            log.warning(
                "%d player(s) left without an opponent: %s",
                outcome.unmatched_count,
                ", ".join(player.player_id for player in outcome.unmatched),
            )
        log.info(
            "Seated %d pair(s) for tournament %s (%d skipped)",
            len(outcome.seated),
            self.tournament_id,
            len(outcome.skipped),
        )
        return outcome

    @staticmethod
    def bye_table_number(outcome: PairingOutcome) -> int:
        """The number right after every board the remaining players could fill."""
        boards = len(outcome.pairs) + len(outcome.unmatched) // 2
        return boards + 1

    def _award_bye(
        self, outcome: PairingOutcome, *, timestamp: str, round_number: int | None
    ) -> MatchRecord:
        assert outcome.bye_player is not None
        # Reload so a rating refresh done earlier in this command is not lost.
        player = self._registry.get(outcome.bye_player.player_id)
        record = MatchRecord(
            tournament_id=self.tournament_id,
            match_id=self._storage.next_match_id(self.tournament_id),
            timestamp=timestamp,
            table_number=self.bye_table_number(outcome),
            player1_id=player.player_id,
            player1_name=player.name,
            winner_id=player.player_id,
            result_label=BYE_LABEL,
            round_number=round_number,
        )
        self._storage.save_match(record)
        self._registry.apply_bye(player, timestamp)
        outcome.bye_player = player
        log.info("Player %s receives a bye", player.player_id)
        return record


__all__ = [
    "LadderStrategy",
    "PairingEngine",
    "PairingOutcome",
    "SwissStrategy",
    "pair_avoiding_rematches",
]
