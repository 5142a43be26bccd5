"""Operator command surface.

Every command returns a :class:`CommandResult`; engine errors never escape
as exceptions. Mutating commands run under the engine lock, and in ladder
tournaments the follow-up pairing pass runs after that lock is released.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Final

from .config import EngineSettings
from .errors import EngineError, InvalidStateError
from .locking import DynamoLeaseLock, LocalLock
from .models import PlayerStatus, TableSlot, Variant, utc_now_iso
from .pairing import LadderStrategy, PairingEngine, PairingOutcome, SwissStrategy
from .registry import PlayerRegistry
from .results import Outcome, ResultRecorder
from .rounds import RoundController
from .standings import build_standings, render_standings
from .storage import TournamentStorage
from .validation import parse_match_id, parse_player_id, validate_max_tables

log: Final = logging.getLogger("pairing-engine")


@dataclass(slots=True)
class CommandResult:
    success: bool
    message: str
    payload: dict[str, object] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **payload: object) -> CommandResult:
        return cls(True, message, dict(payload))

    @classmethod
    def failure(cls, exc: EngineError) -> CommandResult:
        return cls(False, str(exc), {"error": exc.code})

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"success": self.success, "message": self.message}
        data.update(self.payload)
        return data


def _describe_slot(slot: TableSlot) -> dict[str, object]:
    return {
        "table_number": slot.table_number,
        "player1_id": slot.player1_id,
        "player1_name": slot.player1_name,
        "player2_id": slot.player2_id,
        "player2_name": slot.player2_name,
    }


def _describe_outcome(outcome: PairingOutcome) -> dict[str, object]:
    return {
        "tables": [_describe_slot(slot) for slot in outcome.seated],
        "skipped": [
            [first.player_id, second.player_id] for first, second in outcome.skipped
        ],
        "unmatched": [player.player_id for player in outcome.unmatched],
        "bye": outcome.bye_player.player_id if outcome.bye_player else None,
    }


class TournamentEngine:
    def __init__(
        self,
        storage: TournamentStorage,
        settings: EngineSettings | None = None,
        *,
        lock: LocalLock | DynamoLeaseLock | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.storage = storage
        self.tournament_id = self.settings.tournament_id
        self.variant = self.settings.variant
        self.lock = lock or LocalLock(self.settings.lock_timeout)
        self.registry = PlayerRegistry(
            storage,
            self.tournament_id,
            self.variant,
            scoring=self.settings.scoring,
            clock=clock,
        )
        if self.variant is Variant.SWISS:
            strategy: LadderStrategy | SwissStrategy = SwissStrategy(
                rng or random.Random(self.settings.random_seed)
            )
        else:
            strategy = LadderStrategy()
        self.pairing = PairingEngine(storage, self.registry, strategy, clock=clock)
        self.recorder = ResultRecorder(storage, self.registry, clock=clock)
        self.rounds = RoundController(
            storage,
            self.registry,
            self.pairing,
            scoring=self.settings.scoring,
            clock=clock,
        )
        self._clock = clock

    @classmethod
    def from_table(cls, table, settings: EngineSettings) -> TournamentEngine:
        """Build an engine that leases its lock from ``table`` by default.

        Separate operator processes only exclude each other through the lease
        item, so ``LocalLock`` is reserved for single-process use.
        """
        if settings.lock_backend == "local":
            lock: LocalLock | DynamoLeaseLock = LocalLock(settings.lock_timeout)
        else:
            lock = DynamoLeaseLock(
                table, settings.tournament_id, timeout=settings.lock_timeout
            )
        return cls(TournamentStorage(table), settings, lock=lock)

    # ----- plumbing -----
    def _run(
        self,
        operation: str,
        action: Callable[[], CommandResult],
        *,
        locked: bool = True,
        auto_match: bool = False,
    ) -> CommandResult:
        try:
            if locked:
                with self.lock.hold(operation):
                    result = action()
            else:
                result = action()
        except EngineError as exc:
            log.warning("%s failed (%s): %s", operation, exc.code, exc)
            return CommandResult.failure(exc)

        if (
            auto_match
            and result.success
            and self.variant is Variant.LADDER
            and self.settings.auto_match
        ):
            result.payload["auto_match"] = self.match_players().to_dict()
        return result

    def _require_variant(self, variant: Variant, command: str) -> None:
        if self.variant is not variant:
            raise InvalidStateError(
                f"{command} is only available in {variant.value} tournaments"
            )

    # ----- commands -----
    def register_player(self, name: str | None = None) -> CommandResult:
        def action() -> CommandResult:
            config = self.storage.get_config(self.tournament_id)
            player = self.registry.register(name, tournament_status=config.status)
            return CommandResult.ok(
                f"Registered {player.name} as {player.player_id}",
                player_id=player.player_id,
                name=player.name,
            )

        return self._run("register_player", action, auto_match=True)

    def dropout_player(self, player_id: str) -> CommandResult:
        def action() -> CommandResult:
            pid = parse_player_id(player_id)
            if self.variant is Variant.LADDER:
                self.recorder.change_state(
                    pid, PlayerStatus.DROPPED, PlayerStatus.WAITING
                )
            else:
                if self.storage.get_config(self.tournament_id).is_finished:
                    raise InvalidStateError("The tournament has already finished")
                player = self.registry.get(pid)
                if player.is_dropped:
                    raise InvalidStateError(f"Player {pid} has already dropped out")
                if self.recorder.find_slot(pid, open_only=True) is not None:
                    raise InvalidStateError(
                        f"Player {pid} still has an open match this round; "
                        "record it before dropping out"
                    )
                self.registry.set_status(pid, PlayerStatus.DROPPED)
            return CommandResult.ok(f"Player {pid} dropped out", player_id=pid)

        return self._run("dropout_player", action, auto_match=True)

    def set_player_resting(self, player_id: str) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.LADDER, "Resting")
            pid = parse_player_id(player_id)
            if self.registry.get(pid).status is PlayerStatus.RESTING:
                raise InvalidStateError(f"Player {pid} is already resting")
            self.recorder.change_state(pid, PlayerStatus.RESTING, PlayerStatus.WAITING)
            return CommandResult.ok(f"Player {pid} is resting", player_id=pid)

        return self._run("set_player_resting", action, auto_match=True)

    def return_player_from_resting(self, player_id: str) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.LADDER, "Resting")
            pid = parse_player_id(player_id)
            if self.registry.get(pid).status is not PlayerStatus.RESTING:
                raise InvalidStateError(f"Player {pid} is not resting")
            self.recorder.change_state(pid, PlayerStatus.WAITING)
            return CommandResult.ok(f"Player {pid} is waiting again", player_id=pid)

        return self._run("return_player_from_resting", action, auto_match=True)

    def match_players(self) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.LADDER, "Matching on demand")
            config = self.storage.get_config(self.tournament_id)
            outcome = self.pairing.run(config)
            return CommandResult.ok(
                f"Seated {len(outcome.seated)} pair(s)", **_describe_outcome(outcome)
            )

        return self._run("match_players", action)

    def record_result(self, winner_id: str) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.LADDER, "record_result")
            pid = parse_player_id(winner_id)
            record = self.recorder.change_state(
                pid, PlayerStatus.WAITING, PlayerStatus.WAITING, Outcome.WIN
            )
            assert record is not None
            return CommandResult.ok(
                f"{record.result_label} wins match {record.match_id}",
                match_id=record.match_id,
                table_number=record.table_number,
            )

        return self._run("record_result", action, auto_match=True)

    def record_win_loss(self, winner_id: str) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.SWISS, "record_win_loss")
            pid = parse_player_id(winner_id)
            config = self.storage.get_config(self.tournament_id)
            record = self.recorder.record_round_result(
                pid, round_number=config.current_round
            )
            return CommandResult.ok(
                f"{record.result_label} wins match {record.match_id}",
                match_id=record.match_id,
                table_number=record.table_number,
                round_number=config.current_round,
            )

        return self._run("record_win_loss", action)

    def record_draw(self, player_id: str) -> CommandResult:
        def action() -> CommandResult:
            pid = parse_player_id(player_id)
            if self.variant is Variant.LADDER:
                record = self.recorder.change_state(
                    pid, PlayerStatus.WAITING, PlayerStatus.WAITING, Outcome.DRAW
                )
                assert record is not None
            else:
                config = self.storage.get_config(self.tournament_id)
                record = self.recorder.record_round_result(
                    pid, round_number=config.current_round, draw=True
                )
            return CommandResult.ok(
                f"Match {record.match_id} recorded as a draw",
                match_id=record.match_id,
                table_number=record.table_number,
            )

        return self._run("record_draw", action, auto_match=True)

    def correct_match_result(self, match_id: str) -> CommandResult:
        def action() -> CommandResult:
            mid = parse_match_id(match_id)
            swiss = self.variant is Variant.SWISS
            record = self.recorder.correct_match_result(
                mid, scoring=self.settings.scoring if swiss else None
            )
            if swiss:
                self.rounds.recompute_opponent_win_rates()
            return CommandResult.ok(
                f"Match {mid} corrected; {record.result_label} is now the winner",
                match_id=mid,
                winner_id=record.winner_id,
            )

        return self._run("correct_match_result", action)

    def start_new_round(self) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.SWISS, "start_new_round")
            config, outcome = self.rounds.start_new_round()
            return CommandResult.ok(
                f"Round {config.current_round} started",
                round_number=config.current_round,
                **_describe_outcome(outcome),
            )

        return self._run("start_new_round", action)

    def finish_tournament(self) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.SWISS, "finish_tournament")
            config = self.rounds.finish_tournament()
            return CommandResult.ok(
                f"Tournament finished after {config.current_round} round(s)",
                rounds=config.current_round,
            )

        return self._run("finish_tournament", action)

    def reset_tournament(self) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.SWISS, "reset_tournament")
            config = self.rounds.reset_tournament()
            return CommandResult.ok(
                "Tournament reset to round 0",
                round_number=config.current_round,
            )

        return self._run("reset_tournament", action)

    def round_status(self) -> CommandResult:
        def action() -> CommandResult:
            self._require_variant(Variant.SWISS, "round_status")
            status = self.rounds.round_status()
            return CommandResult.ok(
                f"Round {status.current_round}: "
                f"{status.completed_matches}/{status.total_matches} matches reported",
                current_round=status.current_round,
                completed_matches=status.completed_matches,
                total_matches=status.total_matches,
                is_complete=status.is_complete,
                status=status.status.value,
            )

        return self._run("round_status", action, locked=False)

    def configure_max_tables(self, value: object) -> CommandResult:
        def action() -> CommandResult:
            max_tables = validate_max_tables(value)
            config = self.storage.get_config(self.tournament_id)
            config.max_tables = max_tables
            config.updated_at = self._clock()
            self.storage.save_config(config)
            log.info("Maximum tables set to %s", max_tables)
            return CommandResult.ok(
                f"Maximum tables set to {max_tables}", max_tables=max_tables
            )

        return self._run("configure_max_tables", action)

    def show_standings(self) -> CommandResult:
        def action() -> CommandResult:
            rows = build_standings(self.registry.list_all(), self.variant)
            return CommandResult.ok(
                render_standings(rows), standings=[row.to_dict() for row in rows]
            )

        return self._run("show_standings", action, locked=False)


__all__ = ["CommandResult", "TournamentEngine"]
