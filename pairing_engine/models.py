from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import ClassVar

from .errors import SchemaMismatchError

PLAYER_ID_PREFIX = "P"
PLAYER_ID_DIGITS = 3
MATCH_ID_PREFIX = "T"
MATCH_ID_DIGITS = 4

MIN_TABLE_NUMBER = 1
MAX_TABLES_LIMIT = 200
DEFAULT_MAX_TABLES = 50

BYE_LABEL = "Bye"
DRAW_LABEL = "Draw"


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return format_timestamp(datetime.now(UTC))


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def format_player_id(number: int) -> str:
    return f"{PLAYER_ID_PREFIX}{number:0{PLAYER_ID_DIGITS}d}"


def format_match_id(number: int) -> str:
    return f"{MATCH_ID_PREFIX}{number:0{MATCH_ID_DIGITS}d}"


def id_number(value: str, prefix: str) -> int | None:
    """Return the numeric suffix of a prefixed id, or None if it has none."""
    if not value.startswith(prefix):
        return None
    digits = value[len(prefix) :]
    if not digits.isdigit():
        return None
    return int(digits)


class Variant(StrEnum):
    LADDER = "ladder"
    SWISS = "swiss"


class PlayerStatus(StrEnum):
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    RESTING = "resting"
    ACTIVE = "active"
    DROPPED = "dropped"

    @property
    def is_terminal(self) -> bool:
        return self is PlayerStatus.DROPPED


LADDER_STATUSES = frozenset(
    {
        PlayerStatus.WAITING,
        PlayerStatus.IN_PROGRESS,
        PlayerStatus.RESTING,
        PlayerStatus.DROPPED,
    }
)
SWISS_STATUSES = frozenset({PlayerStatus.ACTIVE, PlayerStatus.DROPPED})


def statuses_for(variant: Variant) -> frozenset[PlayerStatus]:
    return LADDER_STATUSES if variant is Variant.LADDER else SWISS_STATUSES


def available_status(variant: Variant) -> PlayerStatus:
    """Status a freshly registered (or released) player takes in ``variant``."""
    return PlayerStatus.WAITING if variant is Variant.LADDER else PlayerStatus.ACTIVE


class TournamentStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


def _require(record_type: str, item: Mapping[str, object], *fields: str) -> None:
    missing = [name for name in fields if name not in item]
    if missing:
        raise SchemaMismatchError(record_type, missing)


def _tournament_from_pk(item: Mapping[str, object]) -> str:
    return str(item["pk"]).split("#", 1)[1]


def _optional_str(value: object) -> str | None:
    if value in (None, ""):
        return None
    return str(value)


@dataclass(slots=True)
class Player:
    tournament_id: str
    player_id: str
    name: str
    status: PlayerStatus
    wins: int = 0
    losses: int = 0
    matches_played: int = 0
    points: int = 0
    opponent_win_rate: float = 0.0
    last_match_at: str = ""
    registered_at: str = ""

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_PREFIX: ClassVar[str] = "PLAYER#"
    REQUIRED: ClassVar[tuple[str, ...]] = (
        "pk",
        "player_id",
        "name",
        "wins",
        "losses",
        "matches_played",
        "status",
    )

    @classmethod
    def key(cls, tournament_id: str, player_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % tournament_id,
            "sk": f"{cls.SK_PREFIX}{player_id}",
        }

    @property
    def number(self) -> int:
        return id_number(self.player_id, PLAYER_ID_PREFIX) or 0

    @property
    def is_dropped(self) -> bool:
        return self.status is PlayerStatus.DROPPED

    @property
    def match_win_rate(self) -> float:
        if self.matches_played <= 0:
            return 0.0
        return self.wins / self.matches_played

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.tournament_id, self.player_id)
        item.update(
            {
                "player_id": self.player_id,
                "name": self.name,
                "wins": self.wins,
                "losses": self.losses,
                "matches_played": self.matches_played,
                "points": self.points,
                "opponent_win_rate": Decimal(str(round(self.opponent_win_rate, 4))),
                "status": self.status.value,
                "last_match_at": self.last_match_at,
                "registered_at": self.registered_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, object]) -> Player:
        _require("Player", item, *cls.REQUIRED)
        return cls(
            tournament_id=_tournament_from_pk(item),
            player_id=str(item["player_id"]),
            name=str(item["name"]),
            status=PlayerStatus(str(item["status"])),
            wins=int(item["wins"]),
            losses=int(item["losses"]),
            matches_played=int(item["matches_played"]),
            points=int(item.get("points", 0)),
            opponent_win_rate=float(item.get("opponent_win_rate", 0)),
            last_match_at=str(item.get("last_match_at", "")),
            registered_at=str(item.get("registered_at", "")),
        )


@dataclass(slots=True)
class MatchRecord:
    tournament_id: str
    match_id: str
    timestamp: str
    table_number: int
    player1_id: str
    player1_name: str
    player2_id: str = ""
    player2_name: str = ""
    winner_id: str | None = None
    result_label: str = ""
    round_number: int | None = None

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_PREFIX: ClassVar[str] = "MATCH#"
    REQUIRED: ClassVar[tuple[str, ...]] = (
        "pk",
        "match_id",
        "timestamp",
        "table_number",
        "player1_id",
        "player2_id",
        "result_label",
    )

    @classmethod
    def key(cls, tournament_id: str, match_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % tournament_id,
            "sk": f"{cls.SK_PREFIX}{match_id}",
        }

    @property
    def number(self) -> int:
        return id_number(self.match_id, MATCH_ID_PREFIX) or 0

    @property
    def is_bye(self) -> bool:
        return not self.player2_id or self.result_label == BYE_LABEL

    @property
    def is_draw(self) -> bool:
        return not self.is_bye and self.winner_id is None

    @property
    def is_complete(self) -> bool:
        return bool(self.player1_id) and bool(self.player2_id)

    def involves(self, player_id: str) -> bool:
        return player_id in (self.player1_id, self.player2_id)

    def opponent_of(self, player_id: str) -> str | None:
        if player_id == self.player1_id:
            return self.player2_id or None
        if player_id == self.player2_id:
            return self.player1_id or None
        return None

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.tournament_id, self.match_id)
        item.update(
            {
                "match_id": self.match_id,
                "timestamp": self.timestamp,
                "table_number": self.table_number,
                "player1_id": self.player1_id,
                "player1_name": self.player1_name,
                "player2_id": self.player2_id,
                "player2_name": self.player2_name,
                "result_label": self.result_label,
            }
        )
        if self.winner_id is not None:
            item["winner_id"] = self.winner_id
        if self.round_number is not None:
            item["round_number"] = self.round_number
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, object]) -> MatchRecord:
        _require("MatchRecord", item, *cls.REQUIRED)
        round_value = item.get("round_number")
        return cls(
            tournament_id=_tournament_from_pk(item),
            match_id=str(item["match_id"]),
            timestamp=str(item["timestamp"]),
            table_number=int(item["table_number"]),
            player1_id=str(item["player1_id"]),
            player1_name=str(item.get("player1_name", "")),
            player2_id=str(item["player2_id"]),
            player2_name=str(item.get("player2_name", "")),
            winner_id=_optional_str(item.get("winner_id")),
            result_label=str(item["result_label"]),
            round_number=int(round_value) if round_value is not None else None,
        )


@dataclass(slots=True)
class TableSlot:
    """One numbered table; empty player fields mark a free, reusable slot."""

    tournament_id: str
    table_number: int
    player1_id: str = ""
    player1_name: str = ""
    player2_id: str = ""
    player2_name: str = ""
    result: str = ""

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_PREFIX: ClassVar[str] = "TABLE#"
    REQUIRED: ClassVar[tuple[str, ...]] = ("pk", "table_number", "player1_id")

    @classmethod
    def key(cls, tournament_id: str, table_number: int) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % tournament_id,
            "sk": f"{cls.SK_PREFIX}{table_number:03d}",
        }

    @property
    def is_occupied(self) -> bool:
        return bool(self.player1_id)

    @property
    def is_open(self) -> bool:
        """Occupied and still waiting for a result."""
        return self.is_occupied and not self.result

    def seats(self, player_id: str) -> bool:
        return self.is_occupied and player_id in (self.player1_id, self.player2_id)

    def opponent_of(self, player_id: str) -> str | None:
        if player_id == self.player1_id:
            return self.player2_id or None
        if player_id == self.player2_id:
            return self.player1_id or None
        return None

    def seat(self, first: Player, second: Player) -> None:
        self.player1_id = first.player_id
        self.player1_name = first.name
        self.player2_id = second.player_id
        self.player2_name = second.name
        self.result = ""

    def vacate(self) -> None:
        self.player1_id = ""
        self.player1_name = ""
        self.player2_id = ""
        self.player2_name = ""
        self.result = ""

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.tournament_id, self.table_number)
        item.update(
            {
                "table_number": self.table_number,
                "player1_id": self.player1_id,
                "player1_name": self.player1_name,
                "player2_id": self.player2_id,
                "player2_name": self.player2_name,
                "result": self.result,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, object]) -> TableSlot:
        _require("TableSlot", item, *cls.REQUIRED)
        return cls(
            tournament_id=_tournament_from_pk(item),
            table_number=int(item["table_number"]),
            player1_id=str(item.get("player1_id", "")),
            player1_name=str(item.get("player1_name", "")),
            player2_id=str(item.get("player2_id", "")),
            player2_name=str(item.get("player2_name", "")),
            result=str(item.get("result", "")),
        )


@dataclass(slots=True)
class TournamentConfig:
    tournament_id: str
    max_tables: int = DEFAULT_MAX_TABLES
    current_round: int = 0
    status: TournamentStatus = TournamentStatus.IN_PROGRESS
    updated_at: str = ""

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_VALUE: ClassVar[str] = "CONFIG"

    @classmethod
    def key(cls, tournament_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % tournament_id, "sk": cls.SK_VALUE}

    @property
    def is_finished(self) -> bool:
        return self.status is TournamentStatus.FINISHED

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.tournament_id)
        item.update(
            {
                "max_tables": self.max_tables,
                "current_round": self.current_round,
                "status": self.status.value,
                "updated_at": self.updated_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, object]) -> TournamentConfig:
        _require("TournamentConfig", item, "pk")
        return cls(
            tournament_id=_tournament_from_pk(item),
            max_tables=int(item.get("max_tables", DEFAULT_MAX_TABLES)),
            current_round=int(item.get("current_round", 0)),
            status=TournamentStatus(
                str(item.get("status", TournamentStatus.IN_PROGRESS.value))
            ),
            updated_at=str(item.get("updated_at", "")),
        )


__all__ = [
    "PLAYER_ID_PREFIX",
    "PLAYER_ID_DIGITS",
    "MATCH_ID_PREFIX",
    "MATCH_ID_DIGITS",
    "MIN_TABLE_NUMBER",
    "MAX_TABLES_LIMIT",
    "DEFAULT_MAX_TABLES",
    "BYE_LABEL",
    "DRAW_LABEL",
    "Variant",
    "PlayerStatus",
    "TournamentStatus",
    "Player",
    "MatchRecord",
    "TableSlot",
    "TournamentConfig",
    "available_status",
    "format_match_id",
    "format_timestamp",
    "format_player_id",
    "id_number",
    "statuses_for",
    "utc_now_iso",
]
