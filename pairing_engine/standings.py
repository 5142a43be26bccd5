from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .models import Player, PlayerStatus, Variant

MAX_STANDINGS_LINES = 20


@dataclass(frozen=True, slots=True)
class StandingsRow:
    rank: int
    player_id: str
    name: str
    points: int
    wins: int
    losses: int
    opponent_win_rate: float
    matches_played: int

    def to_dict(self) -> dict[str, object]:
        return {
            "rank": self.rank,
            "player_id": self.player_id,
            "name": self.name,
            "points": self.points,
            "wins": self.wins,
            "losses": self.losses,
            "opponent_win_rate": round(self.opponent_win_rate, 4),
            "matches_played": self.matches_played,
        }


def standings_order(players: Iterable[Player], variant: Variant) -> list[Player]:
    if variant is Variant.SWISS:
        eligible = [p for p in players if p.status is PlayerStatus.ACTIVE]
        return sorted(
            eligible,
            key=lambda p: (
                -p.points,
                -p.opponent_win_rate,
                -p.match_win_rate,
                p.matches_played,
                p.number,
            ),
        )
    eligible = [p for p in players if not p.is_dropped]
    return sorted(
        eligible,
        key=lambda p: (-p.wins, -p.match_win_rate, p.matches_played, p.number),
    )


def build_standings(players: Iterable[Player], variant: Variant) -> list[StandingsRow]:
    return [
        StandingsRow(
            rank=rank,
            player_id=player.player_id,
            name=player.name,
            points=player.points,
            wins=player.wins,
            losses=player.losses,
            opponent_win_rate=player.opponent_win_rate,
            matches_played=player.matches_played,
        )
        for rank, player in enumerate(standings_order(players, variant), start=1)
    ]


def render_standings(
    rows: list[StandingsRow], *, limit: int = MAX_STANDINGS_LINES
) -> str:
    if not rows:
        return "No players to rank yet."
    lines = [
        f"{row.rank}. {row.name} | {row.points} pts | {row.wins}-{row.losses} | "
        f"OMW {row.opponent_win_rate * 100:.1f}% | {row.matches_played} played"
        for row in rows[:limit]
    ]
    if len(rows) > limit:
        lines.append(f"... and {len(rows) - limit} more")
    return "\n".join(lines)


__all__ = [
    "MAX_STANDINGS_LINES",
    "StandingsRow",
    "build_standings",
    "render_standings",
    "standings_order",
]
