from pairing_engine import Player, PlayerStatus, Variant
from pairing_engine.standings import build_standings, render_standings


def make(number, status, **stats):
    return Player("cup", f"P{number:03d}", f"Player {number}", status, **stats)


def test_swiss_standings_use_points_then_omw():
    players = [
        make(1, PlayerStatus.ACTIVE, points=6, wins=2, opponent_win_rate=0.4),
        make(2, PlayerStatus.ACTIVE, points=6, wins=2, opponent_win_rate=0.6),
        make(3, PlayerStatus.ACTIVE, points=9, wins=3, matches_played=3),
        make(4, PlayerStatus.DROPPED, points=12, wins=4, matches_played=4),
    ]
    rows = build_standings(players, Variant.SWISS)
    assert [row.player_id for row in rows] == ["P003", "P002", "P001"]
    assert [row.rank for row in rows] == [1, 2, 3]


def test_ladder_standings_use_wins_then_rate():
    players = [
        make(1, PlayerStatus.WAITING, wins=2, losses=2, matches_played=4),
        make(2, PlayerStatus.IN_PROGRESS, wins=2, losses=0, matches_played=2),
        make(3, PlayerStatus.RESTING, wins=1, matches_played=1),
        make(4, PlayerStatus.DROPPED, wins=9, matches_played=9),
    ]
    rows = build_standings(players, Variant.LADDER)
    assert [row.player_id for row in rows] == ["P002", "P001", "P003"]


def test_render_caps_output():
    players = [make(n, PlayerStatus.WAITING, wins=30 - n) for n in range(1, 26)]
    text = render_standings(build_standings(players, Variant.LADDER))
    lines = text.splitlines()
    assert len(lines) == 21
    assert lines[0].startswith("1. Player 1 | 0 pts | 29-0")
    assert lines[-1] == "... and 5 more"
    assert render_standings([]) == "No players to rank yet."


def test_show_standings_command(ladder_engine):
    ladder_engine.register_player("Alice")
    ladder_engine.register_player("Bob")
    ladder_engine.record_result("2")

    result = ladder_engine.show_standings()
    assert result.success
    assert result.message.splitlines()[0].startswith("1. Bob")
    assert result.payload["standings"][0]["player_id"] == "P002"
