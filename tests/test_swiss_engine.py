import pytest
from conftest import TOURNAMENT_ID

from pairing_engine import MatchRecord, OpponentHistory, Player, PlayerStatus
from pairing_engine.rounds import opponent_win_rate


def register(engine, *names):
    for name in names:
        assert engine.register_player(name).success


def set_stats(engine, player_id, *, points, wins):
    player = engine.registry.get(player_id)
    player.points = points
    player.wins = wins
    player.matches_played = wins
    engine.registry.save(player)


def record_all(engine, tables):
    for table in tables:
        assert engine.record_win_loss(table["player1_id"]).success


def test_registration_in_swiss_does_not_pair(swiss_engine):
    result = swiss_engine.register_player("Alice")
    assert result.success
    assert "auto_match" not in result.payload
    player = swiss_engine.registry.get("P001")
    assert player.status is PlayerStatus.ACTIVE
    assert player.last_match_at == ""
    assert swiss_engine.storage.list_tables(TOURNAMENT_ID) == []


def test_odd_count_gives_lowest_ranked_player_a_bye(swiss_engine):
    register(swiss_engine, "A", "B", "C", "D", "E")
    for pid, points in zip(("P001", "P002", "P003", "P004", "P005"), (9, 6, 6, 3, 0)):
        set_stats(swiss_engine, pid, points=points, wins=points // 3)

    result = swiss_engine.start_new_round()
    assert result.success
    assert result.payload["round_number"] == 1
    assert result.payload["bye"] == "P005"
    assert len(result.payload["tables"]) == 2

    lucky = swiss_engine.registry.get("P005")
    assert (lucky.points, lucky.wins, lucky.matches_played) == (3, 1, 1)
    [bye] = swiss_engine.storage.list_matches(TOURNAMENT_ID)
    assert bye.is_bye
    assert bye.player2_id == ""
    assert bye.result_label == "Bye"
    assert bye.table_number == 3
    assert bye.round_number == 1
    # The bye has no row on the round sheet.
    seated = {
        pid
        for slot in swiss_engine.storage.list_tables(TOURNAMENT_ID)
        for pid in (slot.player1_id, slot.player2_id)
    }
    assert "P005" not in seated


def test_round_lifecycle_without_rematches(swiss_engine):
    register(swiss_engine, "A", "B", "C", "D")
    first = swiss_engine.start_new_round()
    assert first.success
    round_one = {
        frozenset((t["player1_id"], t["player2_id"])) for t in first.payload["tables"]
    }
    assert len(round_one) == 2

    status = swiss_engine.round_status()
    assert status.payload["total_matches"] == 2
    assert status.payload["completed_matches"] == 0
    assert status.payload["is_complete"] is False
    blocked = swiss_engine.start_new_round()
    assert blocked.payload["error"] == "invalid_state"

    record_all(swiss_engine, first.payload["tables"])
    repeat = swiss_engine.record_win_loss(first.payload["tables"][0]["player1_id"])
    assert repeat.payload["error"] == "invalid_state"
    assert swiss_engine.round_status().payload["is_complete"] is True

    second = swiss_engine.start_new_round()
    assert second.success
    assert second.payload["round_number"] == 2
    round_two = {
        frozenset((t["player1_id"], t["player2_id"])) for t in second.payload["tables"]
    }
    assert round_one.isdisjoint(round_two)
    # Winners of round one meet each other in round two.
    winners = {t["player1_id"] for t in first.payload["tables"]}
    assert winners in [set(pair) for pair in round_two]

    for player in swiss_engine.registry.list_all():
        assert player.opponent_win_rate == pytest.approx(
            1.0 if player.player_id not in winners else 0.333
        )

    records = swiss_engine.storage.list_matches(TOURNAMENT_ID)
    assert [r.round_number for r in records] == [1, 1]
    winner_points = sorted(p.points for p in swiss_engine.registry.list_all())
    assert winner_points == [0, 0, 3, 3]


def test_finish_blocks_further_changes(swiss_engine):
    register(swiss_engine, "A", "B")
    started = swiss_engine.start_new_round()
    assert swiss_engine.finish_tournament().payload["error"] == "invalid_state"

    record_all(swiss_engine, started.payload["tables"])
    finished = swiss_engine.finish_tournament()
    assert finished.success
    assert finished.payload["rounds"] == 1

    assert swiss_engine.register_player("Late").payload["error"] == "validation"
    assert swiss_engine.dropout_player("1").payload["error"] == "invalid_state"
    assert swiss_engine.start_new_round().payload["error"] == "invalid_state"
    assert swiss_engine.finish_tournament().payload["error"] == "invalid_state"
    assert swiss_engine.correct_match_result("1").success


def test_reset_returns_to_round_zero(swiss_engine):
    register(swiss_engine, "A", "B", "C")
    started = swiss_engine.start_new_round()
    record_all(swiss_engine, started.payload["tables"])
    assert swiss_engine.dropout_player("3").success
    assert swiss_engine.finish_tournament().success

    result = swiss_engine.reset_tournament()
    assert result.success
    assert result.payload["round_number"] == 0

    config = swiss_engine.storage.get_config(TOURNAMENT_ID)
    assert config.current_round == 0
    assert not config.is_finished
    for player in swiss_engine.registry.list_all():
        assert player.status is PlayerStatus.ACTIVE
        assert (player.points, player.wins, player.losses) == (0, 0, 0)
        assert player.matches_played == 0
        assert player.opponent_win_rate == 0.0
    assert swiss_engine.storage.list_matches(TOURNAMENT_ID) == []
    assert swiss_engine.storage.list_tables(TOURNAMENT_ID) == []

    again = swiss_engine.start_new_round()
    assert again.success
    assert again.payload["round_number"] == 1


def test_reset_is_swiss_only(ladder_engine):
    ladder_engine.register_player("A")
    assert ladder_engine.reset_tournament().payload["error"] == "invalid_state"


def test_dropout_refused_while_match_is_open(swiss_engine):
    register(swiss_engine, "A", "B", "C", "D")
    started = swiss_engine.start_new_round()
    table = started.payload["tables"][0]

    refused = swiss_engine.dropout_player(table["player2_id"])
    assert refused.payload["error"] == "invalid_state"

    record_all(swiss_engine, started.payload["tables"])
    assert swiss_engine.dropout_player(table["player2_id"]).success
    assert swiss_engine.dropout_player(table["player2_id"]).payload["error"] == (
        "invalid_state"
    )

    next_round = swiss_engine.start_new_round()
    assert next_round.success
    assert next_round.payload["bye"] is not None
    seated = {
        pid
        for t in next_round.payload["tables"]
        for pid in (t["player1_id"], t["player2_id"])
    }
    assert table["player2_id"] not in seated
    assert table["player2_id"] != next_round.payload["bye"]


def test_draw_awards_a_point_each(swiss_engine):
    register(swiss_engine, "A", "B")
    swiss_engine.start_new_round()

    result = swiss_engine.record_draw("2")
    assert result.success
    for pid in ("P001", "P002"):
        player = swiss_engine.registry.get(pid)
        assert (player.points, player.wins, player.matches_played) == (1, 0, 1)
    [slot] = swiss_engine.storage.list_tables(TOURNAMENT_ID)
    assert slot.result == "Draw"


def test_correction_moves_points(swiss_engine):
    register(swiss_engine, "A", "B")
    started = swiss_engine.start_new_round()
    winner = started.payload["tables"][0]["player1_id"]
    loser = started.payload["tables"][0]["player2_id"]
    swiss_engine.record_win_loss(winner)

    result = swiss_engine.correct_match_result("T0001")
    assert result.success
    assert swiss_engine.registry.get(winner).points == 0
    assert swiss_engine.registry.get(loser).points == 3
    assert swiss_engine.registry.get(loser).opponent_win_rate == pytest.approx(0.333)


def test_round_needs_two_active_players(swiss_engine):
    register(swiss_engine, "Solo")
    result = swiss_engine.start_new_round()
    assert result.payload["error"] == "invalid_state"
    assert swiss_engine.storage.get_config(TOURNAMENT_ID).current_round == 0


def test_no_possible_pairing_fails_without_writes(swiss_engine):
    register(swiss_engine, "A", "B")
    started = swiss_engine.start_new_round()
    record_all(swiss_engine, started.payload["tables"])

    again = swiss_engine.start_new_round()
    assert again.payload["error"] == "invalid_state"
    config = swiss_engine.storage.get_config(TOURNAMENT_ID)
    assert config.current_round == 1
    assert len(swiss_engine.storage.list_tables(TOURNAMENT_ID)) == 1


def test_ladder_only_commands_are_refused(swiss_engine):
    register(swiss_engine, "A", "B")
    assert swiss_engine.match_players().payload["error"] == "invalid_state"
    assert swiss_engine.record_result("1").payload["error"] == "invalid_state"
    assert swiss_engine.set_player_resting("1").payload["error"] == "invalid_state"


def test_opponent_win_rate_floors_and_skips():
    def make(pid, wins, played, status=PlayerStatus.ACTIVE):
        return Player("cup", pid, pid, status, wins=wins, matches_played=played)

    players = {
        "P001": make("P001", 1, 4),
        "P002": make("P002", 2, 3),
        "P003": make("P003", 0, 2),
        "P004": make("P004", 3, 3, PlayerStatus.DROPPED),
        "P005": make("P005", 0, 0),
    }
    history = OpponentHistory()
    for index, opponent in enumerate(("P002", "P003", "P004", "P005"), start=1):
        history.add(
            MatchRecord(
                tournament_id="cup",
                match_id=f"T{index:04d}",
                timestamp="2024-01-01T00:00:00.000Z",
                table_number=1,
                player1_id="P001",
                player1_name="P001",
                player2_id=opponent,
                player2_name=opponent,
                winner_id="P001",
                result_label="P001",
            )
        )
    rate = opponent_win_rate(players["P001"], players, history, floor=0.333)
    assert rate == pytest.approx((2 / 3 + 0.333) / 2)
    assert opponent_win_rate(players["P005"], players, history, floor=0.333) == 0.333
