from pairing_engine import Variant
from pairing_engine.config import read_settings, read_variant


def test_defaults(monkeypatch):
    for name in (
        "PAIRING_TABLE_NAME",
        "PAIRING_TOURNAMENT_ID",
        "PAIRING_VARIANT",
        "PAIRING_LOCK_TIMEOUT",
        "PAIRING_LOCK_BACKEND",
        "PAIRING_RANDOM_SEED",
        "PAIRING_AUTO_MATCH",
        "PAIRING_POINTS_WIN",
        "PAIRING_OMW_FLOOR",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = read_settings()
    assert settings.table_name is None
    assert settings.tournament_id == "default"
    assert settings.variant is Variant.LADDER
    assert settings.lock_timeout == 30.0
    assert settings.lock_backend == "dynamodb"
    assert settings.random_seed is None
    assert settings.auto_match is True
    assert settings.scoring.points_win == 3
    assert settings.scoring.omw_floor == 0.333


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PAIRING_TABLE_NAME", "pairings")
    monkeypatch.setenv("PAIRING_TOURNAMENT_ID", "spring")
    monkeypatch.setenv("PAIRING_VARIANT", "Swiss")
    monkeypatch.setenv("PAIRING_LOCK_TIMEOUT", "5")
    monkeypatch.setenv("PAIRING_LOCK_BACKEND", "local")
    monkeypatch.setenv("PAIRING_RANDOM_SEED", "11")
    monkeypatch.setenv("PAIRING_AUTO_MATCH", "off")
    monkeypatch.setenv("PAIRING_POINTS_WIN", "2")
    monkeypatch.setenv("PAIRING_OMW_FLOOR", "0.25")

    settings = read_settings()
    assert settings.table_name == "pairings"
    assert settings.tournament_id == "spring"
    assert settings.variant is Variant.SWISS
    assert settings.lock_timeout == 5.0
    assert settings.lock_backend == "local"
    assert settings.random_seed == 11
    assert settings.auto_match is False
    assert settings.scoring.points_win == 2
    assert settings.scoring.omw_floor == 0.25


def test_bad_values_fall_back(monkeypatch):
    monkeypatch.setenv("PAIRING_LOCK_BACKEND", "redis")
    monkeypatch.setenv("PAIRING_RANDOM_SEED", "abc")
    monkeypatch.setenv("PAIRING_LOCK_TIMEOUT", "soon")
    settings = read_settings()
    assert settings.lock_backend == "dynamodb"
    assert settings.random_seed is None
    assert settings.lock_timeout == 30.0
    assert read_variant("knockout") is Variant.LADDER
