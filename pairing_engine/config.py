"""Environment-driven settings for the pairing engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .locking import DEFAULT_LOCK_TIMEOUT
from .models import Variant

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_OMW_FLOOR = 0.333


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, *, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ScoringRules:
    points_win: int = 3
    points_draw: int = 1
    points_loss: int = 0
    points_bye: int = 3
    omw_floor: float = DEFAULT_OMW_FLOOR


@dataclass(frozen=True)
class EngineSettings:
    table_name: str | None = None
    region: str = "us-east-1"
    tournament_id: str = "default"
    variant: Variant = Variant.LADDER
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    lock_backend: str = "dynamodb"
    random_seed: int | None = None
    auto_match: bool = True
    scoring: ScoringRules = field(default_factory=ScoringRules)


def read_variant(raw: str | None, *, default: Variant = Variant.LADDER) -> Variant:
    if not raw:
        return default
    try:
        return Variant(raw.strip().lower())
    except ValueError:
        return default


def read_settings() -> EngineSettings:
    scoring = ScoringRules(
        points_win=env_int("PAIRING_POINTS_WIN", default=3) or 0,
        points_draw=env_int("PAIRING_POINTS_DRAW", default=1) or 0,
        points_loss=env_int("PAIRING_POINTS_LOSS", default=0) or 0,
        points_bye=env_int("PAIRING_POINTS_BYE", default=3) or 0,
        omw_floor=env_float("PAIRING_OMW_FLOOR", default=DEFAULT_OMW_FLOOR),
    )
    backend = os.getenv("PAIRING_LOCK_BACKEND", "dynamodb").strip().lower()
    if backend not in ("local", "dynamodb"):
        backend = "dynamodb"
    return EngineSettings(
        table_name=os.getenv("PAIRING_TABLE_NAME") or None,
        region=os.getenv("AWS_REGION", "us-east-1"),
        tournament_id=os.getenv("PAIRING_TOURNAMENT_ID", "default") or "default",
        variant=read_variant(os.getenv("PAIRING_VARIANT")),
        lock_timeout=env_float("PAIRING_LOCK_TIMEOUT", default=DEFAULT_LOCK_TIMEOUT),
        lock_backend=backend,
        random_seed=env_int("PAIRING_RANDOM_SEED"),
        auto_match=env_bool("PAIRING_AUTO_MATCH", default=True),
        scoring=scoring,
    )


__all__ = [
    "EngineSettings",
    "ScoringRules",
    "env_bool",
    "env_float",
    "env_int",
    "read_settings",
    "read_variant",
]
