from __future__ import annotations

import re

from .errors import ValidationError
from .models import (
    MATCH_ID_PREFIX,
    MAX_TABLES_LIMIT,
    MIN_TABLE_NUMBER,
    PLAYER_ID_PREFIX,
    format_match_id,
    format_player_id,
)

_DIGITS_PATTERN = re.compile(r"\d+$")

MAX_NAME_LENGTH = 100


def _parse_prefixed_id(raw: str, prefix: str, label: str) -> int:
    value = str(raw).strip().upper()
    if not value:
        raise ValidationError(f"{label} cannot be empty")
    if value.startswith(prefix):
        value = value[len(prefix) :]
    if not _DIGITS_PATTERN.match(value):
        raise ValidationError(f"{label} must be digits only (e.g. 1 or {prefix}001)")
    number = int(value)
    if number <= 0:
        raise ValidationError(f"{label} must be positive")
    return number


def parse_player_id(raw: str) -> str:
    """Accept ``"1"``, ``"001"`` or ``"P001"`` and return ``"P001"``."""
    return format_player_id(_parse_prefixed_id(raw, PLAYER_ID_PREFIX, "Player ID"))


def parse_match_id(raw: str) -> str:
    """Accept ``"1"`` or ``"T0001"`` and return ``"T0001"``."""
    return format_match_id(_parse_prefixed_id(raw, MATCH_ID_PREFIX, "Match ID"))


def normalize_player_name(raw: str | None, fallback: str) -> str:
    name = (raw or "").strip()
    if not name:
        return fallback
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Player name must be {MAX_NAME_LENGTH} characters or fewer"
        )
    return name


def validate_max_tables(value: object) -> int:
    if isinstance(value, bool):
        raise ValidationError("Maximum tables must be a number")
    try:
        max_tables = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError("Maximum tables must be a number") from exc
    if max_tables < MIN_TABLE_NUMBER or max_tables > MAX_TABLES_LIMIT:
        raise ValidationError(
            f"Maximum tables must be between {MIN_TABLE_NUMBER} and {MAX_TABLES_LIMIT}"
        )
    return max_tables


def validate_table_number(table_number: object, max_tables: int) -> int:
    if isinstance(table_number, bool) or not isinstance(table_number, int):
        raise ValidationError("Table number must be an integer")
    if table_number < MIN_TABLE_NUMBER:
        raise ValidationError(f"Table number must be at least {MIN_TABLE_NUMBER}")
    if table_number > max_tables:
        raise ValidationError(f"Table number must be {max_tables} or lower")
    return table_number


__all__ = [
    "MAX_NAME_LENGTH",
    "normalize_player_name",
    "parse_match_id",
    "parse_player_id",
    "validate_max_tables",
    "validate_table_number",
]
