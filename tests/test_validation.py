import pytest

from pairing_engine import ValidationError
from pairing_engine.validation import (
    normalize_player_name,
    parse_match_id,
    parse_player_id,
    validate_max_tables,
    validate_table_number,
)


@pytest.mark.parametrize("raw", ["1", "001", "P001", " p1 "])
def test_parse_player_id_accepts_bare_and_prefixed(raw):
    assert parse_player_id(raw) == "P001"


def test_parse_match_id_pads_to_four_digits():
    assert parse_match_id("12") == "T0012"
    assert parse_match_id("T0012") == "T0012"


@pytest.mark.parametrize("raw", ["", "abc", "P", "0", "T001"])
def test_parse_player_id_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        parse_player_id(raw)


def test_player_name_falls_back_to_id():
    assert normalize_player_name("  ", "P004") == "P004"
    assert normalize_player_name(None, "P004") == "P004"
    assert normalize_player_name(" Alice ", "P004") == "Alice"
    with pytest.raises(ValidationError):
        normalize_player_name("x" * 101, "P004")


def test_validate_max_tables_bounds():
    assert validate_max_tables("1") == 1
    assert validate_max_tables(200) == 200
    for bad in (0, 201, "ten", True):
        with pytest.raises(ValidationError):
            validate_max_tables(bad)


def test_validate_table_number():
    assert validate_table_number(3, 5) == 3
    for bad in (0, 6, "3", 2.0):
        with pytest.raises(ValidationError):
            validate_table_number(bad, 5)
