"""Tests for parsing_utils module"""

from pytest import raises

from parsing_utils import parse_name_value, parse_name_value_list


def test_parse_name_value_basic():
    """parse_name_value should parse basic Name:Value strings"""
    name, value = parse_name_value("smelter_1:150")
    assert name == "smelter_1"
    assert value == 150.0

    print(f"✓ Parsed: {name} at {value}")


def test_parse_name_value_with_spaces():
    """parse_name_value should handle extra whitespace"""
    name, value = parse_name_value("  copper line : 62.5  ")
    assert name == "copper line"
    assert value == 62.5


def test_parse_name_value_no_colon():
    """parse_name_value should raise error without colon"""
    with raises(ValueError, match="Invalid format"):
        parse_name_value("smelter_1 150")


def test_parse_name_value_invalid_value():
    """parse_name_value should raise error for non-numeric value"""
    with raises(ValueError, match="Invalid value"):
        parse_name_value("smelter_1:fast")


def test_parse_name_value_empty_name():
    """parse_name_value should reject an empty name"""
    with raises(ValueError, match="Name is empty"):
        parse_name_value(" :150")


def test_parse_name_value_colon_in_name():
    """the value is taken after the last colon"""
    # rsplit keeps "line:a" together as the name
    name, value = parse_name_value("line:a:75")
    assert name == "line:a"
    assert value == 75.0


def test_parse_name_value_list():
    """parse_name_value_list should parse comma-separated pairs"""
    result = parse_name_value_list("smelter_1:150, smelter_2:50")
    assert result == {"smelter_1": 150.0, "smelter_2": 50.0}


def test_parse_name_value_list_empty():
    """empty, whitespace and None inputs give an empty dict"""
    assert parse_name_value_list("") == {}
    assert parse_name_value_list("   ") == {}
    assert parse_name_value_list(None) == {}


def test_parse_name_value_list_trailing_comma():
    """blank entries between commas are skipped"""
    assert parse_name_value_list("miner:250, ,") == {"miner": 250.0}


def test_parse_name_value_list_duplicates():
    """the last value for a repeated name wins"""
    assert parse_name_value_list("miner:100, miner:200") == {"miner": 200.0}


def test_parse_name_value_list_invalid_item():
    """one malformed item fails the whole list"""
    with raises(ValueError, match="Invalid format"):
        parse_name_value_list("miner:100, constructor")
