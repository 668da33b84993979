"""Parsing of 'Name:Value' overrides given on the command line."""


def _parse_number(value_str: str, name: str) -> float:
    try:
        return float(value_str)
    except ValueError as exc:
        raise ValueError(f"Invalid value '{value_str}' for {name}. Must be a number.") from exc


def parse_name_value(text: str) -> tuple[str, float]:
    """Parse one 'Name:Value' pair.

    The value follows the last colon, so names may contain colons themselves.

    Raises:
        ValueError: if there is no colon, the name is empty or the value is
            not a number
    """
    if ":" not in text:
        raise ValueError(f"Invalid format: '{text}'. Expected 'Name:Value'")
    name, value_str = (part.strip() for part in text.rsplit(":", 1))
    if not name:
        raise ValueError(f"Invalid format: '{text}'. Name is empty")
    return name, _parse_number(value_str, name)


def parse_name_value_list(text: str | None) -> dict[str, float]:
    """Parse comma-separated pairs such as "smelter_1:150, constructor_2:75".

    Postcondition:
        blank or None text returns an empty dict
        blank entries between commas are skipped
        the last value of a repeated name wins

    Raises:
        ValueError: if any entry is not a valid 'Name:Value' pair
    """
    if not text or not text.strip():
        return {}
    return dict(parse_name_value(item) for item in text.split(",") if item.strip())
