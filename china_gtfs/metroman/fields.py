"""Lenient field parsing for archive records.

Malformed numeric fields parse to zero instead of failing the whole table.
"""


def field_at(record: list[str], position: int) -> str:
    """Return a field, or an empty string when the record is too short."""
    if position < len(record):
        return record[position].strip()
    return ""


def parse_int(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return 0


def parse_float(value: str) -> float:
    try:
        return float(value.strip())
    except ValueError:
        return 0.0
