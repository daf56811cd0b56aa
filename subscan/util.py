"""Input clean-up helpers."""

from __future__ import annotations

_TRIM_CHARS = "\n\t\"' "


class EmptyInputError(ValueError):
    """Raised when an input line holds no data."""

    def __init__(self) -> None:
        super().__init__("empty data")


def sanitize(data: str) -> str:
    """Strip quotes and whitespace; raise EmptyInputError if nothing is left."""
    cleaned = data.strip(_TRIM_CHARS)
    if not cleaned:
        raise EmptyInputError()
    return cleaned


def load_from_file(path) -> list[str]:
    """Read the non-empty, sanitized lines of a file."""
    items = []
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            try:
                items.append(sanitize(line))
            except EmptyInputError:
                continue
    return items