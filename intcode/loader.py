"""
Program loading: one line of comma-separated signed integers.
"""

from __future__ import annotations

from pathlib import Path


class ProgramFormatError(ValueError):
    """Program text that is not a comma-separated list of integers."""


def parse_program(text: str) -> list[int]:
    """Parse ``"1,0,0,0,99\\n"`` into ``[1, 0, 0, 0, 99]``."""
    text = text.strip()
    if not text:
        raise ProgramFormatError("empty program")
    words = []
    for pos, token in enumerate(text.split(",")):
        token = token.strip()
        try:
            words.append(int(token))
        except ValueError:
            raise ProgramFormatError(f"invalid word {token!r} at position {pos}") from None
    return words


def load_program(path: str | Path) -> list[int]:
    """Read the program on the first line of ``path``."""
    path = Path(path)
    with path.open() as f:
        line = f.readline()
    try:
        return parse_program(line)
    except ProgramFormatError as e:
        raise ProgramFormatError(f"{path}: {e}") from None
