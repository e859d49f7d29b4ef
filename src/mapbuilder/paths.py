"""Parsing of SVG-style path strings into typed command/coordinate streams."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator

_LETTER_RE = re.compile(r"([A-Za-z])")
_SEPARATOR_RE = re.compile(r"[\s,]+")

# Operand pairs each command takes per repetition; Z takes none.
_COMMAND_ARITY = {"M": 1, "L": 1, "C": 3, "Q": 2, "Z": 0}
SUPPORTED_COMMANDS = frozenset(_COMMAND_ARITY)


class MalformedPathError(ValueError):
    """Raised when a path string cannot be read as a coordinate stream."""

    def __init__(self, token: str, position: int, reason: str) -> None:
        super().__init__(f"Malformed path token {token!r} at position {position}: {reason}")
        self.token = token
        self.position = position
        self.reason = reason


@dataclass(frozen=True, slots=True)
class PathToken:
    """One entry of a parsed path: a command letter or an (x, y) pair."""

    command: str | None = None
    x: float | None = None
    y: float | None = None

    @property
    def is_command(self) -> bool:
        return self.command is not None

    @classmethod
    def for_command(cls, command: str) -> PathToken:
        return cls(command=command)

    @classmethod
    def point(cls, x: float, y: float) -> PathToken:
        return cls(x=x, y=y)


PathCommand = tuple[PathToken, ...]


def split_path_tokens(raw: str) -> list[str]:
    """Split a raw path string into command letters and numeric strings."""
    spaced = _LETTER_RE.sub(r" \1 ", raw).strip()
    if not spaced:
        return []
    return [token for token in _SEPARATOR_RE.split(spaced) if token]


@lru_cache(maxsize=4096)
def parse_path(raw: str) -> PathCommand:
    """Parse `raw` into commands interleaved with their coordinate pairs.

    Only absolute M, L, C, Q and Z are accepted so that every number belongs
    to an X/Y pair. Raises `MalformedPathError` naming the offending token.
    """
    tokens = split_path_tokens(raw)
    out: list[PathToken] = []
    command: str | None = None
    command_position = 0
    pending: list[float] = []

    def close_command() -> None:
        if command is None:
            return
        _check_operands(command, command_position, len(pending), tokens)
        for idx in range(0, len(pending), 2):
            out.append(PathToken.point(pending[idx], pending[idx + 1]))
        pending.clear()

    for position, token in enumerate(tokens):
        if any(ch.isalpha() for ch in token):
            close_command()
            if token not in SUPPORTED_COMMANDS:
                raise MalformedPathError(token, position, "unsupported command")
            command = token
            command_position = position
            out.append(PathToken.for_command(token))
            continue

        if command is None:
            raise MalformedPathError(token, position, "coordinate before first command")
        try:
            value = float(token)
        except ValueError:
            raise MalformedPathError(token, position, "not a number") from None
        pending.append(value)

    close_command()
    return tuple(out)


def _check_operands(command: str, position: int, count: int, tokens: list[str]) -> None:
    arity = _COMMAND_ARITY[command]
    if arity == 0:
        if count:
            raise MalformedPathError(command, position, "Z takes no coordinates")
        return
    numbers_per_step = arity * 2
    if count == 0 or count % numbers_per_step:
        # Report the first dangling number, or the command itself when empty.
        offending = position + 1 + count - (count % numbers_per_step or numbers_per_step)
        offending = min(max(offending, position), len(tokens) - 1)
        raise MalformedPathError(
            tokens[offending],
            offending,
            f"{command} expects coordinates in groups of {numbers_per_step}, got {count}",
        )


def iter_points(path: PathCommand) -> Iterator[tuple[float, float]]:
    """Yield the (x, y) pairs of `path` in order, skipping command tokens."""
    for token in path:
        if not token.is_command:
            yield token.x, token.y


def format_path(path: PathCommand) -> str:
    """Serialize a parsed or transformed path back to SVG path syntax."""
    parts: list[str] = []
    for token in path:
        if token.is_command:
            parts.append(token.command)
        else:
            parts.append(_format_coordinate(token.x))
            parts.append(_format_coordinate(token.y))
    return " ".join(parts)


def _format_coordinate(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
