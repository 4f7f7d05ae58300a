"""Bounded on-screen message log."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

DEFAULT_LIMIT = 14


class MessageLog:
    """Keeps the most recent ``limit`` lines, dropping the oldest first."""

    def __init__(self, limit: int = DEFAULT_LIMIT) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._lines: deque[str] = deque(maxlen=limit)

    def add(self, text: str) -> None:
        self._lines.append(text)

    def clear(self) -> None:
        self._lines.clear()

    def render(self) -> str:
        """Return every line followed by a newline."""
        return "".join(f"{line}\n" for line in self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(self._lines)

    def __len__(self) -> int:
        return len(self._lines)