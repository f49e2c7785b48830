"""Logging helpers."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Configure application logging once for CLI and server usage."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def get_logger() -> logging.Logger:
    """Return the package logger used across modules."""
    return logging.getLogger("lead_cascade")


class RunLog:
    """Append-only run transcript that never repeats a line.

    Lines keep insertion order. Each new line is mirrored to the process
    logger. ``drain()`` hands out only lines not yet emitted.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._lines: dict[str, None] = {}
        self._drained = 0
        self._logger = logger

    def add(self, line: str) -> bool:
        if line in self._lines:
            return False
        self._lines[line] = None
        if self._logger is not None:
            self._logger.info("%s", line)
        return True

    def extend(self, lines: list[str]) -> None:
        for line in lines:
            self.add(line)

    def drain(self) -> list[str]:
        lines = list(self._lines)
        fresh = lines[self._drained :]
        self._drained = len(lines)
        return fresh

    def snapshot(self) -> list[str]:
        return list(self._lines)

    def __contains__(self, line: object) -> bool:
        return line in self._lines

    def __len__(self) -> int:
        return len(self._lines)
