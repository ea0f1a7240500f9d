# © Copyright 2022-2024 Mikołaj Kuranowski
# SPDX-License-Identifier: GPL-3.0-or-later

import logging
import os
import sys
from typing import Mapping, NamedTuple


class Palette(NamedTuple):
    """Palette holds the `ANSI escape sequences <https://en.wikipedia.org/wiki/ANSI_escape_code>`_
    used by the :py:class:`ColoredFormatter`."""

    reset: str = "\x1b[0m"
    dim: str = "\x1b[2m"
    red: str = "\x1b[31m"
    green: str = "\x1b[32m"
    yellow: str = "\x1b[33m"
    blue: str = "\x1b[34m"
    cyan: str = "\x1b[36m"
    white_on_red: str = "\x1b[37m\x1b[41m"

    @classmethod
    def plain(cls) -> "Palette":
        return cls(*("" for _ in cls._fields))

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] = os.environ) -> "Palette":
        """Returns the colored palette, unless `NO_COLOR <https://no-color.org>`_ is set.

        >>> Palette.from_environ({"NO_COLOR": "1"}).red
        ''
        >>> Palette.from_environ({}).red
        '\\x1b[31m'
        """
        return cls.plain() if environ.get("NO_COLOR") else cls()


class ColoredFormatter(logging.Formatter):
    """ColoredFormatter is an opinionated log formatter with human-readable output,
    colored according to the provided :py:class:`Palette`.
    """

    default_time_format = "%H:%M:%S"
    default_msec_format = "%s.%03d"

    palette: Palette

    def __init__(self, palette: Palette | None = None) -> None:
        super().__init__()
        self.palette = Palette.from_environ() if palette is None else palette

    def get_msg_color(self, level: int) -> str:
        if level >= logging.CRITICAL:
            return self.palette.white_on_red
        elif level >= logging.ERROR:
            return self.palette.red
        elif level >= logging.WARNING:
            return self.palette.yellow
        elif level >= logging.INFO:
            return self.palette.reset
        else:
            return self.palette.dim

    def usesTime(self) -> bool:
        return True

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        record.asctime = self.formatTime(record)
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        exception_suffix = f"\n{record.exc_text}" if record.exc_text else ""

        p = self.palette
        msg_color = self.get_msg_color(record.levelno)
        return (
            f"{p.blue}[{p.cyan}{record.levelname}{p.blue} {record.asctime}] "
            f"{p.green}{record.name}{p.reset}: {msg_color}{record.message}{p.reset}"
            f"{exception_suffix}"
        )


def initialize(verbose: bool) -> None:
    """Resets logging handlers so that only a single logging.StreamHandler with
    :py:class:`ColoredFormatter` writes onto the terminal (via stderr).
    Other handlers writing to stdout or stderr are removed - those would interleave
    with the output of cargo.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    handlers_to_remove: list[logging.Handler] = [
        handler
        for handler in root_logger.handlers
        if isinstance(handler, logging.StreamHandler)
        and (handler.stream is sys.stdout or handler.stream is sys.stderr)  # type: ignore
    ]
    for handler in handlers_to_remove:
        root_logger.removeHandler(handler)

    new_handler = logging.StreamHandler(sys.stderr)
    new_handler.setFormatter(ColoredFormatter())
    root_logger.addHandler(new_handler)
