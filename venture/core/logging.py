# venture/core/logging.py
"""Component loggers.

``get_logger('engine')`` returns the ``venture.engine`` logger, writing one
line per record to stdout::

    [14:02:11] [engine]      [INFO]    wf=3f2a9c1e started workflow 'import' with 4 jobs

Pass ``extra={'workflow_id': ...}`` to tag a record with the workflow it
concerns. The initial level comes from ``VENTURE_LOG_LEVEL`` (default INFO).
"""

import logging
import os
import sys
from datetime import datetime
from typing import Optional, TextIO


def _level_from_env() -> int:
    level = logging.getLevelName(os.environ.get('VENTURE_LOG_LEVEL', 'INFO').upper())
    return level if isinstance(level, int) else logging.INFO


# Level applied to loggers created from now on
_default_level: int = _level_from_env()


def _stream_supports_color(stream: TextIO) -> bool:
    if os.environ.get('NO_COLOR') is not None:
        return False
    return hasattr(stream, 'isatty') and stream.isatty()


class ColoredFormatter(logging.Formatter):
    """``[time] [component] [LEVEL] wf=<id> message``, colored when enabled."""

    RESET = '\033[0m'
    TIME_COLOR = '\033[94m'
    TEXT_COLOR = '\033[97m'
    WORKFLOW_COLOR = '\033[96m'

    LEVEL_COLORS = {
        'DEBUG': '\033[90m',
        'INFO': '\033[92m',
        'WARNING': '\033[93m',
        'ERROR': '\033[91m',
        'CRITICAL': '\033[1;91m',
    }

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors

    def _paint(self, color: str, text: str) -> str:
        return f'{color}{text}{self.RESET}' if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        # 'venture.store' -> 'store'
        component = record.name.rsplit('.', 1)[-1]
        parts = [
            self._paint(self.TIME_COLOR, datetime.fromtimestamp(record.created).strftime('[%H:%M:%S]')),
            ' ',
            self._paint(self.TEXT_COLOR, f'[{component}]'.ljust(14)),
            self._paint(
                self.LEVEL_COLORS.get(record.levelname, self.TEXT_COLOR),
                f'[{record.levelname}]'.ljust(10),
            ),
        ]
        workflow_id: Optional[str] = getattr(record, 'workflow_id', None)
        if workflow_id:
            parts.append(self._paint(self.WORKFLOW_COLOR, f'wf={workflow_id[:8]} '))
        parts.append(self._paint(self.TEXT_COLOR, record.getMessage()))

        formatted = ''.join(parts)
        if record.exc_info:
            formatted += '\n' + self.formatException(record.exc_info)
        return formatted


def set_default_level(level: int) -> None:
    """Set the level for loggers created after this call."""
    global _default_level
    _default_level = level


def get_logger(component_name: str) -> logging.Logger:
    logger = logging.getLogger(f'venture.{component_name}')
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(use_colors=_stream_supports_color(sys.stdout)))
    handler.setLevel(_default_level)
    logger.addHandler(handler)
    logger.setLevel(_default_level)
    # Parent 'venture' / root handlers would print every line twice
    logger.propagate = False
    return logger
