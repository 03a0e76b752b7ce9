"""Unit tests for venture logging module."""

from __future__ import annotations

import io
import logging
import sys
import uuid
from collections.abc import Iterator

import pytest

from venture.core.logging import (
    ColoredFormatter,
    _level_from_env,
    _stream_supports_color,
    get_logger,
    set_default_level,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _restore_default_level() -> Iterator[None]:
    """Save and restore the module-level _default_level after each test."""
    from venture.core import logging as venture_logging

    original = venture_logging._default_level
    yield
    set_default_level(original)


def _unique_component() -> str:
    return f'test_{uuid.uuid4().hex[:8]}'


def _record(name: str, level: int, msg: str, **extra: str) -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLevelFromEnv:
    def test_defaults_to_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv('VENTURE_LOG_LEVEL', raising=False)
        assert _level_from_env() == logging.INFO

    def test_reads_level_name_case_insensitively(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('VENTURE_LOG_LEVEL', 'debug')
        assert _level_from_env() == logging.DEBUG

    def test_unknown_name_falls_back_to_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('VENTURE_LOG_LEVEL', 'chatty')
        assert _level_from_env() == logging.INFO


class TestStreamSupportsColor:
    def test_plain_buffer_has_no_color(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv('NO_COLOR', raising=False)
        assert _stream_supports_color(io.StringIO()) is False

    def test_no_color_wins_over_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        class _Tty(io.StringIO):
            def isatty(self) -> bool:
                return True

        monkeypatch.delenv('NO_COLOR', raising=False)
        assert _stream_supports_color(_Tty()) is True
        monkeypatch.setenv('NO_COLOR', '1')
        assert _stream_supports_color(_Tty()) is False


class TestSetDefaultLevel:
    """Tests for set_default_level()."""

    def test_changes_module_variable(self) -> None:
        from venture.core import logging as venture_logging

        set_default_level(logging.DEBUG)
        assert venture_logging._default_level == logging.DEBUG

    def test_new_logger_uses_default_level(self) -> None:
        set_default_level(logging.WARNING)
        logger = get_logger(_unique_component())
        assert logger.level == logging.WARNING
        for handler in logger.handlers:
            assert handler.level == logging.WARNING


class TestGetLogger:
    """Tests for get_logger()."""

    def test_namespaced_under_venture(self) -> None:
        component = _unique_component()
        assert get_logger(component).name == f'venture.{component}'

    def test_single_handler_on_repeat_calls(self) -> None:
        component = _unique_component()
        first = get_logger(component)
        second = get_logger(component)
        assert first is second
        assert len(second.handlers) == 1

    def test_does_not_propagate(self) -> None:
        assert get_logger(_unique_component()).propagate is False

    def test_uses_colored_formatter(self) -> None:
        logger = get_logger(_unique_component())
        assert isinstance(logger.handlers[0].formatter, ColoredFormatter)


class TestColoredFormatter:
    """Tests for ColoredFormatter output."""

    def test_includes_component_level_and_message(self) -> None:
        output = ColoredFormatter().format(_record('venture.engine', logging.WARNING, 'job failed'))
        assert '[engine]' in output
        assert '[WARNING]' in output
        assert 'job failed' in output

    def test_level_color_applied(self) -> None:
        output = ColoredFormatter().format(_record('venture.store', logging.ERROR, 'boom'))
        assert ColoredFormatter.LEVEL_COLORS['ERROR'] in output

    def test_plain_output_without_colors(self) -> None:
        output = ColoredFormatter(use_colors=False).format(
            _record('venture.store', logging.INFO, 'saved')
        )
        assert '\033[' not in output
        assert '[store]' in output
        assert output.endswith('saved')

    def test_workflow_id_prefix(self) -> None:
        output = ColoredFormatter(use_colors=False).format(
            _record('venture.engine', logging.INFO, 'started', workflow_id='3f2a9c1e-0000-4000')
        )
        assert 'wf=3f2a9c1e started' in output

    def test_no_workflow_prefix_without_extra(self) -> None:
        output = ColoredFormatter(use_colors=False).format(
            _record('venture.engine', logging.INFO, 'idle')
        )
        assert 'wf=' not in output

    def test_exception_info_appended(self) -> None:
        try:
            raise ValueError('kaput')
        except ValueError:
            record = logging.LogRecord(
                'venture.engine', logging.ERROR, __file__, 1, 'oops', None, sys.exc_info()
            )
        output = ColoredFormatter().format(record)
        assert 'ValueError: kaput' in output
