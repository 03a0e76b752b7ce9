"""Structured venture errors with rustc-like terminal rendering.

Every error venture raises on purpose is a VentureError: it carries an
ErrorCode, the user-code location that triggered it, optional notes, a help
line and the workflow/job it concerns. ``str(error)`` gives the plain
rendering; the excepthook installed by ``import venture`` prints the colored
one for uncaught errors.
"""

from __future__ import annotations

import inspect
import linecache
import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple

_VENTURE_PKG_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class ErrorCode(str, Enum):
    """
    - E001-E099: workflow definition
    - E100-E199: runtime state
    - E200-E299: configuration and store
    """

    WORKFLOW_UNRESOLVABLE_DEPENDENCY = 'E001'
    WORKFLOW_DUPLICATE_JOB_ID = 'E002'
    WORKFLOW_CYCLE_DETECTED = 'E003'
    WORKFLOW_DEFINITION_SEALED = 'E004'
    WORKFLOW_INVALID_JOB_ID = 'E005'
    WORKFLOW_NO_NAME = 'E006'

    JOB_INVALID_TRANSITION = 'E100'
    JOB_NOT_FOUND = 'E101'
    WORKFLOW_NOT_FOUND = 'E102'

    CONFIG_INVALID_QUEUE_MODE = 'E200'
    CONFIG_INVALID_QUEUE = 'E201'
    STORE_INVALID_URL = 'E202'


class _Palette(NamedTuple):
    reset: str
    bold: str
    error: str
    gutter: str
    path: str
    help: str
    dim: str


_ANSI = _Palette(
    reset='\033[0m',
    bold='\033[1m',
    error='\033[91m',
    gutter='\033[94m',
    path='\033[96m',
    help='\033[92m',
    dim='\033[2m',
)
_PLAIN = _Palette('', '', '', '', '', '', '')


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def _should_use_colors() -> bool:
    if _env_flag('VENTURE_FORCE_COLOR'):
        return True
    # https://no-color.org/
    if os.environ.get('NO_COLOR') is not None:
        return False
    return hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()


def _should_show_verbose() -> bool:
    return _env_flag('VENTURE_VERBOSE')


def _should_use_plain_errors() -> bool:
    return _env_flag('VENTURE_PLAIN_ERRORS')


def _palette(use_colors: bool | None) -> _Palette:
    if use_colors is None:
        use_colors = _should_use_colors()
    return _ANSI if use_colors else _PLAIN


@dataclass
class SourceLocation:
    file: str
    line: int
    column: int | None = None

    @classmethod
    def from_frame(cls, frame: Any) -> SourceLocation:
        return cls(file=frame.f_code.co_filename, line=frame.f_lineno)

    def get_source_line(self) -> str | None:
        text = linecache.getline(self.file, self.line)
        return text.rstrip('\n') if text else None

    def format_short(self) -> str:
        suffix = f':{self.column}' if self.column is not None else ''
        return f'{self.file}:{self.line}{suffix}'


def _snippet(location: SourceLocation, p: _Palette) -> list[str]:
    """``--> file:line`` plus the offending source line underlined."""
    lines = [f'  {p.gutter}-->{p.reset} {p.path}{location.format_short()}{p.reset}']
    source = location.get_source_line()
    if not source:
        return lines
    number = str(location.line)
    pad = ' ' * len(number)
    code = source.lstrip()
    underline = ' ' * (len(source) - len(code)) + '^' * len(code)
    lines.append(f'   {p.gutter}{pad}|{p.reset}')
    lines.append(f'   {p.gutter}{number}|{p.reset} {source}')
    lines.append(f'   {p.gutter}{pad}|{p.reset} {p.error}{underline}{p.reset}')
    return lines


def _annotation(label: str, text: str, p: _Palette) -> list[str]:
    first, *rest = text.split('\n')
    lines = [f'   {p.gutter}={p.reset} {p.bold}{p.gutter}{label}{p.reset}: {first}']
    lines.extend(f'          {line}' for line in rest)
    return lines


@dataclass
class VentureError(Exception):
    """
    Base class for venture errors.

    ``context`` names the workflow and/or job the error concerns, e.g.
    ``{'workflow': 'c0ffee...', 'job': 'send-invoice'}``.
    """

    message: str
    code: ErrorCode | None = None
    location: SourceLocation | None = None
    notes: list[str] = field(default_factory=lambda: [])
    help_text: str | None = None
    context: dict[str, str] = field(default_factory=lambda: {})

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.location is None:
            frame = _find_user_frame()
            if frame is not None:
                self.location = SourceLocation.from_frame(frame)

    def with_note(self, note: str) -> VentureError:
        self.notes.append(note)
        return self

    def with_help(self, help_text: str) -> VentureError:
        self.help_text = help_text
        return self

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        p = _palette(use_colors)
        code = f'[{self.code.value}]' if self.code else ''
        lines = ['', f'{p.bold}{p.error}error{code}:{p.reset} {self.message}']
        if self.location is not None:
            lines.extend(_snippet(self.location, p))
        for key, value in self.context.items():
            lines.extend(_annotation(key, value, p))
        for note in self.notes:
            lines.extend(_annotation('note', note, p))
        if self.help_text:
            lines.append('')
            lines.append(f'   {p.gutter}={p.reset} {p.bold}{p.help}help{p.reset}:')
            lines.extend(f'        {line}' for line in self.help_text.split('\n'))
        return '\n'.join(lines)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


_original_excepthook = sys.excepthook


def _venture_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    if _should_use_plain_errors() or not isinstance(exc_value, VentureError):
        _original_excepthook(exc_type, exc_value, exc_tb)
        return

    print(exc_value.format_rust_style(), file=sys.stderr)
    if _should_show_verbose():
        p = _palette(None)
        print(file=sys.stderr)
        print(f'{p.dim}Full traceback (VENTURE_VERBOSE=1):{p.reset}', file=sys.stderr)
        traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)


def install_error_handler() -> None:
    sys.excepthook = _venture_excepthook


def uninstall_error_handler() -> None:
    sys.excepthook = _original_excepthook


# =============================================================================
# Definition-time errors
# =============================================================================


@dataclass
class WorkflowValidationError(VentureError):
    """The workflow definition is structurally invalid."""


@dataclass
class UnresolvableDependencyError(WorkflowValidationError):
    """A dependency names an id that is not (yet) in the graph."""


@dataclass
class DuplicateJobError(WorkflowValidationError):
    """A job or nested workflow id is already taken."""


@dataclass
class CycleDetectedError(WorkflowValidationError):
    """Resolved dependencies form a cycle."""


@dataclass
class DefinitionSealedError(WorkflowValidationError):
    """Structural change attempted after the definition was built."""


@dataclass
class InvalidJobIdError(WorkflowValidationError):
    """Job id is empty or too long."""


# =============================================================================
# Runtime and configuration errors
# =============================================================================


@dataclass
class InvalidStateTransitionError(VentureError):
    """A job or workflow was asked to make an illegal transition."""


@dataclass
class JobNotFoundError(VentureError):
    pass


@dataclass
class WorkflowNotFoundError(VentureError):
    pass


@dataclass
class ConfigurationError(VentureError):
    pass


# =============================================================================
# Error collection
# =============================================================================


class ValidationReport:
    """Errors collected during one validation phase, reported together."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name: str = phase_name
        self.errors: list[VentureError] = []

    def add(self, error: VentureError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        p = _palette(use_colors)
        rendered = [error.format_rust_style(use_colors=p is _ANSI) for error in self.errors]
        rendered.append(
            f'\n{p.bold}{p.error}error{p.reset}: '
            f'aborting due to {len(self.errors)} previous errors'
        )
        return '\n'.join(rendered)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(VentureError):
    """Two or more errors from one ValidationReport."""

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f'aborting due to {len(self.report.errors)} previous errors'
        # Each collected error has its own location
        Exception.__init__(self, self.message)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


def raise_collected(report: ValidationReport) -> None:
    """No-op for 0 errors, re-raise a single error as is, wrap 2+."""
    if not report.errors:
        return
    if len(report.errors) == 1:
        raise report.errors[0]
    raise MultipleValidationErrors(
        message=f'aborting due to {len(report.errors)} previous errors',
        report=report,
    )


def _find_user_frame() -> Any | None:
    """First stack frame outside venture itself and installed libraries."""
    frame = inspect.currentframe()
    while frame is not None:
        filename = frame.f_code.co_filename
        internal = (
            filename.startswith('<')
            or filename.startswith(_VENTURE_PKG_DIR)
            or '/site-packages/' in filename
        )
        if not internal:
            return frame
        frame = frame.f_back
    return None
