"""Executor that runs jobs on the dispatching thread."""

from __future__ import annotations

from collections import deque

from venture.core.logging import get_logger

from .base import DispatchRequest, JobReporter, execute

logger = get_logger('executor')


class InlineExecutor:
    """
    Runs dispatched jobs immediately, one after another.

    Jobs dispatched while another job is running are queued and drained in
    dispatch order instead of recursing. If reporting an outcome raises, the
    rest of the queue still runs and the first error is re-raised afterwards.
    Delays are ignored.
    """

    def __init__(self) -> None:
        self._pending: deque[tuple[DispatchRequest, JobReporter]] = deque()
        self._draining = False

    def dispatch(self, request: DispatchRequest, reporter: JobReporter) -> None:
        if request.delay is not None:
            logger.debug(f'ignoring delay for {request.job_id} (inline execution)')
        self._pending.append((request, reporter))
        if self._draining:
            return
        self._draining = True
        first_error: Exception | None = None
        try:
            while self._pending:
                next_request, next_reporter = self._pending.popleft()
                try:
                    execute(next_request, next_reporter)
                except Exception as exc:
                    logger.error(
                        f'reporting outcome of {next_request.job_id} failed: {exc!r}',
                        extra={'workflow_id': next_request.workflow_id},
                    )
                    if first_error is None:
                        first_error = exc
        finally:
            self._draining = False
        if first_error is not None:
            raise first_error
