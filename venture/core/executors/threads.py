"""Executor backed by a concurrent.futures thread pool."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor

from venture.core.logging import get_logger

from .base import DispatchRequest, JobReporter, execute

logger = get_logger('executor')


class ThreadPoolJobExecutor:
    """
    Runs jobs concurrently on worker threads.

    Delayed jobs sleep on their worker until due. Errors raised while
    reporting an outcome back to the engine are logged with the job id.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='venture')
        self._stopping = threading.Event()
        self._futures: set[Future[None]] = set()
        self._lock = threading.Lock()

    def dispatch(self, request: DispatchRequest, reporter: JobReporter) -> None:
        future = self._pool.submit(self._run, request, reporter)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(lambda f: self._done(request, f))

    def _run(self, request: DispatchRequest, reporter: JobReporter) -> None:
        wait = request.seconds_until_due()
        if wait > 0 and self._stopping.wait(wait):
            logger.warning(
                f'executor stopped before delayed job {request.job_id} was due',
                extra={'workflow_id': request.workflow_id},
            )
            return
        execute(request, reporter)

    def _done(self, request: DispatchRequest, future: Future[None]) -> None:
        with self._lock:
            self._futures.discard(future)
        exc = future.exception()
        if exc is not None:
            logger.error(
                f'reporting outcome of {request.job_id} failed: {exc!r}',
                extra={'workflow_id': request.workflow_id},
            )

    def join(self) -> None:
        """Block until every job dispatched so far (and its follow-ups) has run."""
        while True:
            with self._lock:
                pending = list(self._futures)
            if not pending:
                return
            for future in pending:
                future.exception()

    def shutdown(self, wait: bool = True) -> None:
        if wait:
            self.join()
        else:
            self._stopping.set()
        self._pool.shutdown(wait=wait)
