"""Job execution substrates."""

from venture.core.executors.base import (
    DispatchRequest,
    JobExecutor,
    JobReporter,
    execute,
    run_payload,
)
from venture.core.executors.inline import InlineExecutor
from venture.core.executors.threads import ThreadPoolJobExecutor

__all__ = [
    'DispatchRequest',
    'JobExecutor',
    'JobReporter',
    'execute',
    'run_payload',
    'InlineExecutor',
    'ThreadPoolJobExecutor',
]
