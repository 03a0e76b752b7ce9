# core/types/status.py
"""
Core types and enums used throughout the application.
This module should not import from other application modules.
"""

from enum import Enum


class JobStatus(str, Enum):
    """
    Status of a single job within one workflow run.

    State machine:
        PENDING → PROCESSING → FINISHED
                             → FAILED
        PENDING → GATED (deps finished, job is gated) → PROCESSING
    """

    PENDING = 'pending'  # Waiting for its dependencies to finish.
    GATED = 'gated'  # Dependencies finished; held until started manually.
    PROCESSING = 'processing'  # Handed to the executor.
    FINISHED = 'finished'  # Executed successfully.
    FAILED = 'failed'  # Execution raised.

    @property
    def is_terminal(self) -> bool:
        """Whether this status represents a final state (no further transitions)."""
        return self in JOB_TERMINAL_STATES


JOB_TERMINAL_STATES: frozenset[JobStatus] = frozenset({
    JobStatus.FINISHED,
    JobStatus.FAILED,
})
