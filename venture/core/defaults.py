"""Shared default constants for the venture library."""

# Queue used when neither the job nor the engine config names one.
DEFAULT_QUEUE_NAME: str = 'default'

# Separator between a nested workflow id and the ids of its jobs.
NESTED_ID_SEPARATOR: str = '.'

# Maximum length of a job id (matches the persisted column width).
MAX_JOB_ID_LENGTH: int = 255
