# venture/core/models/config.py
from typing import Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from venture.core.defaults import DEFAULT_QUEUE_NAME
from venture.core.errors import (
    ConfigurationError,
    ErrorCode,
    ValidationReport,
    raise_collected,
)
from venture.core.models.queues import CustomQueueConfig, QueueMode, QueueRef
from venture.core.models.store import StoreConfig


class VentureConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    queue_mode: QueueMode = QueueMode.DEFAULT
    custom_queues: Optional[List[CustomQueueConfig]] = None
    # Connection used when neither the job nor its queue names one.
    default_connection: Optional[str] = None
    # Reject definitions whose resolved dependencies form a cycle.
    detect_cycles: bool = True
    store: Optional[StoreConfig] = None

    @model_validator(mode='after')
    def check_queues(self) -> 'VentureConfig':
        report = ValidationReport('config')
        for error in self._queue_problems():
            report.add(error)
        raise_collected(report)
        return self

    def _queue_problems(self) -> Iterator[ConfigurationError]:
        names = [queue.name for queue in self.custom_queues or []]

        if self.queue_mode is QueueMode.DEFAULT and self.custom_queues is not None:
            yield ConfigurationError(
                message='custom_queues are only used in CUSTOM queue mode',
                code=ErrorCode.CONFIG_INVALID_QUEUE_MODE,
                notes=[f'got custom_queues={names} with queue_mode=DEFAULT'],
                help_text='drop custom_queues, or pass queue_mode=QueueMode.CUSTOM',
            )
            return

        if self.queue_mode is QueueMode.CUSTOM and not names:
            yield ConfigurationError(
                message='custom_queues required in CUSTOM queue mode',
                code=ErrorCode.CONFIG_INVALID_QUEUE_MODE,
                help_text='list at least one CustomQueueConfig',
            )

        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            yield ConfigurationError(
                message='duplicate queue names in custom_queues',
                code=ErrorCode.CONFIG_INVALID_QUEUE_MODE,
                notes=[f'repeated: {", ".join(duplicates)}'],
            )

    def get_valid_queue_names(self) -> list[str]:
        if self.queue_mode == QueueMode.DEFAULT:
            return [DEFAULT_QUEUE_NAME]
        return [queue.name for queue in (self.custom_queues or [])]

    def resolve_queue(
        self,
        queue_name: Optional[str],
        connection: Optional[str] = None,
    ) -> QueueRef:
        """Validate a job's queue against the configuration and build its QueueRef."""
        if self.queue_mode == QueueMode.DEFAULT:
            if queue_name is not None and queue_name != DEFAULT_QUEUE_NAME:
                raise ConfigurationError(
                    message='cannot route jobs to a named queue in DEFAULT mode',
                    code=ErrorCode.CONFIG_INVALID_QUEUE_MODE,
                    notes=[
                        f"queue='{queue_name}' was specified",
                        'but the engine is configured with QueueMode.DEFAULT',
                    ],
                    help_text='either remove the queue or switch to QueueMode.CUSTOM',
                )
            return QueueRef(DEFAULT_QUEUE_NAME, connection or self.default_connection)

        if queue_name is None:
            raise ConfigurationError(
                message='queue is required in CUSTOM mode',
                code=ErrorCode.CONFIG_INVALID_QUEUE,
                notes=['the engine is configured with QueueMode.CUSTOM'],
                help_text='pass queue= to add_job or set a queue attribute on the job',
            )
        for queue in self.custom_queues or []:
            if queue.name == queue_name:
                return QueueRef(
                    queue_name,
                    connection or queue.connection or self.default_connection,
                )
        raise ConfigurationError(
            message=f"invalid queue '{queue_name}'",
            code=ErrorCode.CONFIG_INVALID_QUEUE,
            notes=[f'valid queues: {self.get_valid_queue_names()}'],
            help_text='add the queue to custom_queues or route the job elsewhere',
        )
