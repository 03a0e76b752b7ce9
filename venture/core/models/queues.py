# venture/core/models/queues.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class QueueMode(Enum):
    CUSTOM = 'custom'
    DEFAULT = 'default'


class CustomQueueConfig(BaseModel):
    """
    name: name of the queue. Usage: `definition.add_job(job, queue="name")`
    connection: connection the queue lives on, None means the engine default.
    """

    name: str = Field(..., min_length=1)
    connection: Optional[str] = None


@dataclass(frozen=True)
class QueueRef:
    """Opaque routing target handed to the executor with every dispatch."""

    queue: str
    connection: Optional[str] = None
