"""Venture - dependency-aware job workflows on top of any job executor"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.engine import WorkflowEngine
from .core.handle import WorkflowHandle
from .core.models.config import VentureConfig
from .core.models.store import StoreConfig
from .core.models.queues import QueueMode, CustomQueueConfig, QueueRef
from .core.models.jobs import JobNode, Delay, TypeIdentity, default_type_identity
from .core.models.graph import Graph
from .core.models.definition import (
    WorkflowDefinition,
    ConditionalDependency,
    conditional_dependency,
)
from .core.models.workflow import WorkflowInstance, JobRunState
from .core.types.status import JobStatus, JOB_TERMINAL_STATES
from .core.state import JobState, WorkflowState
from .core.events import (
    EventBus,
    Plugin,
    JobAdding,
    JobAdded,
    JobCreating,
    JobCreated,
    JobProcessing,
    JobGated,
    JobFinished,
    JobFailed,
    WorkflowAdding,
    WorkflowAdded,
    WorkflowCreating,
    WorkflowCreated,
    WorkflowStarted,
    WorkflowFinished,
    WorkflowCancelled,
)
from .core.errors import (
    ErrorCode,
    VentureError,
    WorkflowValidationError,
    UnresolvableDependencyError,
    DuplicateJobError,
    CycleDetectedError,
    DefinitionSealedError,
    InvalidJobIdError,
    InvalidStateTransitionError,
    JobNotFoundError,
    WorkflowNotFoundError,
    ConfigurationError,
    MultipleValidationErrors,
)
from .core.stores import WorkflowStore, InMemoryWorkflowStore, SqlAlchemyWorkflowStore
from .core.executors import (
    DispatchRequest,
    JobExecutor,
    JobReporter,
    InlineExecutor,
    ThreadPoolJobExecutor,
)
from .core.plugins import EntityAwareWorkflows

__all__ = [
    # Core
    'WorkflowEngine',
    'WorkflowHandle',
    'VentureConfig',
    'StoreConfig',
    'QueueMode',
    'CustomQueueConfig',
    'QueueRef',
    # Definition
    'WorkflowDefinition',
    'ConditionalDependency',
    'conditional_dependency',
    'Graph',
    'JobNode',
    'Delay',
    'TypeIdentity',
    'default_type_identity',
    # Run state
    'WorkflowInstance',
    'JobRunState',
    'JobStatus',
    'JOB_TERMINAL_STATES',
    'JobState',
    'WorkflowState',
    # Events
    'EventBus',
    'Plugin',
    'JobAdding',
    'JobAdded',
    'JobCreating',
    'JobCreated',
    'JobProcessing',
    'JobGated',
    'JobFinished',
    'JobFailed',
    'WorkflowAdding',
    'WorkflowAdded',
    'WorkflowCreating',
    'WorkflowCreated',
    'WorkflowStarted',
    'WorkflowFinished',
    'WorkflowCancelled',
    # Errors
    'ErrorCode',
    'VentureError',
    'WorkflowValidationError',
    'UnresolvableDependencyError',
    'DuplicateJobError',
    'CycleDetectedError',
    'DefinitionSealedError',
    'InvalidJobIdError',
    'InvalidStateTransitionError',
    'JobNotFoundError',
    'WorkflowNotFoundError',
    'ConfigurationError',
    'MultipleValidationErrors',
    # Persistence / execution
    'WorkflowStore',
    'InMemoryWorkflowStore',
    'SqlAlchemyWorkflowStore',
    'DispatchRequest',
    'JobExecutor',
    'JobReporter',
    'InlineExecutor',
    'ThreadPoolJobExecutor',
    # Plugins
    'EntityAwareWorkflows',
]
