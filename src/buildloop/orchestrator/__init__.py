"""In-repo task orchestrator for the front-end build.

Provides the task registry, a fail-fast sequential runner, a polling watcher
and the Typer CLI. Leaf operations live in `buildloop.tasks`.
"""

from .core import Composite, Leaf, Orchestrator, Registry, TaskContext, operation
from .errors import (
    ConfigurationError,
    LeafOperationFailure,
    OperationError,
    TaskFailure,
    UnknownTask,
)

__all__ = [
    "Composite",
    "Leaf",
    "Orchestrator",
    "Registry",
    "TaskContext",
    "operation",
    "ConfigurationError",
    "LeafOperationFailure",
    "OperationError",
    "TaskFailure",
    "UnknownTask",
]
