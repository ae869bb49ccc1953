from __future__ import annotations


class TaskFailure(Exception):
    """Base class for failures surfaced by `Orchestrator.run`."""


class UnknownTask(TaskFailure):
    def __init__(self, name: str):
        super().__init__(f"Task not found: {name}")
        self.name = name


class LeafOperationFailure(TaskFailure):
    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"Step failed ({step}): {cause}")
        self.step = step
        self.cause = cause


class ConfigurationError(Exception):
    """Malformed or incomplete build configuration, detected before any step runs."""


class OperationError(Exception):
    """Raised by leaf operations when a delegated tool reports failure."""
