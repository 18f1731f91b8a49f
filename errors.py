"""Exception types shared by the model builder, counters and optimizers."""

from __future__ import annotations


class KernelSolverError(RuntimeError):
    """Base class for every failure raised by the solving engine."""


class InvalidGraph(KernelSolverError, ValueError):
    """Raised for a malformed graph: self-loop, duplicate edge or vertex, dangling endpoint."""


class ModelError(KernelSolverError):
    """Raised when a model references an undeclared variable or weights disagree with it."""


class Unsatisfiable(KernelSolverError):
    """Raised when no assignment satisfies a model."""


class ResourceExhausted(KernelSolverError):
    """Raised when a node table or memo table grows past its configured bound."""


class BackendNotAvailable(KernelSolverError):
    """Raised when the requested backend is missing a dependency or unavailable."""
