from app.platform.errors import (
    ConflictError,
    NotFoundError,
    OperationTimeoutError,
    PipelineError,
    TransitionConflictError,
    ValidationError,
)

__all__ = [
    "PipelineError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransitionConflictError",
    "OperationTimeoutError",
]
