"""Report draft generation, review and publication."""

from promptgate.drafts.parsing import DraftFields
from promptgate.drafts.workflow import (
    ALLOWED_TRANSITIONS,
    DraftWorkflow,
    InvalidTransitionError,
    PreconditionFailedError,
    is_allowed_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DraftFields",
    "DraftWorkflow",
    "InvalidTransitionError",
    "PreconditionFailedError",
    "is_allowed_transition",
]
