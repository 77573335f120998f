"""Domain exceptions raised by the scoring engine and draft sessions.

The HTTP layer maps these to structured responses in `api/main.py`; callers
using the services directly get them as-is.
"""
from __future__ import annotations

from pydantic import ValidationError


class AssessmentError(Exception):
    """Base class for all assessment engine errors."""


class ValidationFailedError(AssessmentError):
    """Input broke a validation rule. `message` is the first rule violated."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailedError":
        errors = exc.errors()
        if not errors:
            return cls("Invalid input")
        first = errors[0]
        msg = str(first.get("msg", "Invalid input"))
        # pydantic prefixes custom ValueError messages
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        return cls(msg)


class EntityNotFoundError(AssessmentError):
    """A referenced subject, assessment, role or sub-competency does not exist."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class AssessmentCompletedError(AssessmentError):
    """The assessment is completed; the wizard accepts no further changes."""

    def __init__(self, assessment_id: str):
        super().__init__(f"Assessment already completed: {assessment_id}")
        self.assessment_id = assessment_id
