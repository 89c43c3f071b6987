"""
Pipeline Errors and Results

Error taxonomy for the prospect pipeline, plus the Result wrapper returned
by the pure decision functions. Expected business-rule violations travel
inside a Result; callers that want exceptions call ``unwrap()``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class PipelineError(Exception):
    """Base class for all prospect pipeline errors."""

    code = "pipeline_error"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class IllegalTransition(PipelineError):
    """Requested status is not reachable from the current status."""

    code = "illegal_transition"

    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(message or f"Cannot transition from '{current}' to '{requested}'")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"current": self.current, "requested": self.requested})
        return data


class InvalidState(PipelineError):
    """Operation attempted outside the status it requires."""

    code = "invalid_state"

    def __init__(self, operation: str, current: str, required: str, message: Optional[str] = None):
        self.operation = operation
        self.current = current
        self.required = required
        super().__init__(
            message or f"Cannot {operation} while prospect is '{current}' (requires '{required}')"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "operation": self.operation,
            "current": self.current,
            "required": self.required,
        })
        return data


class ValidationError(PipelineError):
    """Missing or invalid input for an operation."""

    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class ConcurrentModification(PipelineError):
    """A conditional write matched no rows: the prospect moved underneath us."""

    code = "concurrent_modification"

    def __init__(self, prospect_id: str, expected_status: str):
        self.prospect_id = prospect_id
        self.expected_status = expected_status
        super().__init__(
            f"Prospect {prospect_id} is no longer '{expected_status}'; re-fetch and retry"
        )


class ReminderNotApplicable(PipelineError):
    """Reminder requested for a prospect not in the status it targets."""

    code = "reminder_not_applicable"

    def __init__(self, reminder: str, status: str, required: Optional[str] = None):
        self.reminder = reminder
        self.status = status
        self.required = required
        detail = f" (requires '{required}')" if required else ""
        super().__init__(f"Reminder '{reminder}' not applicable in status '{status}'{detail}")


class EmailError(PipelineError):
    """Opaque failure reported by the email service."""

    code = "email_error"

    def __init__(self, template: str, recipient: str, reason: str):
        self.template = template
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Failed to send '{template}' to {recipient}: {reason}")


class ProspectNotFound(PipelineError):
    """No prospect exists with the given identifier."""

    code = "not_found"

    def __init__(self, prospect_id: str):
        self.prospect_id = prospect_id
        super().__init__(f"Prospect not found: {prospect_id}")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a pure decision function.

    Exactly one of ``value``/``error`` is meaningful: a Result with no error
    is a success (its value may legitimately be None).
    """
    value: Optional[T] = None
    error: Optional[PipelineError] = None

    @classmethod
    def ok(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: PipelineError) -> "Result[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[T]:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value
