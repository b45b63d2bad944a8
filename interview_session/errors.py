"""Error taxonomy shared by the interview engine."""
from __future__ import annotations


class InterviewError(Exception):
    """Base class for failures reported at the engine boundary."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(InterviewError):
    """Session, question, repository or path is absent or stale."""

    kind = "not_found"


class ValidationError(InterviewError):
    """Malformed model output, missing fields, or out-of-range bounds."""

    kind = "validation"


class UpstreamFailure(InterviewError):
    """Hosting API or completion service failed, including rate limiting."""

    kind = "upstream"


class StateConflict(InterviewError):
    """Operation is incompatible with the session's current status."""

    kind = "state_conflict"


__all__ = ["InterviewError", "NotFound", "StateConflict", "UpstreamFailure", "ValidationError"]
