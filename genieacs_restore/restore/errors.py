"""Failure taxonomy for restore sessions."""

from dataclasses import dataclass
from enum import Enum


class StartFailureReason(Enum):
    TIMED_OUT = "timed_out"
    SERVICE_MANAGER_REJECTED = "service_manager_rejected"
    NOT_INSTALLED = "not_installed"


@dataclass(frozen=True)
class StartFailure:
    """Why MongoDB could not be brought to a running state."""
    reason: StartFailureReason
    detail: str = ""

    def __str__(self):
        if self.detail:
            return f"{self.reason.value}: {self.detail}"
        return self.reason.value


class FailureKind(Enum):
    """Fatal conditions that end a session with a FAILED outcome."""
    START_FAILURE = "start_failure"
    CONNECTIVITY_FAILURE = "connectivity_failure"
    FETCH_EXHAUSTED = "fetch_exhausted"
    RESTORE_TOOL_FAILURE = "restore_tool_failure"
    CANCELLED = "cancelled"
    UNEXPECTED_ERROR = "unexpected_error"


class SessionCancelled(Exception):
    """Raised between steps when cancellation was requested."""
