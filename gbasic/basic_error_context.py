"""
Resumable error handling (`ON ERROR RESUME NEXT`).

An ErrorContext belongs to exactly one session. It is passed explicitly to
whatever executes that session's statements; there is no process-wide error
state, so concurrent sessions never observe each other's errors.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from gbasic.basic_errors import BasicError, KeywordError, ERR_GENERIC, ERR_NONE

logger = logging.getLogger(__name__)


@dataclass
class ErrorState:
    resume_next: bool = False
    last_error: Optional[Tuple[str, int]] = None


class ErrorContext:
    """Per-session error state with the legacy resume-next semantics."""

    def __init__(self, state: Optional[ErrorState] = None):
        self.state = state if state is not None else ErrorState()

    @property
    def resume_next(self) -> bool:
        return self.state.resume_next

    @property
    def last_error(self) -> Optional[Tuple[str, int]]:
        return self.state.last_error

    def set_error_resume_next(self, active: bool):
        self.state.resume_next = bool(active)

    def is_error_resume_next_active(self) -> bool:
        return self.state.resume_next

    def set_last_error(self, message: str, number: int = ERR_GENERIC):
        self.state.last_error = (str(message), int(number))

    def get_last_error(self) -> Optional[str]:
        """The last recorded message, or None."""
        if self.state.last_error is None:
            return None
        return self.state.last_error[0]

    def get_error_number(self) -> int:
        """The last recorded error number, or 0 when none is recorded."""
        if self.state.last_error is None:
            return ERR_NONE
        return self.state.last_error[1]

    def clear_last_error(self):
        self.state.last_error = None

    def handle_error(self, error: Any) -> None:
        """Route a failure through the resume-next policy.

        Without resume-next the error is raised unchanged. With it, the
        message and number are recorded and Unit (None) is returned so the
        caller continues with the next statement.
        """
        if not isinstance(error, BasicError):
            error = KeywordError(str(error))
        if not self.state.resume_next:
            raise error
        self.state.last_error = (error.message, error.number)
        logger.debug("resumed after error %s: %s", error.number, error.message)
        return None

    def as_value(self) -> Dict[str, Any]:
        """The error map handed to scripts and keywords."""
        message = self.get_last_error()
        return {
            "error": message is not None,
            "message": message or "",
            "number": self.get_error_number(),
        }

    def __repr__(self) -> str:
        return f"<ErrorContext resume_next={self.state.resume_next} last_error={self.state.last_error!r}>"
