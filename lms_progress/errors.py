"""
Progress error taxonomy

Every error is an HTTPException so services can raise it directly and FastAPI
turns it into a response. `code` tells callers which kind of failure happened.
"""

from datetime import datetime
from typing import Optional

from fastapi import HTTPException


class ProgressError(HTTPException):
    """Base progress error"""

    status_code = 500
    code = "progress_error"

    def __init__(self, message: str, **extra):
        self.message = message
        self.extra = extra
        super().__init__(
            status_code=self.status_code,
            detail={"error": self.code, "message": message, **extra},
        )


class NotFound(ProgressError):
    status_code = 404
    code = "not_found"


class ValidationError(ProgressError):
    status_code = 400
    code = "validation_error"


class AccessDenied(ProgressError):
    status_code = 403
    code = "access_denied"


class ProgressConflict(ProgressError):
    """Another request for the same student committed first"""

    status_code = 409
    code = "conflict"


class RestrictionActive(ProgressError):
    """Quiz cooldown is still running"""

    status_code = 429
    code = "time_restriction"

    def __init__(self, hours_remaining: int, next_attempt_allowed_at: Optional[datetime]):
        self.hours_remaining = hours_remaining
        self.next_attempt_allowed_at = next_attempt_allowed_at
        super().__init__(
            f"Too many failed attempts. Try again in {hours_remaining} hour(s).",
            hoursRemaining=hours_remaining,
            nextAttemptAllowedAt=next_attempt_allowed_at.isoformat() if next_attempt_allowed_at else None,
        )
