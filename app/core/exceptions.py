"""
Domain exceptions raised by services and rendered by the API layer.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import status


class ContestPlatformError(Exception):
    """Base error carrying an HTTP status and a client-facing detail."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra or {}

    def to_content(self) -> Dict[str, Any]:
        return {"detail": self.detail, **self.extra}


class NotFoundError(ContestPlatformError):
    """Requested contest, participation or question does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ContestPlatformError):
    """A uniqueness rule would be violated (join code, participation)."""

    status_code = status.HTTP_409_CONFLICT


class ValidationFailedError(ContestPlatformError):
    """Input is well-formed JSON but breaks a domain rule."""

    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDeniedError(ContestPlatformError):
    status_code = status.HTTP_403_FORBIDDEN


class ResultsNotAvailableError(PermissionDeniedError):
    """Per-user results are hidden until the contest has ended."""

    def __init__(self, contest_end_time: datetime, time_until_end_ms: int):
        super().__init__(
            "Results not available yet",
            extra={
                "contestEndTime": contest_end_time.isoformat(),
                "timeUntilEnd": time_until_end_ms,
            },
        )
        self.contest_end_time = contest_end_time
        self.time_until_end_ms = time_until_end_ms
