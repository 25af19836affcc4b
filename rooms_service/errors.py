from typing import Any, Dict, Optional, Sequence

from fastapi import status


class RoomServiceError(Exception):
    """
    Base class of the failures the Rooms API reports to its callers.

    Each subclass fixes the HTTP status it maps to; ``message`` is shown
    to the user as-is.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_envelope(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "message": self.message}
        if self.error is not None:
            body["error"] = self.error
        return body


class RoomValidationError(RoomServiceError):
    """Missing or invalid room fields."""
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(RoomServiceError):
    """A write would duplicate an existing room number."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Room number already exists", error: Optional[str] = None):
        super().__init__(message, error)


class NotFoundError(RoomServiceError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Room not found", error: Optional[str] = None):
        super().__init__(message, error)


class UnexpectedError(RoomServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def describe_validation_errors(errors: Sequence[Dict[str, Any]]) -> str:
    """
    Flatten pydantic error dicts into one human-readable line.

    The location prefix (``body``, ``query``) is dropped so that only the
    field name remains, e.g. ``price: Input should be greater than or equal to 0``.
    """
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        msg = err.get("msg", "Invalid value")
        parts.append(f"{field}: {msg}" if field else msg)
    return "; ".join(parts) or "Invalid request"
