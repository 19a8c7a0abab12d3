from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(eq=False)
class AppError(Exception):
    status_code: int
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return error_response(self.code, self.message, self.details)


class ValidationError(AppError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(400, "validation_error", message, details)


class NotFoundError(AppError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(404, "not_found", message, details)


class ForbiddenError(AppError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(403, "forbidden", message, details)


class ConflictError(AppError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(400, "conflict", message, details)


class OutOfRangeError(AppError):
    """Geofence violation. Carries the rounded distance and the allowed radius."""

    def __init__(self, distance: int, allowed_radius: float) -> None:
        super().__init__(
            400,
            "out_of_range",
            f"Out of range: you are {distance}m away. Required: {allowed_radius:g}m.",
            {"distance": distance, "allowed_radius": allowed_radius},
        )

    @property
    def distance(self) -> int:
        return self.details["distance"]

    @property
    def allowed_radius(self) -> float:
        return self.details["allowed_radius"]


class InternalError(AppError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(500, "internal_error", message, details)


class TrackingError(AppError):
    """Click tracking could not decode or record the event; never redirect."""

    def __init__(self, message: str = "Error redirecting.") -> None:
        super().__init__(502, "tracking_failed", message, None)


def error_response(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        }
    }
