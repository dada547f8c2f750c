"""
Error taxonomy for trust and consensus operations.

Every error is scoped to one request and carries enough detail (measured
distance, elapsed minutes, ...) for the client to explain the rejection.
"""
from typing import Any, Dict, Optional


class TrustError(Exception):
    """Base class for request-scoped rejections."""

    code = "trust_error"
    status_code = 400

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "detail": self.detail,
        }


class DuplicateEvidence(TrustError):
    """Fingerprint already present in report history."""

    code = "duplicate_evidence"
    status_code = 409


class NotFound(TrustError):
    """Session missing, already consumed, or owned by someone else."""

    code = "not_found"
    status_code = 404


class GeoMismatch(TrustError):
    """Capture too far from the before-capture or the named location."""

    code = "geo_mismatch"
    status_code = 422


class TimeWindowExceeded(TrustError):
    """Session older than the allowed window."""

    code = "time_window_exceeded"
    status_code = 422


class AlreadyReportedToday(TrustError):
    """User already reported this location on this calendar day."""

    code = "already_reported_today"
    status_code = 409


class CollaboratorUnavailable(TrustError):
    """External collaborator unreachable or misbehaving; never surfaced to callers."""

    code = "collaborator_unavailable"
    status_code = 503
