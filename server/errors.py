from typing import Dict, Optional


class PortalError(Exception):
    """Base class for failures reported to callers with an actionable message."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, object]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PortalError):
    status_code = 400


class InvalidTransition(ValidationError):
    status_code = 409


class PermissionDenied(PortalError):
    status_code = 403


class ThesisNotFound(PortalError):
    status_code = 404


class RevisionConflict(PortalError):
    status_code = 409

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Collection changed since it was read (expected revision {expected}, found {actual}); reload and retry",
            details={"expected_revision": expected, "actual_revision": actual},
        )
        self.expected = expected
        self.actual = actual


class StorageExhausted(PortalError):
    status_code = 507
