from __future__ import annotations


class DomainError(Exception):
    """Base class for rule violations raised by the service layer."""

    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class ConflictError(DomainError):
    """Uniqueness violation: duplicate account, journal-for-day, submission or assignment."""

    kind = "conflict"
    status_code = 409


class UnauthorizedError(DomainError):
    """Missing, malformed or expired credential, or bad login credentials."""

    kind = "unauthorized"
    status_code = 401


class ForbiddenError(DomainError):
    """Valid identity lacking the required role or ownership."""

    kind = "forbidden"
    status_code = 403


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404

    def __init__(self, resource_type: str, resource_id: str | None = None):
        message = f"{resource_type} not found"
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(DomainError):
    kind = "validation"
    status_code = 422

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field
