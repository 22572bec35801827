"""Error taxonomy shared by the engine and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class TimeReportingError(Exception):
    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TimeReportingError):
    """Input is malformed or inconsistent with the project configuration."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class BusinessRuleError(TimeReportingError):
    """The entry's workflow status does not permit the requested operation."""

    code = "BUSINESS_RULE_VIOLATION"


class InfrastructureError(TimeReportingError):
    """The entry store failed or timed out; the call may be retried."""

    code = "INFRASTRUCTURE_ERROR"

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


def entry_not_found(entry_id: str) -> ValidationError:
    return ValidationError(f"Time entry with ID '{entry_id}' not found", "id")
