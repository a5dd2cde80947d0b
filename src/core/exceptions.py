"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


# ========== Incident lifecycle ==========

class InvalidTransitionException(DomainException):
    """Requested status change is not reachable from the current status."""

    def __init__(self, current: Any, requested: Any, reason: Optional[str] = None):
        self.current = current
        self.requested = requested
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        message = f"Cannot transition from '{current_value}' to '{requested_value}'"
        if reason:
            message += f": {reason}"
        super().__init__(message, {"from": current_value, "to": requested_value})


class AlreadyAssignedException(DomainException):
    """Incident already has a responder."""

    def __init__(self, incident_id: str, responder_id: str):
        self.incident_id = incident_id
        self.responder_id = responder_id
        super().__init__(
            f"Incident {incident_id} is already assigned",
            {"incident_id": incident_id, "responder_id": responder_id}
        )


class InvalidResponderException(DomainException):
    """Target user is missing, inactive, or not a responder."""

    def __init__(self, responder_id: str, reason: str):
        self.responder_id = responder_id
        super().__init__(
            f"Invalid responder '{responder_id}': {reason}",
            {"responder_id": responder_id}
        )


class InvalidSeverityException(ValidationException):
    """Severity value outside the known tiers."""

    def __init__(self, severity: Any):
        self.severity = severity
        super().__init__(f"Invalid severity: {severity!r}", {"severity": str(severity)})


# ========== Store ==========

class StoreUnavailableException(RepositoryException):
    """Transient failure reading or writing the incident store. Retryable."""


class ConcurrentModificationException(RepositoryException):
    """Record changed underneath the writer (optimistic version mismatch)."""

    def __init__(self, incident_id: str, expected_version: int):
        self.incident_id = incident_id
        self.expected_version = expected_version
        super().__init__(
            f"Incident {incident_id} was modified concurrently",
            {"incident_id": incident_id, "expected_version": expected_version}
        )


# ========== Notifications ==========

class NotificationDeliveryException(ExternalServiceException):
    """Notification could not be delivered. Never surfaced to callers."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification Service", message, details)
