from __future__ import annotations


class DomainError(ValueError):
    """Base for rule violations raised by services; mapped to 4xx by the API."""

    status_code = 400


class NotFound(DomainError):
    status_code = 404


class PermissionDenied(DomainError):
    status_code = 403


class InvalidState(DomainError):
    status_code = 409


class Conflict(DomainError):
    status_code = 409


class InsufficientFunds(DomainError):
    status_code = 402


class ValidationFailed(DomainError):
    status_code = 422


class PaymentFailed(DomainError):
    status_code = 502
