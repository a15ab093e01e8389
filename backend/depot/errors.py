# Overview: Service error taxonomy shared by services and routes.

"""
Every business failure raised by a service derives from ServiceError and
carries the HTTP status the routes answer with. Routes catch ServiceError,
roll back the session and return `error.to_dict()`; anything else is logged
and reported as a generic 500.
"""
from __future__ import annotations

from dataclasses import dataclass


class ServiceError(Exception):
    """Base class for expected, user-facing service failures."""

    status_code = 400

    def __init__(self, message: str, *, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = list(self.details)
        return payload


class ValidationError(ServiceError):
    """400-level input problem."""


class ConflictError(ServiceError):
    """409-level uniqueness conflict (e.g., duplicate SKU or email)."""

    status_code = 409


class NotFoundError(ServiceError):
    status_code = 404


class AuthenticationError(ServiceError):
    status_code = 401


class AuthorizationError(ServiceError):
    """Caller is authenticated but does not own the resource."""

    status_code = 403


class StateConflictError(ServiceError):
    """Operation is not valid for the current order or payment status."""


@dataclass(frozen=True)
class Shortfall:
    product_id: int
    product_name: str
    requested: int
    available: int

    def describe(self) -> str:
        return f"{self.product_name}: requested {self.requested}, available {self.available}"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "requested": self.requested,
            "available": self.available,
        }


class InsufficientStockError(ServiceError):
    """Raised when one or more lines cannot be covered by on-hand stock."""

    def __init__(self, shortfalls: list[Shortfall], message: str = "Insufficient stock for order fulfillment"):
        super().__init__(message, details=[s.describe() for s in shortfalls])
        self.shortfalls = list(shortfalls)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["shortfalls"] = [s.to_dict() for s in self.shortfalls]
        return payload


class ConcurrencyConflictError(ServiceError):
    """Storage-level conflict (deadlock, lock timeout, stale row). Safe to retry."""

    status_code = 409

    def __init__(self, message: str = "Concurrent update detected, please retry"):
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["retryable"] = True
        return payload
