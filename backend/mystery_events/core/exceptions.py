# backend/mystery_events/core/exceptions.py
"""
Domain-specific exceptions for the Mystery Events platform.

Services raise these; routes convert them with ``to_http_exception()`` and the
global handler in ``main`` catches any that escape. Every response body has the
shape ``{"error": ..., "code": ..., "status": ..., "details": {...}}``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import OperationalError

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "status": self.status_code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_payload())


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(DomainException):
    """Raised when a caller presents missing or wrong credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail=self.to_payload(),
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when the request conflicts with current state."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails unexpectedly."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["error"] = self.message or "An error occurred processing your request"
        return payload


class UpstreamUnavailableException(DomainException):
    """Raised when a collaborator (payment gateway, database) cannot be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail=self.to_payload(),
            headers={"Retry-After": "5"},
        )


# Specific business exceptions


class EventNotFoundException(NotFoundException):
    def __init__(self, event_id: str):
        super().__init__(
            message="Event not found",
            code="EVENT_NOT_FOUND",
            details={"event_id": event_id},
        )


class EventNotBookableException(ValidationException):
    """Raised when an event exists but is not accepting bookings."""

    def __init__(self, event_id: str, event_status: str):
        super().__init__(
            message="Event is not available for booking",
            code="EVENT_NOT_BOOKABLE",
            details={"event_id": event_id, "event_status": event_status},
        )


class InsufficientInventoryException(ConflictException):
    def __init__(self, event_id: str, requested: int, available: int):
        super().__init__(
            message="Not enough tickets available",
            code="INSUFFICIENT_INVENTORY",
            details={"event_id": event_id, "requested": requested, "available": available},
        )


class VoucherUnusableException(ConflictException):
    """Raised when a voucher exists but cannot be applied (inactive, empty, expired)."""

    def __init__(self, code: str, reason: str):
        super().__init__(
            message=f"Voucher cannot be used: {reason}",
            code="VOUCHER_UNUSABLE",
            details={"voucher_code": code, "reason": reason},
        )


class PaymentGatewayUnavailableException(UpstreamUnavailableException):
    """
    Raised when a payment session cannot be opened.

    The booking it was created for stays ``pending``; the details carry its id so
    the caller can retry the payment session.
    """

    def __init__(self, message: str, booking_id: Optional[str] = None, booking_code: Optional[str] = None):
        details: Dict[str, Any] = {}
        if booking_id:
            details["booking_id"] = booking_id
        if booking_code:
            details["booking_code"] = booking_code
        super().__init__(message=message, code="PAYMENT_GATEWAY_UNAVAILABLE", details=details)


class DatabaseUnavailableException(UpstreamUnavailableException):
    def __init__(self, message: str = "Database temporarily unavailable"):
        super().__init__(message=message, code="DATABASE_UNAVAILABLE")


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    The originating SQLAlchemy error is chained as ``__cause__``.
    """


def is_connectivity_error(exc: BaseException) -> bool:
    """True when ``exc`` (or the error it wraps) means the database is unreachable."""
    seen = exc
    while seen is not None:
        if isinstance(seen, OperationalError):
            return True
        seen = seen.__cause__
    return False
