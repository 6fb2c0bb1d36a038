# backend/charterbook/core/exceptions.py
"""
Domain-specific exceptions for Charterbook.

These exceptions carry a stable error ``code`` (VALIDATION, NOT_FOUND,
UNAUTHORIZED, CONFLICT, DUPLICATE, UPSTREAM_FAILURE) and can be converted
to HTTP errors at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    default_code = "DOMAIN_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input is malformed or out of policy."""

    default_code = "VALIDATION"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    default_code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    default_code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated (e.g. bad cron secret)."""

    default_code = "UNAUTHENTICATED"
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    default_code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    default_code = "SERVICE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# Specific business exceptions


class OwnershipException(ForbiddenException):
    """Raised when the actor does not own the resource it is acting on."""

    default_code = "UNAUTHORIZED"

    def __init__(
        self,
        message: str = "You do not have access to this resource",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, details=details)


class DuplicateException(ConflictException):
    """Raised when a record that must be unique already exists."""

    default_code = "DUPLICATE"


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with existing bookings."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class InvalidTransitionException(ConflictException):
    """Raised when a booking cannot move from its current status to the requested one."""

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Cannot change booking from '{current}' to '{target}'",
            code="INVALID_TRANSITION",
            details={"current_status": current, "requested_status": target},
        )


class CaptainHibernatingException(ConflictException):
    """Raised when a hibernating captain is asked for slots or a booking."""

    def __init__(self, captain_id: str):
        super().__init__(
            message="This captain is not taking bookings right now",
            code="HIBERNATING",
            details={"captain_id": captain_id},
        )


class PaymentNotAppliedException(ConflictException):
    """Raised when money arrives for a booking that can no longer take it."""

    def __init__(
        self,
        message: str,
        *,
        refunded: bool,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code="PAYMENT_NOT_APPLIED", details=details)
        self.refunded = refunded


class UpstreamServiceException(ServiceException):
    """Raised when a critical external collaborator (payments, weather) fails."""

    default_code = "UPSTREAM_FAILURE"
    status_code = status.HTTP_502_BAD_GATEWAY


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
