# travel_scheduler/core/exceptions.py
"""
Domain-specific exceptions for the travel scheduler.

Background jobs log these and keep going; the operational routes convert
them to HTTP errors with ``to_http_exception``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

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
    """Raised when input validation fails (bad wall-clock string, inverted slot)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data or running work."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated (e.g. a backward status move)."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class JobAlreadyRunningException(ConflictException):
    """Raised when a manual trigger hits a job that is mid-run."""

    def __init__(self, job_name: str):
        super().__init__(
            message=f"Job '{job_name}' is already running",
            code="JOB_ALREADY_RUNNING",
            details={"job": job_name},
        )


class UnknownJobException(NotFoundException):
    """Raised when a job name is not registered on the runner."""

    def __init__(self, job_name: str):
        super().__init__(
            message=f"No job registered under '{job_name}'",
            code="UNKNOWN_JOB",
            details={"job": job_name},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Wraps SQLAlchemy failures such as connection problems, lock timeouts
    or constraint violations so services never see driver exceptions.
    """
