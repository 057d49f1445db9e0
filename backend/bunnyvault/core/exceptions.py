"""Application exception hierarchy following RFC 7807 Problem Details."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception following RFC 7807.

    All custom exceptions should inherit from this class.
    Provides consistent error response format.
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.error_detail = detail or {}

        super().__init__(
            status_code=status_code,
            detail={
                "type": f"https://api.bunnyvault.local/errors/{error_code}",
                "title": error_code.replace("_", " ").title(),
                "status": status_code,
                "detail": message,
                "instance": None,  # Will be set by exception handler
                **self.error_detail,
            },
        )

    def __str__(self) -> str:
        return self.message


# ============================================================================
# Authorization Exceptions (401)
# ============================================================================


class InvalidAdminKeyError(AppException):
    """Invalid or missing admin API key."""

    def __init__(self, reason: str = "Invalid admin key") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="invalid_admin_key",
            message=reason,
        )


# ============================================================================
# Resource Exceptions (404)
# ============================================================================


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(
        self,
        resource: str,
        identifier: str | None = None,
    ) -> None:
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="not_found",
            message=message,
            detail={"resource": resource},
        )


# ============================================================================
# Validation Exceptions (400)
# ============================================================================


class TenantHeaderRequiredError(AppException):
    """X-Tenant-ID header is required on tenant routes."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="tenant_header_required",
            message="X-Tenant-ID header is required",
        )

