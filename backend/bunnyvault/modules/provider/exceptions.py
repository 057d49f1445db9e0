"""Video platform provider exceptions."""

from fastapi import status

from bunnyvault.core.exceptions import AppException


class ProviderUnavailable(AppException):
    """The video platform is unreachable or returned an error.

    Never raised after a partial local write; callers may retry with backoff.
    """

    def __init__(
        self,
        operation: str,
        reason: str = "Provider unavailable",
        status_code: int = status.HTTP_503_SERVICE_UNAVAILABLE,
        error_code: str = "provider_unavailable",
    ) -> None:
        self.operation = operation
        super().__init__(
            status_code=status_code,
            error_code=error_code,
            message=f"Video provider error ({operation}): {reason}",
            detail={"operation": operation},
        )


class ProviderTimeout(ProviderUnavailable):
    """A provider call exceeded its timeout."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            operation,
            reason="request timed out",
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            error_code="provider_timeout",
        )
