"""Shard placement exceptions."""

from fastapi import status

from bunnyvault.core.exceptions import AppException


class NoAvailableShard(AppException):
    """No active shard can take new tenants.

    An operational problem: surfaced to the caller, never retried automatically.
    """

    def __init__(self, reason: str = "No active shards are available") -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="no_available_shard",
            message=reason,
        )
