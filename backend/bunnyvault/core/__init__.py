"""Core module - foundational components."""

from bunnyvault.core.database import get_db
from bunnyvault.core.exceptions import AppException
from bunnyvault.core.logging import get_logger

__all__ = ["get_db", "AppException", "get_logger"]
