"""Database configuration and session management."""

from collections.abc import AsyncGenerator
from functools import wraps
from typing import Callable, ParamSpec, TypeVar

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bunnyvault.config import settings

engine = create_async_engine(
    str(settings.database_url),
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions.

    Usage:
        @router.get("/assignment")
        async def get_assignment(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


P = ParamSpec("P")
R = TypeVar("R")


def transactional(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator for automatic transaction management.

    Commits on success, rolls back on exception and re-raises.
    Works with both standalone functions (with db arg) and service methods (with self.db).

    Usage:
        class TenantAssignmentStore:
            def __init__(self, db: AsyncSession):
                self.db = db

            @transactional
            async def _insert(self, assignment: TenantAssignment) -> TenantAssignment:
                self.db.add(assignment)
                return assignment  # Auto-committed
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        db: AsyncSession | None = None

        for arg in args:
            if isinstance(arg, AsyncSession):
                db = arg
                break

        if db is None:
            db = kwargs.get("db")

        # Service classes keep their session on self.db
        if db is None and args:
            first_arg = args[0]
            if hasattr(first_arg, "db") and isinstance(first_arg.db, AsyncSession):
                db = first_arg.db

        if db is None:
            raise ValueError("No AsyncSession found in function arguments")

        try:
            result = await func(*args, **kwargs)
            await db.commit()
            return result
        except Exception:
            await db.rollback()
            raise

    return wrapper  # type: ignore


async def check_db_connection() -> bool:
    """Check database connectivity for health checks."""
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
            return True
    except Exception:
        return False


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
