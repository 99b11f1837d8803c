"""
Unit of work for multi-row writes.

Writes that touch more than one entity (a user plus its initial grants and
memberships, a group plus its permission entries, a user delete plus its join
rows) run inside one UnitOfWork so they commit or abort together.
`run_in_transaction` re-runs the whole unit when the database reports a
transient conflict (deadlock, serialization failure, locked database).
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.core.exceptions import Conflict, StoreFailure

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_MARKERS = (
    "deadlock",
    "could not serialize",
    "serialization failure",
    "database is locked",
    "lock timeout",
)


def is_transient(exc: BaseException) -> bool:
    """True when a database error is a conflict worth retrying."""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


class UnitOfWork:
    """
    Async context manager wrapping one transaction on an AsyncSession.

    Commits when the block exits normally, rolls back on any exception and
    re-raises it.

    Usage:
        async with UnitOfWork(db) as uow:
            uow.session.add(obj)
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.committed = False

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            await self.rollback()
            return False
        await self.commit()
        return False

    async def commit(self) -> None:
        await self.session.commit()
        self.committed = True

    async def rollback(self) -> None:
        await self.session.rollback()


async def run_in_transaction(
    session: AsyncSession,
    work: Callable[[AsyncSession], Awaitable[T]],
    retries: Optional[int] = None,
) -> T:
    """
    Run `work(session)` as a single unit of work.

    Transient conflicts re-run the unit up to `retries` extra times. Unique-key
    violations surface as Conflict, other database errors as StoreFailure.
    Typed access-control errors raised by `work` roll back and propagate as-is.
    """
    attempts = 1 + (settings.TRANSACTION_RETRIES if retries is None else retries)

    for attempt in range(1, attempts + 1):
        try:
            async with UnitOfWork(session):
                return await work(session)
        except IntegrityError as exc:
            logger.info(f"Integrity error in unit of work: {exc.orig}")
            raise Conflict("Resource conflicts with an existing record") from exc
        except (OperationalError, DBAPIError) as exc:
            if is_transient(exc) and attempt < attempts:
                logger.warning(f"Transient database conflict (attempt {attempt}/{attempts}), retrying: {exc.orig}")
                await asyncio.sleep(0.05 * attempt)
                continue
            logger.error(f"Database failure in unit of work: {exc}", exc_info=True)
            raise StoreFailure() from exc

    raise StoreFailure()
