"""Multi-document transaction boundary shared by the coin services."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from app.core.config import get_settings
from app.core.logging import get_logger
from app.models.user import User

log = get_logger(__name__)


def _client() -> Any:
    return User.get_motor_collection().database.client


@asynccontextmanager
async def transaction(client: Any = None) -> AsyncIterator[Any]:
    """
    Yield a client session with an open transaction; commit on exit, abort on any error.
    Yields None when transactions are disabled (standalone mongod), so callers can pass
    `session=` through unconditionally.
    """
    if not get_settings().mongodb_transactions:
        yield None
        return
    client = client or _client()
    async with await client.start_session() as session:
        session.start_transaction()
        try:
            yield session
        except BaseException:
            await session.abort_transaction()
            log.info("transaction_aborted")
            raise
        await session.commit_transaction()
