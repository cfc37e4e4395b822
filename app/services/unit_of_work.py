import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.exceptions import DatabaseQueryError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession):
    """
    Commit everything executed inside the block, or nothing.

    Any exception rolls the session back; database errors are re-raised
    as :class:`DatabaseQueryError`, domain errors propagate unchanged.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Transaction rolled back after database error: {e}")
        raise DatabaseQueryError(str(e)) from e
    except BaseException:
        await db.rollback()
        raise
