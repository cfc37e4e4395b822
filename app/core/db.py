from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from starlette.requests import HTTPConnection

from core.environment import get_database_url, get_db_echo


Base = declarative_base()


class Database:
    """
    Owns the async engine and the session factory for one process.

    Built by the application factory and stored on ``app.state.database``;
    request handlers receive sessions through :func:`get_db` instead of
    reaching for a module-level connection.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None, **engine_kwargs):
        self.url = url or get_database_url()
        self.engine = create_async_engine(
            self.url,
            echo=get_db_echo() if echo is None else echo,
            future=True,
            **engine_kwargs,
        )
        self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_all(self) -> None:
        # Import models so they register on Base.metadata
        import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(conn: HTTPConnection) -> AsyncGenerator[AsyncSession, None]:
    database: Database = conn.app.state.database
    async with database.sessionmaker() as session:
        yield session
