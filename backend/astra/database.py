import logging

from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def enable_sqlite_foreign_keys(sync_engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    if sync_engine.dialect.name != "sqlite":
        return

    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(DATABASE_URL, echo=SQL_ECHO)
enable_sqlite_foreign_keys(engine.sync_engine)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    async with async_session() as session:
        yield session


async def seed_default_prompt(session: AsyncSession) -> None:
    from .models import SystemPrompt
    from .services.prompts import DEFAULT_PROMPT_NAME, DEFAULT_SYSTEM_PROMPT

    result = await session.execute(select(SystemPrompt).where(SystemPrompt.is_default.is_(True)))
    if result.scalars().first() is not None:
        return

    session.add(SystemPrompt(name=DEFAULT_PROMPT_NAME, content=DEFAULT_SYSTEM_PROMPT, is_default=True))
    await session.commit()
    logger.info("Seeded default system prompt")


async def init_db() -> None:
    from . import models  # noqa: F401  registers tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        await seed_default_prompt(session)
