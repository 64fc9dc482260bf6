from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from cipherdocs.core.config import settings

# Базовый класс для моделей
Base = declarative_base()


def create_engine(database_url: Optional[str] = None) -> Optional[AsyncEngine]:
    """Асинхронный движок; None, если база данных не настроена"""
    url = database_url if database_url is not None else settings.database_url
    if not url:
        return None
    return create_async_engine(url, future=True, echo=settings.sql_echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Создание таблиц реестра, если их еще нет"""
    # модели должны быть импортированы до create_all
    import cipherdocs.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
