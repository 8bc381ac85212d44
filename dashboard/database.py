from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from dashboard.core.config import get_settings


def make_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        # a single shared connection keeps ":memory:" databases alive
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=False, future=True, pool_pre_ping=True)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = make_engine(get_settings().database_url)
async_session = make_session_factory(engine)


# Dependency for getting DB session
async def get_db():
    async with async_session() as session:
        yield session


async def create_db_and_tables(bind: AsyncEngine = engine):
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
