from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from records_api.config import Settings
from records_api.log import logger

Base = declarative_base()


def build_engine(settings: Settings) -> AsyncEngine:
    if settings.is_sqlite:
        # SQLite has no server-side pool to tune
        engine = create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
        use_immediate_transactions(engine)
        return engine

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,  # Recycle connections after 30 minutes
        connect_args={
            "connect_timeout": 10,  # aiomysql uses connect_timeout instead of timeout
            "charset": "utf8mb4",
            "use_unicode": True,
        },
    )


def use_immediate_transactions(engine: AsyncEngine) -> None:
    """Take the SQLite write lock when a transaction begins.

    Concurrent writers then queue on the busy timeout instead of failing with
    "database is locked" when upgrading a read lock.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


# Database dependency for FastAPI
async def get_db(request: Request):
    db = request.app.state.sessionmaker()
    try:
        yield db
    finally:
        await db.close()
