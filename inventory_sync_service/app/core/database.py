from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ..models.base import InventorySyncBase
from ..utils.logging import setup_inventory_logging as setup_logging
from .setting import get_settings

logger = setup_logging(
    "inventory_sync_service.database", log_level=get_settings().LOG_LEVEL
)


def _mask_credentials(database_url: str) -> str:
    if "@" not in database_url:
        return database_url
    scheme, _, rest = database_url.partition("://")
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


class InventoryDatabaseManager:
    """Database manager for the Inventory Sync Service."""

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 25,
        max_overflow: int = 50,
    ) -> None:
        logger.info(
            "Initializing inventory database manager",
            extra={
                "operation": "database_manager_init",
                "database_url": _mask_credentials(database_url),
                "echo": echo,
            },
        )

        engine_kwargs: Dict[str, Any] = {"echo": echo}

        if "sqlite" in database_url:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url:
                # One shared connection so every session sees the same database
                engine_kwargs["poolclass"] = StaticPool
            logger.info(
                "Configured SQLite database settings",
                extra={"database_type": "sqlite"},
            )
        else:
            engine_kwargs.update(
                {
                    "pool_size": pool_size,
                    "max_overflow": max_overflow,
                    "pool_timeout": 45,
                    "pool_recycle": 3600,
                    "pool_pre_ping": True,
                    "connect_args": {
                        "command_timeout": 30,
                        "prepared_statement_cache_size": 0,
                    },
                }
            )
            logger.info(
                "Configured PostgreSQL database settings",
                extra={
                    "database_type": "postgresql",
                    "pool_size": pool_size,
                    "max_overflow": max_overflow,
                },
            )

        self.async_engine = create_async_engine(database_url, **engine_kwargs)
        self.async_session_maker = async_sessionmaker(
            bind=self.async_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_tables(self) -> None:
        """Create all inventory tables."""
        async with self.async_engine.begin() as conn:
            await conn.run_sync(InventorySyncBase.metadata.create_all, checkfirst=True)
        logger.info(
            "Database tables created successfully",
            extra={"operation": "create_tables"},
        )

    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session."""
        async with self.async_session_maker() as session:
            yield session

    async def close(self) -> None:
        """Dispose of the engine and its connections."""
        await self.async_engine.dispose()
        logger.info(
            "Inventory database connections closed",
            extra={"operation": "database_close"},
        )
