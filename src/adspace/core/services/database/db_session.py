"""Database engine and session factory used across the application."""

from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import StaticPool, text
from sqlmodel import Session, SQLModel, create_engine

from src.adspace.runtime.config.config_data import ConfigData
from src.adspace.runtime.context import get_config


class DbSessionService:
    def __init__(self, url: str | None = None):
        """Initialize the shared database engine and session factory."""

        main_config = get_config()
        db_config = main_config.database
        url = url or db_config.url

        logger.info("Configuring database engine for environment: {}", main_config.app.environment)
        engine_kwargs: dict = {
            "echo": db_config.echo,
            "pool_pre_ping": True,  # Validate connections before use
            "connect_args": self._get_connect_args(url, main_config),
        }
        if url.startswith("sqlite") and ":memory:" in url:
            # a single shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
        elif not url.startswith("sqlite"):
            engine_kwargs.update(
                {
                    "pool_size": db_config.pool_size,
                    "max_overflow": db_config.max_overflow,
                    "pool_timeout": db_config.pool_timeout,
                    "pool_recycle": db_config.pool_recycle,
                }
            )

        self._engine = create_engine(url, **engine_kwargs)

    def _get_connect_args(self, url: str, config: ConfigData) -> dict:
        """Get database-specific connection arguments."""
        connect_args = {}

        if url.startswith("postgresql"):
            connect_args.update(
                {
                    "application_name": f"{config.app.environment}_adspace_api",
                    "connect_timeout": 30,
                }
            )
        elif url.startswith("sqlite"):
            connect_args.update(
                {
                    "check_same_thread": False,
                    "timeout": 20,  # Lock timeout
                }
            )

            if config.app.environment == "production":
                logger.warning(
                    "SQLite is not recommended for production use. "
                    "Consider PostgreSQL for better performance and reliability."
                )

        return connect_args

    @property
    def engine(self):
        return self._engine

    def create_all(self) -> None:
        """Create all database tables."""
        from src.adspace.entities.core.user import UserTable  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database initialized with tables.")

    def get_session(self) -> Session:
        """Return a new SQLModel session bound to the shared engine."""
        return Session(
            self._engine,
            expire_on_commit=False,  # Prevent lazy loading issues
            autoflush=True,
        )

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Context manager style helper for repositories and tests."""
        db = self.get_session()
        try:
            yield db
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                "Database transaction failed: {}: {}", type(e).__name__, e
            )
            raise
        finally:
            db.close()

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.error("Database health check failed: {}: {}", type(e).__name__, e)
            return False

    def dispose(self) -> None:
        self._engine.dispose()
