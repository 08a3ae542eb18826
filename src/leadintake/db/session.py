"""
Database Session Management

Provides database connection pooling and session management.

Engines and session factories are built explicitly (``build_engine`` /
``build_session_factory``) and handed to the pipeline, API and scripts.
The process-wide default pair is created on first use, never at import.
"""
import time
from contextlib import contextmanager
from functools import wraps
from typing import Generator, Optional

from sqlalchemy import create_engine, event, exc, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import settings
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

_default_engine: Optional[Engine] = None
_default_session_factory: Optional[sessionmaker] = None


def build_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create a database engine.

    PostgreSQL URLs get the configured connection pool; SQLite URLs (tests,
    local runs) get a single shared connection so in-memory databases
    survive across sessions.

    Args:
        database_url: SQLAlchemy URL (defaults to settings.database_url)
        echo: Log SQL statements (defaults to settings.database_echo)

    Returns:
        Engine
    """
    database_url = database_url or settings.database_url
    echo = settings.database_echo if echo is None else echo

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
            pool_pre_ping=True,  # Verify connections before using
            echo=echo,
        )

    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        logger.debug("database_connection_established")

    @event.listens_for(engine, "invalidate")
    def receive_invalidate(dbapi_conn, connection_record, exception):
        logger.warning(
            "database_connection_invalidated",
            exception=str(exception) if exception else None
        )

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False
    )


def get_engine() -> Engine:
    """Process-wide default engine, created on first call."""
    global _default_engine
    if _default_engine is None:
        _default_engine = build_engine()
    return _default_engine


def get_session_factory() -> sessionmaker:
    """Process-wide default session factory, created on first call."""
    global _default_session_factory
    if _default_session_factory is None:
        _default_session_factory = build_session_factory(get_engine())
    return _default_session_factory


@contextmanager
def get_db_session(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Get database session with automatic cleanup.

    Usage:
        with get_db_session() as session:
            # Perform database operations
            result = session.query(Model).all()

    Args:
        session_factory: Factory to use (defaults to the process-wide one)

    Yields:
        Database session

    Raises:
        Exception: Re-raises any exception after rollback
    """
    session = (session_factory or get_session_factory())()
    try:
        logger.debug("database_session_created")
        yield session
        session.commit()
        logger.debug("database_session_committed")
    except exc.SQLAlchemyError as e:
        session.rollback()
        logger.error(
            "database_session_rollback",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    except Exception as e:
        session.rollback()
        logger.error(
            "database_session_error",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    finally:
        session.close()
        logger.debug("database_session_closed")


def health_check(session_factory: Optional[sessionmaker] = None) -> bool:
    """
    Check database connection health.

    Returns:
        True if database is accessible, False otherwise
    """
    try:
        with get_db_session(session_factory) as session:
            session.execute(text("SELECT 1"))
            logger.info("database_health_check_success")
            return True
    except exc.SQLAlchemyError as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        return False


def close_connections():
    """
    Dispose of the default engine.

    Should be called on application shutdown.
    """
    global _default_engine, _default_session_factory
    if _default_engine is None:
        return
    logger.info("closing_database_connections")
    _default_engine.dispose()
    _default_engine = None
    _default_session_factory = None
    logger.info("database_connections_closed")


def create_all_tables(engine: Optional[Engine] = None):
    """
    Create all database tables defined in models.

    WARNING: Use Alembic migrations instead in production.
    This is only for testing and initial setup.
    """
    from src.leadintake.db.base import Base, import_all_models

    logger.info("creating_database_tables")
    import_all_models()
    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("database_tables_created")


def with_retry(max_retries: int = 3, retry_delay: int = 1):
    """
    Decorator to retry database operations on transient failures.

    Args:
        max_retries: Maximum number of retry attempts
        retry_delay: Delay between retries in seconds

    Usage:
        @with_retry(max_retries=3)
        def my_database_operation(session):
            # Perform operation
            pass
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except (exc.OperationalError, exc.DisconnectionError) as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        logger.warning(
                            "database_operation_retry",
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            error=str(e)
                        )
                        time.sleep(retry_delay * (attempt + 1))
                    else:
                        logger.error(
                            "database_operation_failed_after_retries",
                            max_retries=max_retries,
                            error=str(e)
                        )

            raise last_exception

        return wrapper
    return decorator
