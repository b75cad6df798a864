from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.engine import Engine
import logging
from typing import Generator
from .settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _configure_sqlite(engine: Engine) -> None:
    """
    Make pysqlite honour SAVEPOINT and serialize writers.

    The driver's implicit transaction handling is disabled and every
    transaction opens with BEGIN IMMEDIATE, so a second writer blocks on
    the database lock the same way it blocks on a row lock in PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={settings.DATABASE_LOCK_TIMEOUT * 1000}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def server_connect_args() -> dict:
    """PostgreSQL connection arguments; lock_timeout bounds waits on locked rows."""
    return {
        "connect_timeout": settings.DATABASE_LOCK_TIMEOUT,
        "options": f"-c lock_timeout={settings.DATABASE_LOCK_TIMEOUT * 1000}",
    }


def create_db_engine(database_url: str = None, **engine_kwargs) -> Engine:
    """Create an engine for the given URL with dialect-appropriate pooling."""
    url = database_url or settings.DATABASE_URL
    is_sqlite = url.startswith("sqlite")

    options = {
        "pool_pre_ping": True,
        "echo": settings.DEBUG,
    }
    if is_sqlite:
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.DATABASE_LOCK_TIMEOUT,
        }
    else:
        options.update(
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            pool_recycle=settings.DATABASE_POOL_RECYCLE,
            connect_args=server_connect_args(),
        )
    options.update(engine_kwargs)

    engine = create_engine(url, **options)
    if is_sqlite:
        _configure_sqlite(engine)
    return engine


# Database engine configuration
engine = create_db_engine()

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for models
Base = declarative_base()

# Database session dependency
def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    Creates a new database session for each request.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()

# Database health check
def check_database_health(bind: Engine = None) -> bool:
    """Check if database connection is healthy."""
    try:
        with (bind or engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False

# Database initialization
def init_database(bind: Engine = None):
    """Initialize database with tables."""
    # Register every mapped table on Base.metadata
    from ..models import tenant, customer, product, order, notification  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

# Database cleanup
def cleanup_database():
    """Clean up database connections."""
    engine.dispose()
    logger.info("Database connections cleaned up")

# Transaction context manager
class DatabaseTransaction:
    """Context manager for database transactions."""

    def __init__(self, db: Session):
        self.db = db

    def __enter__(self):
        return self.db

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.db.rollback()
        else:
            self.db.commit()

# Export commonly used objects
__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "create_db_engine",
    "get_db",
    "init_database",
    "cleanup_database",
    "check_database_health",
    "DatabaseTransaction",
]
