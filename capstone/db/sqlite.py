import logging
import os
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session

from capstone.core.config import get_settings
from capstone.db.schema import SCHEMA_STATEMENTS, DROP_ORDER

settings = get_settings()
logger = logging.getLogger(__name__)


def _ensure_database_dir(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    database = make_url(database_url).database
    if database and database != ":memory:":
        directory = os.path.dirname(os.path.abspath(database))
        os.makedirs(directory, exist_ok=True)


_ensure_database_dir(settings.database_url)

# Single file database shared by all request threads
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False, "timeout": 15},
    echo=settings.database_echo
)


@event.listens_for(engine, "connect")
def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Enforce foreign keys (and cascades) on every new connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.
    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM projects"))
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_database_connection() -> bool:
    """
    Test if the database file is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as test"))
            row = result.fetchone()
            return row[0] == 1
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def execute_raw_sql(sql: str, params: dict = None) -> list:
    """
    Execute raw SQL and return results as list of dicts.
    This is useful for complex queries and reports.
    """
    with get_db_session() as db:
        return fetch_all(db, sql, params)


def fetch_all(db: Session, sql: str, params: dict = None) -> list:
    """Run a query inside an open session and return rows as dicts."""
    result = db.execute(text(sql), params or {})
    return [dict(row) for row in result.mappings().all()]


def fetch_one(db: Session, sql: str, params: dict = None):
    """Run a query inside an open session and return the first row as a dict (or None)."""
    row = db.execute(text(sql), params or {}).mappings().first()
    return dict(row) if row else None


def like_pattern(term: str) -> str:
    """Substring pattern for `LIKE ... ESCAPE '\\'` with wildcards in the term matched literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def init_database() -> None:
    """Create all tables and indexes if they do not exist."""
    with engine.begin() as conn:
        for statement in SCHEMA_STATEMENTS:
            conn.execute(text(statement))
    logger.info("Database schema initialized")


def reset_database() -> None:
    """Drop and recreate every table. Used by tests and the seed script."""
    with engine.begin() as conn:
        for table in DROP_ORDER:
            conn.execute(text(f"DROP TABLE IF EXISTS {table}"))
    init_database()
