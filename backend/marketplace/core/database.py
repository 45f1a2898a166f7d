"""
PostgreSQL database access

This module centralizes every way the service talks to the database:
- SQLAlchemy declarative Base (table definitions, schema creation)
- psycopg2 direct connections (raw SQL used by the repositories)
- transaction() context manager for multi-statement writes

Updated: 2026-03-02
"""
import time
import logging
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

from .config import settings

logger = logging.getLogger(__name__)

CONNECTION_TIMEOUT = settings.DB_CONNECT_TIMEOUT


# ============================================================================
# SQLAlchemy Configuration (table definitions)
# ============================================================================

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

Base = declarative_base()


def init_db():
    """
    Create every table declared under marketplace.models.

    Existing tables are left untouched.
    """
    from marketplace import models  # noqa: F401  (registers the tables on Base)

    Base.metadata.create_all(bind=engine)
    logger.info(f"Schema ready: {len(Base.metadata.tables)} tables")


# ============================================================================
# psycopg2 Direct Connections (for raw SQL queries)
# ============================================================================

def get_db_connection_dict():
    """
    Get a database connection with RealDictCursor (returns dictionaries)

    Example:
        conn = get_db_connection_dict()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM orders")
        results = cursor.fetchall()  # Returns list of dicts
        cursor.close()
        conn.close()
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise Exception("DATABASE_URL not configured")

    return psycopg2.connect(
        database_url,
        cursor_factory=RealDictCursor,
        connect_timeout=CONNECTION_TIMEOUT,
    )


# ============================================================================
# Database Connection with Retry Logic
# ============================================================================

def get_db_connection_with_retry(max_retries=3, retry_delay=1.0, cursor_factory=None):
    """
    Get a psycopg2 connection with automatic retry on connection failures

    Retries failed connections up to max_retries times with exponential
    backoff between attempts.

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)
        cursor_factory: Optional cursor factory (RealDictCursor for dict rows)

    Returns:
        psycopg2 connection object

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise Exception("DATABASE_URL not configured")

    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            conn = psycopg2.connect(
                database_url,
                cursor_factory=cursor_factory,
                connect_timeout=CONNECTION_TIMEOUT,
            )

            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()

            logger.debug(f"Database connection successful on attempt {attempt}")
            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {e}")

            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")
                raise

    raise last_error if last_error else Exception("Connection failed after all retries")


def get_db_connection_dict_with_retry(max_retries=3, retry_delay=1.0):
    """Same as get_db_connection_with_retry but rows come back as dicts."""
    return get_db_connection_with_retry(
        max_retries=max_retries,
        retry_delay=retry_delay,
        cursor_factory=RealDictCursor,
    )


@contextmanager
def transaction():
    """
    Context manager for a single database transaction.

    Commits when the block exits normally, rolls back on any exception and
    always closes the connection.

    Usage:
        with transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("UPDATE ...")
    """
    conn = get_db_connection_dict_with_retry()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
