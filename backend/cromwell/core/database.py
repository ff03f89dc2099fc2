"""
Database connections (PostgreSQL)

This module centralizes database access:
- psycopg2 direct connections (repositories use raw SQL)
- SQLAlchemy engine (schema creation from cromwell.models)
"""
import logging
import time
from functools import lru_cache

import psycopg2
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

from .config import settings

logger = logging.getLogger(__name__)

CONNECTION_TIMEOUT = 10

# Declarative base for cromwell.models
Base = declarative_base()


# ============================================================================
# SQLAlchemy Configuration (schema only)
# ============================================================================

@lru_cache(maxsize=1)
def get_engine():
    """Create the SQLAlchemy engine on first use"""
    if not settings.DATABASE_URL:
        raise Exception("DATABASE_URL not configured")

    return create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def init_db():
    """
    Create all tables declared in cromwell.models

    Safe to call repeatedly: existing tables are left untouched.
    """
    import cromwell.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=get_engine())
    logger.info("Database schema is up to date")


# ============================================================================
# psycopg2 Direct Connections (for raw SQL queries)
# ============================================================================

def get_db_connection():
    """
    Get a direct psycopg2 database connection (returns tuples)

    Raises:
        Exception if DATABASE_URL is not configured
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise Exception("DATABASE_URL not configured")

    return psycopg2.connect(database_url, connect_timeout=CONNECTION_TIMEOUT)


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

    return psycopg2.connect(database_url, cursor_factory=RealDictCursor, connect_timeout=CONNECTION_TIMEOUT)


def get_db_connection_with_retry(max_retries=3, retry_delay=1.0, dict_cursor=False):
    """
    Get a psycopg2 connection with automatic retry on connection failures

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)
        dict_cursor: Use RealDictCursor for the connection

    Returns:
        psycopg2 connection object

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise Exception("DATABASE_URL not configured")

    connect_kwargs = {"connect_timeout": CONNECTION_TIMEOUT}
    if dict_cursor:
        connect_kwargs["cursor_factory"] = RealDictCursor

    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            conn = psycopg2.connect(database_url, **connect_kwargs)

            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()

            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {e}")

            if attempt < max_retries:
                # Exponential backoff
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")
                raise

    raise last_error if last_error else Exception("Connection failed after all retries")
