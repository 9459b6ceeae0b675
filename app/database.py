# Database connection management and store selection
import os
from typing import Optional
import mysql.connector
import logging

logger = logging.getLogger(__name__)

_connection: Optional[mysql.connector.connection.MySQLConnection] = None
_store = None

# Environment variables for database connection
MYSQL_HOST = os.getenv("MYSQL_HOST", "localhost")
MYSQL_USER = os.getenv("MYSQL_USER", "root")
MYSQL_PASSWORD = os.getenv("MYSQL_PASSWORD", "")
MYSQL_PORT = int(os.getenv("MYSQL_PORT", "3306"))
MYSQL_DATABASE = os.getenv("MYSQL_DATABASE", "agenda")

STORE_BACKENDS = ("mysql", "memory")


def get_connection():
    """Get database connection, create if not exists"""
    global _connection

    if _connection is None or not _connection.is_connected():
        try:
            # No default schema: bootstrap may still have to create it
            _connection = mysql.connector.connect(
                host=MYSQL_HOST,
                user=MYSQL_USER,
                password=MYSQL_PASSWORD,
                port=MYSQL_PORT,
                autocommit=False
            )
            logger.info("Database connection established")
        except mysql.connector.Error as e:
            logger.error(f"Error connecting to database: {e}")
            raise

    return _connection


def get_cursor():
    """Get a new cursor from the database connection"""
    conn = get_connection()
    return conn.cursor()


def close_connection():
    """Close database connection"""
    global _connection
    if _connection and _connection.is_connected():
        _connection.close()
        _connection = None
        logger.info("Database connection closed")


def get_store_backend() -> str:
    """Name of the configured store backend, read from AGENDA_STORE_BACKEND"""
    return os.getenv("AGENDA_STORE_BACKEND", "mysql").strip().lower()


def get_store():
    """Get the agenda store, create it on first use for the configured backend"""
    global _store

    if _store is None:
        backend = get_store_backend()
        if backend not in STORE_BACKENDS:
            raise ValueError(f"Unknown store backend '{backend}', expected one of {', '.join(STORE_BACKENDS)}")

        import stores
        if backend == "memory":
            _store = stores.MemoryAgendaStore()
        else:
            _store = stores.MySQLAgendaStore()
        logger.info(f"Using {backend} agenda store")

    return _store


def reset_store():
    """Forget the current store so the next get_store() builds a fresh one"""
    global _store
    _store = None
