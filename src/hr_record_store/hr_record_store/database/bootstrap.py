from __future__ import annotations

import logging

import mysql.connector
from sqlalchemy import inspect

from .connection import DatabaseConnection, DBConfig
from .tables import Base

logger = logging.getLogger(__name__)


def ensure_database_exists(config: DBConfig) -> None:
    """Create the MySQL schema itself; tables are created by :func:`apply_schema`."""
    if config.url and not config.url.startswith("mysql"):
        return

    conn = mysql.connector.connect(
        host=config.host,
        port=config.port,
        user=config.user,
        password=config.password,
        use_pure=True,
    )
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(conn_factory: DatabaseConnection) -> None:
    """Create every table and index (idempotent: existing tables are kept)."""
    Base.metadata.create_all(conn_factory.engine)
    logger.info("schema ready (tables=%s)", len(list_tables(conn_factory)))


def drop_schema(conn_factory: DatabaseConnection) -> None:
    Base.metadata.drop_all(conn_factory.engine)


def list_tables(conn_factory: DatabaseConnection) -> list[str]:
    return sorted(inspect(conn_factory.engine).get_table_names())


def list_indexes(conn_factory: DatabaseConnection, table: str) -> list[str]:
    inspector = inspect(conn_factory.engine)
    names = [ix["name"] for ix in inspector.get_indexes(table)]
    names += [uq["name"] for uq in inspector.get_unique_constraints(table)]
    return sorted(n for n in names if n)
