from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..core.constants import (
    DEFAULT_QUERY_TIMEOUT_SECONDS,
    DEFAULT_WRITE_RETRY_ATTEMPTS,
    DEFAULT_WRITE_RETRY_BACKOFF_SECONDS,
)


@dataclass
class DBConfig:
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = "hr_record_store"
    url: Optional[str] = None

    def sqlalchemy_url(self) -> str:
        if self.url:
            return self.url
        # Quote the password so characters like '@' survive in the URL.
        password = urllib.parse.quote_plus(self.password)
        return f"mysql+mysqlconnector://{self.user}:{password}@{self.host}:{self.port}/{self.database}"

    @classmethod
    def from_dict(cls, db_config: dict) -> "DBConfig":
        return cls(
            host=str(db_config.get("host", "localhost")),
            port=int(db_config.get("port", 3306)),
            user=str(db_config.get("user", "root")),
            password=str(db_config.get("password", "")),
            database=str(db_config.get("database", "hr_record_store")),
            url=db_config.get("url"),
        )


class DatabaseConnection:
    """Singleton-like engine/session factory.

    Note: Sessions are short-lived, one per repository call or explicit transaction.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(
        self,
        config: DBConfig,
        *,
        echo: bool = False,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT_SECONDS,
        retry_attempts: int = DEFAULT_WRITE_RETRY_ATTEMPTS,
        retry_backoff: float = DEFAULT_WRITE_RETRY_BACKOFF_SECONDS,
    ):
        self._config = config
        self.query_timeout = float(query_timeout)
        self.retry_attempts = max(int(retry_attempts), 1)
        self.retry_backoff = float(retry_backoff)
        self._engine = _build_engine(config.sqlalchemy_url(), echo=echo)
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False, autoflush=False)

    @classmethod
    def get_instance(cls, config: DBConfig, **options) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config, **options)
        return cls._instance

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    def session(self) -> Session:
        return self._sessions()

    def dispose(self) -> None:
        self._engine.dispose()


def _build_engine(url: str, *, echo: bool) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 15},
        )

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_connection, _record):
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True, pool_recycle=1800)
