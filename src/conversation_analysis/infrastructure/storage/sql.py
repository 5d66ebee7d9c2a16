import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    LargeBinary,
    MetaData,
    String,
    Table,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from conversation_analysis.core.errors import StorageError
from conversation_analysis.core.storage.port import KeyValueStorage


logger = logging.getLogger(__name__)

metadata = MetaData()

kv_store = Table(
    "kv_store",
    metadata,
    Column("storage_key", String(255), primary_key=True),
    Column("value", LargeBinary, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def init_db(database_url: str) -> Engine:
    """
    Create the engine. No connection is made until the first query.
    """
    try:
        engine = create_engine(database_url, pool_pre_ping=True)
    except SQLAlchemyError as e:
        raise StorageError(f"Invalid database URL: {e}") from e

    return engine


class SqlKeyValueStorage(KeyValueStorage):
    """
    Key-value storage on any SQLAlchemy database (SQLite, Postgres).

    The kv_store table is created on first use, so an unreachable
    database surfaces as StorageError from get/set/clear.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._table_ready = False

    @classmethod
    def from_url(cls, database_url: str) -> "SqlKeyValueStorage":
        return cls(init_db(database_url))

    def _ensure_table(self) -> None:
        if self._table_ready:
            return

        metadata.create_all(self.engine)
        self._table_ready = True
        logger.info(
            "Key-value storage ready at %s",
            self.engine.url.render_as_string(hide_password=True),
        )

    def get(self, key: str) -> Optional[bytes]:
        try:
            self._ensure_table()
            with self.engine.connect() as conn:
                row = conn.execute(
                    text("SELECT value FROM kv_store WHERE storage_key = :key"),
                    {"key": key},
                ).mappings().first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read key '{key}': {e}") from e

        if not row:
            return None

        return bytes(row["value"])

    def set(self, key: str, value: bytes) -> None:
        # delete + insert inside one transaction: portable upsert
        try:
            self._ensure_table()
            with self.engine.begin() as conn:
                conn.execute(
                    text("DELETE FROM kv_store WHERE storage_key = :key"),
                    {"key": key},
                )
                conn.execute(
                    kv_store.insert(),
                    {
                        "storage_key": key,
                        "value": value,
                        "updated_at": datetime.now(timezone.utc),
                    },
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write key '{key}': {e}") from e

    def clear(self, key: str) -> None:
        try:
            self._ensure_table()
            with self.engine.begin() as conn:
                conn.execute(
                    text("DELETE FROM kv_store WHERE storage_key = :key"),
                    {"key": key},
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete key '{key}': {e}") from e
