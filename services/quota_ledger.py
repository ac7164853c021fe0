"""Quota ledger for Vertex Relay.

This module owns the ``api_keys`` table: one row per caller key with the
number of calls it may still make.
"""

from typing import Optional

from sqlalchemy import Column, Integer, MetaData, Table, Text, create_engine, select, text, update
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from config import ApplicationConfig
from models import QuotaRecord
from utils import KeyNotFound, StorageError, create_contextual_logger, log_exception

metadata = MetaData()

api_keys = Table(
    "api_keys",
    metadata,
    Column("key", Text, primary_key=True),
    Column("remaining_calls", Integer, nullable=False),
)


def create_ledger_engine(config: ApplicationConfig) -> Engine:
    """Create the bounded connection pool for the ledger database."""
    url = URL.create(
        "postgresql+psycopg",
        username=config.db_user,
        password=config.db_password,
        host=config.db_host,
        port=config.db_port,
        database=config.db_name,
        query={"sslmode": config.db_sslmode},
    )
    return create_engine(
        url,
        pool_size=config.db_pool_size,
        max_overflow=0,
        pool_recycle=config.db_pool_recycle,
        pool_timeout=config.db_pool_timeout,
        pool_pre_ping=True,
    )


class QuotaLedger:
    """Atomic check-and-decrement over the api_keys table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.logger = create_contextual_logger(__name__, service="quota_ledger")

    def ensure_schema(self) -> None:
        """Create the api_keys table if it does not exist."""
        try:
            metadata.create_all(self.engine, checkfirst=True)
        except SQLAlchemyError as e:
            log_exception(self.logger, e, "Failed to create api_keys table")
            raise StorageError(f"creating schema: {e}") from e

    def ping(self) -> None:
        """Round-trip a trivial query. Raises StorageError when the store is unreachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StorageError(f"ping failed: {e}") from e

    def try_consume(self, key: str) -> Optional[int]:
        """Consume one call for ``key`` and return the calls left afterwards.

        Returns None without writing when the key is already exhausted, so a
        caller can tell "used the last call" (0) from "nothing left" (None).

        Raises:
            KeyNotFound: no row exists for ``key``.
            StorageError: the database failed.
        """
        stmt = (
            update(api_keys)
            .where(api_keys.c.key == key, api_keys.c.remaining_calls > 0)
            .values(remaining_calls=api_keys.c.remaining_calls - 1)
            .returning(api_keys.c.remaining_calls)
        )
        try:
            with self.engine.begin() as conn:
                remaining = conn.execute(stmt).scalar_one_or_none()
                if remaining is not None:
                    return remaining

                exists = conn.execute(
                    select(api_keys.c.key).where(api_keys.c.key == key)
                ).first()
        except SQLAlchemyError as e:
            log_exception(self.logger, e, "Quota check failed", operationName="try_consume")
            raise StorageError(f"check and decrement: {e}") from e

        if exists is None:
            raise KeyNotFound("API key not found")
        return None

    def check_and_decrement(self, key: str) -> int:
        """Like try_consume, but report an exhausted key as 0."""
        remaining = self.try_consume(key)
        return 0 if remaining is None else remaining

    def get_record(self, key: str) -> Optional[QuotaRecord]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(api_keys.c.key, api_keys.c.remaining_calls).where(api_keys.c.key == key)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"get record: {e}") from e

        if row is None:
            return None
        return QuotaRecord(key=row.key, remaining_calls=max(row.remaining_calls, 0))

    def dispose(self) -> None:
        self.engine.dispose()
        self.logger.info("Ledger connection pool closed")
