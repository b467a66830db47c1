"""
SQLite snapshot store.

Raw WDI tables are kept as Parquet-encoded blobs in a single SQLite table,
one row per snapshot key. Snapshots are never overwritten: a new download is
stored under a new key and selected explicitly through configuration.
"""

from __future__ import annotations

import io
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
from sqlalchemy import (
    Column, DateTime, LargeBinary, MetaData, String, Table, create_engine, select, text
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .base import DataSource, DataSourceType, SnapshotError, SnapshotStore

SNAPSHOT_TABLE = "wdi_snapshots"

_metadata = MetaData()

snapshots_table = Table(
    SNAPSHOT_TABLE,
    _metadata,
    Column("key", String, primary_key=True),
    Column("payload", LargeBinary, nullable=False),
    Column("created_at", DateTime, nullable=False),
)


def serialize_frame(frame: pd.DataFrame) -> bytes:
    """Encode a raw table as Parquet bytes."""
    buffer = io.BytesIO()
    frame.reset_index(drop=True).to_parquet(buffer, engine="pyarrow", index=False)
    return buffer.getvalue()


def deserialize_frame(payload: bytes) -> pd.DataFrame:
    """
    Decode Parquet bytes into a raw table.

    Raises:
        SnapshotError: if the payload is not valid Parquet
    """
    try:
        return pd.read_parquet(io.BytesIO(payload), engine="pyarrow")
    except (OSError, ValueError) as e:
        raise SnapshotError(f"Snapshot payload could not be decoded: {e}") from e


class SQLiteSnapshotStore(DataSource, SnapshotStore):
    """
    Snapshot store backed by a SQLite database.

    The database file and table are created on first connection.
    """

    error_class = SnapshotError

    def __init__(
        self,
        database_path: Union[str, Path],
        connection_timeout: int = 30
    ):
        """
        Initialize snapshot store.

        Args:
            database_path: Path to the SQLite database file
            connection_timeout: Connection timeout in seconds
        """
        super().__init__(
            DataSourceType.SNAPSHOT,
            {"database_path": str(database_path), "connection_timeout": connection_timeout}
        )
        self.database_path = Path(database_path)
        self.connection_timeout = connection_timeout
        self._engine: Optional[Engine] = None

    def connect(self) -> None:
        """Open the database, creating it if needed."""
        try:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)

            self._engine = create_engine(
                f"sqlite:///{self.database_path}",
                connect_args={"timeout": self.connection_timeout},
                echo=False
            )
            _metadata.create_all(self._engine)

            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            self._is_connected = True
            self.logger.debug(f"Connected to snapshot database: {self.database_path}")

        except (OSError, SQLAlchemyError) as e:
            self._is_connected = False
            raise SnapshotError(
                f"Failed to open snapshot database {self.database_path}: {e}",
                self.source_type.value
            ) from e

    def disconnect(self) -> None:
        """Close connection to database."""
        if self._engine:
            self._engine.dispose()
            self._engine = None

        self._is_connected = False

    def test_connection(self) -> bool:
        """Test if connection is working."""
        if not self._is_connected or not self._engine:
            return False

        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def load(self, key: str) -> Optional[bytes]:
        """Payload stored under key, or None."""
        self._ensure_connected()

        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    select(snapshots_table.c.payload).where(snapshots_table.c.key == key)
                ).first()
        except SQLAlchemyError as e:
            raise SnapshotError(f"Failed to load snapshot '{key}': {e}", query_id=key) from e

        return None if row is None else bytes(row[0])

    def store(self, key: str, payload: bytes) -> None:
        """
        Store a payload under a new key.

        Raises:
            SnapshotError: if the key already exists
        """
        if not key:
            raise SnapshotError("Snapshot key cannot be empty")

        self._ensure_connected()

        try:
            with self._engine.begin() as conn:
                conn.execute(
                    snapshots_table.insert().values(
                        key=key, payload=payload, created_at=datetime.now()
                    )
                )
        except IntegrityError as e:
            raise SnapshotError(
                f"Snapshot '{key}' already exists; snapshots are immutable, use a new key",
                query_id=key
            ) from e
        except SQLAlchemyError as e:
            raise SnapshotError(f"Failed to store snapshot '{key}': {e}", query_id=key) from e

        self.logger.info(f"Stored snapshot '{key}' ({len(payload)} bytes)")

    def list_keys(self) -> List[str]:
        """All stored keys, sorted."""
        self._ensure_connected()

        with self._engine.connect() as conn:
            rows = conn.execute(select(snapshots_table.c.key).order_by(snapshots_table.c.key))
            return [row[0] for row in rows]

    def describe(self) -> pd.DataFrame:
        """Stored snapshots with their creation time and payload size."""
        self._ensure_connected()

        query = (
            f"SELECT key, created_at, length(payload) AS size_bytes "
            f"FROM {SNAPSHOT_TABLE} ORDER BY key"
        )
        return self.execute_query(
            SNAPSHOT_TABLE,
            lambda: pd.read_sql(text(query), self._engine)
        ).data

    def store_frame(self, key: str, frame: pd.DataFrame) -> None:
        """Serialize and store a raw table."""
        self.store(key, serialize_frame(frame))

    def load_frame(self, key: str) -> Optional[pd.DataFrame]:
        """Load and decode a raw table, or None if the key is unknown."""
        payload = self.load(key)
        return None if payload is None else deserialize_frame(payload)

    def _ensure_connected(self) -> None:
        if not self._is_connected or self._engine is None:
            self.connect()
