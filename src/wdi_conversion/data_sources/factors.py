"""
Conversion factor tables.

Factor tables feed the GDP unit converter. Each table lives in its own SQLite
table named after its source (e.g. "wb_wdi") with one row per region and year:

    iso3c | year | deflator | mer | ppp
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .base import DataSource, DataSourceError, DataSourceType
from ..processors.currency import FACTOR_COLUMNS, GDPUnitConverter

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class FactorTableSource(DataSource):
    """
    Reads and writes conversion factor tables in a SQLite database.
    """

    def __init__(
        self,
        database_path: Union[str, Path],
        connection_timeout: int = 30
    ):
        """
        Initialize factor table source.

        Args:
            database_path: Path to SQLite database
            connection_timeout: Connection timeout in seconds
        """
        super().__init__(
            DataSourceType.FACTORS,
            {"database_path": str(database_path), "connection_timeout": connection_timeout}
        )
        self.database_path = Path(database_path)
        self.connection_timeout = connection_timeout
        self._engine: Optional[Engine] = None

    def connect(self) -> None:
        try:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(
                f"sqlite:///{self.database_path}",
                connect_args={"timeout": self.connection_timeout},
                echo=False
            )

            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            self._is_connected = True

        except (OSError, SQLAlchemyError) as e:
            self._is_connected = False
            raise DataSourceError(
                f"Failed to open factor database {self.database_path}: {e}",
                self.source_type.value
            ) from e

    def disconnect(self) -> None:
        if self._engine:
            self._engine.dispose()
            self._engine = None

        self._is_connected = False

    def test_connection(self) -> bool:
        if not self._is_connected or not self._engine:
            return False

        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def list_sources(self) -> List[str]:
        """Names of the factor tables in the database."""
        if not self._is_connected:
            self.connect()

        return sorted(inspect(self._engine).get_table_names())

    def load(self, source: str) -> pd.DataFrame:
        """
        Load a factor table.

        Raises:
            DataSourceError: if the table does not exist or lacks factor columns
        """
        table = _checked_name(source)
        columns = ", ".join(("iso3c", "year") + FACTOR_COLUMNS)

        frame = self.execute_query(
            table,
            lambda: pd.read_sql(text(f"SELECT {columns} FROM {table}"), self._engine)
        ).data

        frame["year"] = frame["year"].astype(int)
        return frame

    def save(self, source: str, frame: pd.DataFrame, replace: bool = False) -> None:
        """Write a factor table, optionally replacing an existing one."""
        table = _checked_name(source)
        missing = [c for c in ("iso3c", "year") + FACTOR_COLUMNS if c not in frame.columns]
        if missing:
            raise DataSourceError(
                f"Factor table '{source}' is missing columns: {missing}",
                self.source_type.value
            )

        if not self._is_connected:
            self.connect()

        try:
            frame[["iso3c", "year", *FACTOR_COLUMNS]].to_sql(
                table,
                self._engine,
                if_exists="replace" if replace else "fail",
                index=False
            )
        except (ValueError, SQLAlchemyError) as e:
            raise DataSourceError(
                f"Failed to write factor table '{source}': {e}",
                self.source_type.value
            ) from e

        self.logger.info(f"Saved factor table '{source}' ({len(frame)} rows)")

    def build_converter(self, sources: Optional[List[str]] = None) -> GDPUnitConverter:
        """Unit converter with the given factor tables (default: all) registered."""
        converter = GDPUnitConverter()
        for source in sources if sources is not None else self.list_sources():
            converter.register(source, self.load(source))
        return converter


def _checked_name(source: str) -> str:
    if not _TABLE_NAME.match(source):
        raise DataSourceError(f"Invalid factor table name: '{source}'")
    return source
