"""
Data source connectors for raw WDI data.

This module provides the World Bank API client, the SQLite store of raw
snapshots and the conversion factor tables used for rebasing.
"""

from .base import (
    DataSource, DataSourceType, QueryResult, RawPanelSource, SnapshotStore,
    DataSourceError, UpstreamFetchError, SnapshotError
)
from .snapshot import SQLiteSnapshotStore, serialize_frame, deserialize_frame
from .worldbank import WorldBankDataSource
from .factors import FactorTableSource
from .factory import DataSourceFactory, create_data_source, create_pipeline

__all__ = [
    "DataSource",
    "DataSourceType",
    "QueryResult",
    "RawPanelSource",
    "SnapshotStore",
    "DataSourceError",
    "UpstreamFetchError",
    "SnapshotError",
    "SQLiteSnapshotStore",
    "serialize_frame",
    "deserialize_frame",
    "WorldBankDataSource",
    "FactorTableSource",
    "DataSourceFactory",
    "create_data_source",
    "create_pipeline",
]
