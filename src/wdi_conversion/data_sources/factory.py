"""
Data source factory for creating and managing data source instances.

Builds the snapshot store, the World Bank client and the factor table source
from configuration, and wires them into a conversion pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

from .base import DataSource, DataSourceType
from .factors import FactorTableSource
from .snapshot import SQLiteSnapshotStore
from .worldbank import WorldBankDataSource
from ..config import WDIConversionConfig
from ..processors.pipeline import ConversionPipeline
from ..utils.logging import get_logger

logger = get_logger(__name__)


class DataSourceFactory:
    """
    Factory for creating data source instances.
    """

    @staticmethod
    def create_snapshot_store(
        database_path: Union[str, Path],
        **kwargs
    ) -> SQLiteSnapshotStore:
        """Create a SQLite snapshot store."""
        return SQLiteSnapshotStore(database_path=Path(database_path), **kwargs)

    @staticmethod
    def create_world_bank_source(**kwargs) -> WorldBankDataSource:
        """Create a World Bank API client."""
        return WorldBankDataSource(**kwargs)

    @staticmethod
    def create_factor_source(
        database_path: Union[str, Path],
        **kwargs
    ) -> FactorTableSource:
        """Create a conversion factor table source."""
        return FactorTableSource(database_path=Path(database_path), **kwargs)

    @staticmethod
    def create_from_config(
        source_type: DataSourceType,
        config: WDIConversionConfig
    ) -> DataSource:
        """
        Create data source from configuration.

        Args:
            source_type: Type of data source to create
            config: Conversion configuration

        Returns:
            Configured data source instance
        """
        if source_type == DataSourceType.SNAPSHOT:
            return DataSourceFactory.create_snapshot_store(
                database_path=config.snapshot.database_path,
                connection_timeout=config.snapshot.connection_timeout
            )

        elif source_type == DataSourceType.WORLD_BANK:
            return WorldBankDataSource.from_config(config.fetch)

        elif source_type == DataSourceType.FACTORS:
            if not config.conversion.factor_database_path:
                raise ValueError("Factor database path not configured")

            return DataSourceFactory.create_factor_source(
                database_path=config.conversion.factor_database_path,
                connection_timeout=config.snapshot.connection_timeout
            )

        else:
            raise ValueError(f"Unsupported data source type: {source_type}")


def create_data_source(
    source_type: Union[str, DataSourceType],
    **kwargs
) -> DataSource:
    """
    Convenience function to create a data source.

    Args:
        source_type: Type of data source
        **kwargs: Configuration parameters

    Returns:
        Configured data source instance
    """
    if isinstance(source_type, str):
        source_type = DataSourceType(source_type)

    if source_type == DataSourceType.SNAPSHOT:
        return DataSourceFactory.create_snapshot_store(**kwargs)
    elif source_type == DataSourceType.WORLD_BANK:
        return DataSourceFactory.create_world_bank_source(**kwargs)
    elif source_type == DataSourceType.FACTORS:
        return DataSourceFactory.create_factor_source(**kwargs)
    else:
        raise ValueError(f"Unsupported data source type: {source_type}")


def create_pipeline(
    config: Optional[WDIConversionConfig] = None,
    snapshot_store: Optional[SQLiteSnapshotStore] = None,
    factor_source: Optional[FactorTableSource] = None
) -> ConversionPipeline:
    """
    Build a conversion pipeline from configuration.

    The rebasing converter is only attached when a factor database is
    configured; converting a rebased indicator without one raises a
    ConfigurationError.

    Args:
        config: Configuration (defaults to WDIConversionConfig())
        snapshot_store: Store to read raw snapshots from
        factor_source: Source of conversion factor tables

    Returns:
        ConversionPipeline
    """
    config = config or WDIConversionConfig()

    if snapshot_store is None:
        snapshot_store = DataSourceFactory.create_from_config(DataSourceType.SNAPSHOT, config)

    if factor_source is None and config.conversion.factor_database_path:
        factor_source = DataSourceFactory.create_from_config(DataSourceType.FACTORS, config)

    converter = None
    if factor_source is not None:
        with factor_source:
            converter = factor_source.build_converter([config.conversion.rebase_source])
    else:
        logger.warning("No factor database configured; rebased indicators cannot be converted")

    return ConversionPipeline.from_config(config, snapshot_store, converter)


def describe_sources(config: WDIConversionConfig) -> Dict[str, Any]:
    """Connection status of the configured sources."""
    status: Dict[str, Any] = {}
    for source_type in (DataSourceType.SNAPSHOT, DataSourceType.FACTORS):
        try:
            source = DataSourceFactory.create_from_config(source_type, config)
        except ValueError as e:
            status[source_type.value] = {"configured": False, "reason": str(e)}
            continue

        with source:
            status[source_type.value] = {
                "configured": True,
                "connected": source.test_connection(),
                "class": source.__class__.__name__
            }

    return status
