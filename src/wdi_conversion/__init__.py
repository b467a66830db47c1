"""
WDI Panel Conversion Package

This package turns raw World Development Indicators snapshots from the World
Bank into clean, unit-consistent, ISO alpha-3 coded indicator panels for
downstream modeling.
"""

__version__ = "0.1.0"
__author__ = "Research Team"

from .config import WDIConversionConfig, load_config
from .exceptions import (
    WDIConversionError, ProcessingError, ConfigurationError, RebasingError,
    PanelIntegrityError, DataSourceError, UpstreamFetchError, SnapshotError
)
from .models import (
    IndicatorSpec, AggregationRule, BasisDescriptor, DatasetMetadata,
    RegionScheme, WDI_INDICATORS
)
from .panel import IndicatorPanel
from .regions import RegionCrossReference
# data_sources before processors: the factor source and the pipeline import each other's modules
from .data_sources import (
    SQLiteSnapshotStore, WorldBankDataSource, FactorTableSource,
    DataSourceFactory, create_pipeline
)
from .processors import (
    IndicatorCatalog, ConversionPipeline, ConversionResult, GDPUnitConverter
)

__all__ = [
    "WDIConversionConfig",
    "load_config",
    "WDIConversionError",
    "ProcessingError",
    "ConfigurationError",
    "RebasingError",
    "PanelIntegrityError",
    "DataSourceError",
    "UpstreamFetchError",
    "SnapshotError",
    "IndicatorSpec",
    "AggregationRule",
    "BasisDescriptor",
    "DatasetMetadata",
    "RegionScheme",
    "WDI_INDICATORS",
    "IndicatorPanel",
    "RegionCrossReference",
    "SQLiteSnapshotStore",
    "WorldBankDataSource",
    "FactorTableSource",
    "DataSourceFactory",
    "create_pipeline",
    "IndicatorCatalog",
    "ConversionPipeline",
    "ConversionResult",
    "GDPUnitConverter",
]
