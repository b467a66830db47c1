"""
Panel processors for WDI indicator conversion.

Each conversion step is a DataProcessor that takes an IndicatorPanel and
returns a new one; ConversionPipeline chains them in the required order.
"""

from .base import DataProcessor, ProcessingResult, ProcessingStatus, ProcessingError
from .catalog import IndicatorCatalog, available_indicators
from .scaling import ScaleNormalizer, scale_panel
from .aggregation import RegionAggregator, aggregate_regions
from .harmonizer import RegionCodeHarmonizer, ValidityFilter
from .currency import GDPUnitConverter, BasisRebasingAdapter
from .pipeline import ConversionPipeline, ConversionResult

__all__ = [
    "DataProcessor",
    "ProcessingResult",
    "ProcessingStatus",
    "ProcessingError",
    "IndicatorCatalog",
    "available_indicators",
    "ScaleNormalizer",
    "scale_panel",
    "RegionAggregator",
    "aggregate_regions",
    "RegionCodeHarmonizer",
    "ValidityFilter",
    "GDPUnitConverter",
    "BasisRebasingAdapter",
    "ConversionPipeline",
    "ConversionResult",
]
