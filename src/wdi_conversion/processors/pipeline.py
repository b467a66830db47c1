"""
Conversion pipeline orchestrator.

This module runs the whole conversion of one WDI indicator, from a stored raw
snapshot to a harmonized, rescaled panel:

    alias -> catalog check -> slice -> scale -> aggregate -> harmonize
          -> filter -> rebase (flagged indicators only)

Aggregation runs on provider codes, before harmonization, because the
dependent territories it merges have no canonical code of their own.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .aggregation import RegionAggregator
from .base import (
    ConfigurationError, DataProcessor, ProcessingError, ProcessingResult, ProcessingStatus
)
from .catalog import IndicatorCatalog, available_indicators
from .currency import BasisRebasingAdapter, GDPUnitConverter
from .harmonizer import RegionCodeHarmonizer, ValidityFilter
from .scaling import ScaleNormalizer
from ..config import WDIConversionConfig
from ..data_sources.base import SnapshotStore
from ..data_sources.snapshot import deserialize_frame
from ..exceptions import SnapshotError
from ..models import (
    AggregationRule, DatasetMetadata, DEFAULT_REBASE_SOURCE, DEFAULT_REBASE_UNIT_IN,
    DEFAULT_REBASE_UNIT_OUT, IndicatorSpec
)
from ..panel import IndicatorPanel
from ..regions import RegionCrossReference
from ..utils.logging import get_logger
from ..utils.validation import validate_raw_table

logger = get_logger(__name__)

DEFAULT_SNAPSHOT_KEY = "WDI_11_04_2025"


@dataclass
class ConversionResult:
    """
    Output of a single indicator conversion.

    Attributes:
        panel: Converted panel, labelled with ISO alpha-3 codes
        indicator: Catalog entry of the converted indicator
        metadata: Provenance of the raw data, passed through unchanged
        diagnostics: Steps applied, dropped regions and snapshot key
    """
    panel: IndicatorPanel
    indicator: IndicatorSpec
    metadata: DatasetMetadata = field(default_factory=DatasetMetadata)
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def steps(self) -> List[str]:
        return list(self.diagnostics.get("steps", []))

    @property
    def dropped_regions(self) -> List[str]:
        return list(self.diagnostics.get("dropped_regions", []))


class ConversionPipeline:
    """
    Converts WDI indicators from a raw snapshot into model-ready panels.

    The pipeline holds read-only configuration only; conversions of
    different indicators do not share any state beyond processor history.
    """

    def __init__(
        self,
        snapshot_store: Optional[SnapshotStore] = None,
        converter: Optional[GDPUnitConverter] = None,
        catalog: Optional[IndicatorCatalog] = None,
        cross_reference: Optional[RegionCrossReference] = None,
        region_overrides: Optional[Mapping[str, str]] = None,
        aggregation_rules: Optional[Sequence[AggregationRule]] = None,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY,
        rebase_unit_in: str = DEFAULT_REBASE_UNIT_IN,
        rebase_unit_out: str = DEFAULT_REBASE_UNIT_OUT,
        rebase_source: str = DEFAULT_REBASE_SOURCE,
        metadata: Optional[DatasetMetadata] = None,
        validate: bool = True
    ):
        """
        Initialize conversion pipeline.

        Args:
            snapshot_store: Store holding raw snapshots (needed unless frames are passed in)
            converter: Unit converter for indicators that require rebasing
            catalog: Indicator catalog
            cross_reference: Region lookup service
            region_overrides: Provider code to canonical code overrides
            aggregation_rules: Dependent-territory merge rules
            snapshot_key: Key of the raw snapshot to convert
            rebase_unit_in: Unit of the raw series to rebase
            rebase_unit_out: Target unit of rebased series
            rebase_source: Factor table used for rebasing
            metadata: Provenance attached to every result
            validate: Whether steps validate their input and output
        """
        self.snapshot_store = snapshot_store
        self.catalog = catalog or IndicatorCatalog()
        self.snapshot_key = snapshot_key
        self.metadata = metadata or DatasetMetadata()
        self.validate = validate

        self.scaler = ScaleNormalizer()
        self.aggregator = RegionAggregator(aggregation_rules)
        self.harmonizer = RegionCodeHarmonizer(cross_reference, region_overrides)
        self.filter = ValidityFilter()
        self.rebaser: Optional[BasisRebasingAdapter] = None
        if converter is not None:
            self.rebaser = BasisRebasingAdapter(
                converter, rebase_unit_in, rebase_unit_out, rebase_source
            )

    @classmethod
    def from_config(
        cls,
        config: WDIConversionConfig,
        snapshot_store: Optional[SnapshotStore] = None,
        converter: Optional[GDPUnitConverter] = None,
        metadata: Optional[DatasetMetadata] = None
    ) -> "ConversionPipeline":
        """Create a pipeline from configuration."""
        conversion = config.conversion
        return cls(
            snapshot_store=snapshot_store,
            converter=converter,
            region_overrides=conversion.region_overrides,
            aggregation_rules=conversion.rules,
            snapshot_key=config.snapshot.active_key,
            rebase_unit_in=conversion.rebase_unit_in,
            rebase_unit_out=conversion.rebase_unit_out,
            rebase_source=conversion.rebase_source,
            metadata=metadata,
            validate=conversion.validate_steps
        )

    def load_raw(self, key: Optional[str] = None) -> pd.DataFrame:
        """
        Load the raw WDI table stored under a snapshot key.

        Raises:
            SnapshotError: if no store is configured or the key is unknown
        """
        key = key or self.snapshot_key
        if self.snapshot_store is None:
            raise SnapshotError("No snapshot store configured", query_id=key)

        payload = self.snapshot_store.load(key)
        if payload is None:
            raise SnapshotError(f"No snapshot stored under key '{key}'", query_id=key)

        frame = deserialize_frame(payload)
        logger.debug(f"Loaded snapshot '{key}' with {len(frame)} rows")
        return frame

    def convert(self, tag: str, raw: Optional[pd.DataFrame] = None) -> ConversionResult:
        """
        Convert one indicator.

        Args:
            tag: Indicator code or alias ("gdp", "pop", "lab", "urb")
            raw: Raw WDI table; loaded from the snapshot store when omitted

        Returns:
            ConversionResult

        Raises:
            ConfigurationError: unknown indicator or invalid configuration
            RebasingError: missing conversion factors
            ProcessingError: any other step failure
            SnapshotError: raw snapshot unavailable
        """
        if raw is None:
            return self._convert(tag, self.load_raw(), self.snapshot_key)

        return self._convert(tag, raw, None)

    def convert_many(
        self,
        tags: Iterable[str],
        raw: Optional[pd.DataFrame] = None
    ) -> Dict[str, ConversionResult]:
        """Convert several indicators from a single snapshot load."""
        if raw is None:
            raw, key = self.load_raw(), self.snapshot_key
        else:
            key = None

        return {tag: self._convert(tag, raw, key) for tag in tags}

    def _convert(self, tag: str, raw: pd.DataFrame, snapshot_key: Optional[str]) -> ConversionResult:
        code = self.catalog.resolve_alias(tag)
        self.catalog.require(code, available_indicators(raw))
        indicator = self.catalog.get(code)

        logger.info(f"Converting {code} (requested as '{tag}')")

        raw_check = validate_raw_table(raw)
        for message in raw_check.errors + raw_check.warnings:
            logger.warning(f"Raw table: {message}")

        panel = IndicatorPanel.from_raw(raw, code)

        steps: List[str] = []
        diagnostics: Dict[str, Any] = {"snapshot_key": snapshot_key}

        for processor in self._steps(indicator):
            result = self._run(processor, panel, indicator)
            panel = result.data
            if result.status == ProcessingStatus.COMPLETED:
                steps.append(processor.name)
            diagnostics.update(result.diagnostics)

        dropped = diagnostics.pop("unresolved_regions", [])
        diagnostics["dropped_regions"] = dropped
        diagnostics["steps"] = steps
        if dropped:
            logger.info(f"dropped-region-count={len(dropped)} for {code}")

        return ConversionResult(
            panel=panel,
            indicator=indicator,
            metadata=self.metadata.model_copy(),
            diagnostics=diagnostics
        )

    def _steps(self, indicator: IndicatorSpec) -> List[DataProcessor]:
        steps: List[DataProcessor] = [self.scaler, self.aggregator, self.harmonizer, self.filter]

        if indicator.requires_rebasing:
            if self.rebaser is None:
                raise ConfigurationError(
                    f"{indicator.code} requires rebasing but no unit converter is configured"
                )
            steps.append(self.rebaser)

        return steps

    def _run(
        self,
        processor: DataProcessor,
        panel: IndicatorPanel,
        indicator: IndicatorSpec
    ) -> ProcessingResult:
        result = processor.process_with_validation(
            panel,
            indicator,
            validate_input=self.validate,
            validate_output=self.validate
        )

        if result.status == ProcessingStatus.FAILED:
            errors = result.validation.errors if result.validation else []
            raise ProcessingError(
                f"{processor.name} produced an invalid panel for {indicator.code}: {errors}",
                processor.name,
                result.metadata.operation_id
            )

        return result
