"""
Monetary unit conversion.

This module rebases GDP-like series between price-basis years and currency
conventions (local currency units, US$ at market exchange rates and
international $ at purchasing power parity). A conversion goes through local
currency: the value is expressed in LCU at the input price level, re-levelled
with the region's GDP deflator, then expressed in the output currency at the
output price level.
"""

from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .base import (
    ConfigurationError, DataProcessor, ProcessingError, ProcessingResult, ProcessingStatus,
    RebasingError
)
from ..models import (
    BasisDescriptor, CurrencyType, DEFAULT_REBASE_SOURCE, DEFAULT_REBASE_UNIT_IN,
    DEFAULT_REBASE_UNIT_OUT, IndicatorSpec, RegionScheme
)
from ..panel import IndicatorPanel
from ..utils.logging import get_logger

logger = get_logger(__name__)

FACTOR_COLUMNS = ("deflator", "mer", "ppp")

# Factor column holding LCU per unit of each currency
_CURRENCY_FACTORS = {
    CurrencyType.USD_MER: "mer",
    CurrencyType.INT_PPP: "ppp",
}

MissingFactor = Tuple[str, int, str]


class GDPUnitConverter:
    """
    Converts panels between monetary units using registered factor tables.

    A factor table has one row per (iso3c, year) with the columns:
        deflator: GDP deflator, any base year
        mer: market exchange rate, LCU per US$
        ppp: PPP conversion factor, LCU per international $
    """

    def __init__(self, tables: Optional[Dict[str, pd.DataFrame]] = None):
        self._tables: Dict[str, pd.DataFrame] = {}
        for source, table in (tables or {}).items():
            self.register(source, table)

    def register(self, source: str, table: pd.DataFrame) -> None:
        """
        Register a factor table under a source name.

        Raises:
            ConfigurationError: if columns are missing or keys are duplicated
        """
        required = ("iso3c", "year") + FACTOR_COLUMNS
        missing = [c for c in required if c not in table.columns]
        if missing:
            raise ConfigurationError(f"Factor table '{source}' is missing columns: {missing}")

        indexed = table.assign(year=table["year"].astype(int)).set_index(["iso3c", "year"])
        if indexed.index.duplicated().any():
            raise ConfigurationError(f"Factor table '{source}' has duplicate region/year rows")

        self._tables[source] = indexed[list(FACTOR_COLUMNS)].astype("float64").sort_index()
        logger.debug(f"Registered factor table '{source}' with {len(indexed)} rows")

    @property
    def sources(self) -> List[str]:
        return sorted(self._tables)

    def convert(
        self,
        panel: IndicatorPanel,
        unit_in: Union[str, BasisDescriptor],
        unit_out: Union[str, BasisDescriptor],
        source: str = DEFAULT_REBASE_SOURCE
    ) -> IndicatorPanel:
        """
        Convert a canonical-scheme panel from one monetary unit to another.

        Absent values stay absent and need no factors.

        Args:
            panel: Panel labelled with ISO alpha-3 codes
            unit_in: Unit of the input, e.g. "constant 2021 Int$PPP"
            unit_out: Unit of the output, e.g. "constant 2017 Int$PPP"
            source: Name of a registered factor table

        Returns:
            New panel in the output unit

        Raises:
            ConfigurationError: unknown source or malformed unit string
            RebasingError: if a factor is missing for a present value
        """
        basis_in = unit_in if isinstance(unit_in, BasisDescriptor) else BasisDescriptor.parse(unit_in)
        basis_out = unit_out if isinstance(unit_out, BasisDescriptor) else BasisDescriptor.parse(unit_out)

        if source not in self._tables:
            raise ConfigurationError(
                f"Unknown conversion factor source '{source}'",
                valid_options=self.sources
            )

        if basis_in == basis_out or panel.data.empty:
            return panel.with_data(panel.data)

        table = self._tables[source]
        values = panel.data.to_numpy()
        regions = np.asarray(panel.region_labels, dtype=object)
        years = np.asarray(panel.data.index.get_level_values("year"), dtype=int)
        present = ~np.isnan(values)

        multiplier = np.ones(len(values))
        missing: List[MissingFactor] = []

        def factor(name: str, basis: BasisDescriptor) -> np.ndarray:
            level = np.full(len(years), basis.base_year) if basis.is_constant else years
            looked_up = table[name].reindex(pd.MultiIndex.from_arrays([regions, level])).to_numpy()
            unusable = present & ~(np.isfinite(looked_up) & (looked_up > 0))
            for i in np.flatnonzero(unusable):
                missing.append((regions[i], int(years[i]), f"{name} {int(level[i])}"))
            return looked_up

        # Rows of absent values may have unusable factors
        with np.errstate(divide="ignore", invalid="ignore"):
            # To LCU at the input price level
            if basis_in.currency != CurrencyType.LCU:
                multiplier = multiplier * factor(_CURRENCY_FACTORS[basis_in.currency], basis_in)

            # Re-level prices
            if basis_in.base_year != basis_out.base_year:
                multiplier = multiplier * factor("deflator", basis_out) / factor("deflator", basis_in)

            # From LCU at the output price level
            if basis_out.currency != CurrencyType.LCU:
                multiplier = multiplier / factor(_CURRENCY_FACTORS[basis_out.currency], basis_out)

        if missing:
            missing = sorted(set(missing), key=lambda m: (str(m[0]), m[1], m[2]))
            shown = ", ".join(f"{r} {y} ({f})" for r, y, f in missing[:20])
            more = f" and {len(missing) - 20} more" if len(missing) > 20 else ""
            raise RebasingError(
                f"Missing conversion factors in '{source}' for {panel.indicator} "
                f"from {basis_in} to {basis_out}: {shown}{more}",
                missing=missing
            )

        converted = np.where(present, values * multiplier, np.nan)
        return panel.with_data(pd.Series(converted, index=panel.data.index))


class BasisRebasingAdapter(DataProcessor):
    """
    Rebases indicators flagged for rebasing (PPP GDP) through a unit converter.

    Runs after region harmonization, since factor tables are keyed by ISO
    alpha-3 codes.
    """

    def __init__(
        self,
        converter: GDPUnitConverter,
        unit_in: str = DEFAULT_REBASE_UNIT_IN,
        unit_out: str = DEFAULT_REBASE_UNIT_OUT,
        source: str = DEFAULT_REBASE_SOURCE,
        name: Optional[str] = None
    ):
        """
        Initialize rebasing adapter.

        Args:
            converter: Unit conversion service
            unit_in: Unit of the raw series
            unit_out: Target unit
            source: Factor table name passed to the converter
            name: Processor name
        """
        super().__init__(name or "BasisRebasingAdapter")
        self.converter = converter
        self.unit_in = BasisDescriptor.parse(unit_in)
        self.unit_out = BasisDescriptor.parse(unit_out)
        self.source = source

    def process(
        self,
        panel: IndicatorPanel,
        indicator: Optional[IndicatorSpec] = None
    ) -> ProcessingResult:
        parameters = {
            "unit_in": str(self.unit_in),
            "unit_out": str(self.unit_out),
            "source": self.source
        }

        if indicator is None or not indicator.requires_rebasing:
            return self._result(panel.with_data(panel.data), ProcessingStatus.SKIPPED, parameters)

        if panel.scheme != RegionScheme.ISO3C:
            raise ProcessingError(
                f"Rebasing {panel.indicator} requires iso3c region codes, "
                f"got {panel.scheme.value}",
                self.name
            )

        self.logger.info(
            f"Rebasing {panel.indicator} from {self.unit_in} to {self.unit_out} ({self.source})"
        )
        rebased = self.converter.convert(panel, self.unit_in, self.unit_out, self.source)

        return self._result(rebased, parameters=parameters)
