"""
Indicator panel container.

An IndicatorPanel is one indicator's observations indexed by region and year.
It wraps a float pandas Series with a ("region", "year") MultiIndex; NaN marks
an observation that was not reported, which is distinct from zero. Panels are
never modified in place: every transformation returns a new panel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .exceptions import PanelIntegrityError
from .models import RegionScheme
from .regions import is_blank_code

INDEX_NAMES = ["region", "year"]


@dataclass(frozen=True, eq=False)
class IndicatorPanel:
    """
    Sparse (region, year) -> value table for a single indicator.

    Attributes:
        data: Float series named by the indicator code
        scheme: Coding scheme of the region labels
    """
    data: pd.Series
    scheme: RegionScheme = RegionScheme.ISO2C

    def __post_init__(self):
        data = self.data
        if not isinstance(data.index, pd.MultiIndex) or list(data.index.names) != INDEX_NAMES:
            raise PanelIntegrityError(
                f"Panel index must be a MultiIndex named {INDEX_NAMES}, got {list(data.index.names)}"
            )

        try:
            data = data.astype("float64")
        except (TypeError, ValueError) as e:
            raise PanelIntegrityError(
                f"Non-numeric values in panel for indicator {data.name}: {e}"
            ) from e

        # Blank labels are allowed to repeat until the validity filter removes them
        labelled = data[~_blank_mask(data.index)]
        duplicated = labelled.index[labelled.index.duplicated()]
        if len(duplicated) > 0:
            pairs = ", ".join(f"({r}, {y})" for r, y in duplicated.unique()[:10])
            raise PanelIntegrityError(
                f"Duplicate observations for indicator {data.name}: {pairs}"
            )

        object.__setattr__(self, "data", data.copy())
        object.__setattr__(self, "scheme", RegionScheme(self.scheme))

    @classmethod
    def from_raw(
        cls,
        frame: pd.DataFrame,
        indicator: str,
        region_column: str = "iso2c",
        year_column: str = "year",
        scheme: RegionScheme = RegionScheme.ISO2C
    ) -> IndicatorPanel:
        """
        Slice one indicator out of a raw WDI table.

        Args:
            frame: Raw table with region, year and one column per indicator
            indicator: Indicator column to extract
            region_column: Column holding region codes
            year_column: Column holding years
            scheme: Coding scheme of the region column

        Returns:
            IndicatorPanel sorted by region and year
        """
        missing = [c for c in (region_column, year_column, indicator) if c not in frame.columns]
        if missing:
            raise PanelIntegrityError(f"Raw table is missing columns: {missing}")

        years = frame[year_column]
        if years.isna().any():
            raise PanelIntegrityError(f"Raw table has rows without a year for {indicator}")

        try:
            values = pd.to_numeric(frame[indicator], errors="raise")
        except (TypeError, ValueError) as e:
            raise PanelIntegrityError(f"Non-numeric values in column {indicator}: {e}") from e

        index = pd.MultiIndex.from_arrays(
            [frame[region_column].to_numpy(dtype=object), years.astype(int).to_numpy()],
            names=INDEX_NAMES
        )
        series = pd.Series(values.to_numpy(dtype="float64"), index=index, name=indicator)

        return cls(series.sort_index(), scheme)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Tuple[Optional[str], int, Optional[float]]],
        indicator: str,
        scheme: RegionScheme = RegionScheme.ISO2C
    ) -> IndicatorPanel:
        """Build a panel from (region, year, value) tuples; None values are absent."""
        records = list(records)
        index = pd.MultiIndex.from_tuples(
            [(region, int(year)) for region, year, _ in records],
            names=INDEX_NAMES
        )
        values = [np.nan if value is None else value for _, _, value in records]
        return cls(pd.Series(values, index=index, name=indicator, dtype="float64"), scheme)

    @property
    def indicator(self) -> str:
        return self.data.name

    @property
    def regions(self) -> List[Any]:
        """Distinct region labels in index order."""
        return list(pd.unique(self.data.index.get_level_values("region")))

    @property
    def years(self) -> List[int]:
        return sorted(set(int(y) for y in self.data.index.get_level_values("year")))

    @property
    def region_labels(self) -> pd.Index:
        """Region label of every row."""
        return self.data.index.get_level_values("region")

    def get(self, region: str, year: int) -> Optional[float]:
        """Value at (region, year); None if the row is missing or the value absent."""
        try:
            value = self.data.loc[(region, year)]
        except KeyError:
            return None
        if isinstance(value, pd.Series):
            value = value.iloc[0]
        return None if pd.isna(value) else float(value)

    def with_data(
        self,
        data: pd.Series,
        scheme: Optional[Union[RegionScheme, str]] = None
    ) -> IndicatorPanel:
        """New panel with replaced data, keeping the indicator name."""
        data = data.rename(self.indicator)
        return IndicatorPanel(data, RegionScheme(scheme) if scheme else self.scheme)

    def blank_region_mask(self) -> np.ndarray:
        """Boolean mask of rows whose region label is missing or empty."""
        return _blank_mask(self.data.index)

    def to_frame(self) -> pd.DataFrame:
        """Tidy frame with region, year and value columns."""
        return self.data.rename("value").reset_index()

    def equals(self, other: IndicatorPanel) -> bool:
        """Exact equality of labels, values and scheme."""
        return (
            self.scheme == other.scheme
            and self.indicator == other.indicator
            and self.data.index.equals(other.data.index)
            and self.data.equals(other.data)
        )

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return (
            f"IndicatorPanel(indicator='{self.indicator}', scheme='{self.scheme.value}', "
            f"regions={len(self.regions)}, rows={len(self)})"
        )


def _blank_mask(index: pd.MultiIndex) -> np.ndarray:
    regions = index.get_level_values("region")
    return np.array([is_blank_code(r) for r in regions], dtype=bool)
