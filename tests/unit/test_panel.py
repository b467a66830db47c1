"""
Unit tests for the indicator panel container.
"""

import numpy as np
import pandas as pd
import pytest

from wdi_conversion.exceptions import PanelIntegrityError, ProcessingError
from wdi_conversion.models import RegionScheme
from wdi_conversion.panel import IndicatorPanel


@pytest.fixture
def raw_frame():
    """Small raw WDI table."""
    return pd.DataFrame({
        "iso2c": ["RS", "RS", "NA", "XK", "1W"],
        "iso3c": ["SRB", "SRB", "NAM", None, "WLD"],
        "country": ["Serbia", "Serbia", "Namibia", "Kosovo", "World"],
        "year": [2020, 2019, 2020, 2020, 2020],
        "SP.POP.TOTL": [6_800_000, 6_900_000, 2_500_000, 100_000, 7.8e9],
        "SP.URB.TOTL.IN.ZS": [56.4, None, 52.0, None, 56.2],
    })


class TestIndicatorPanelConstruction:
    """Test panel construction and integrity checks."""

    def test_from_raw(self, raw_frame):
        panel = IndicatorPanel.from_raw(raw_frame, "SP.POP.TOTL")

        assert panel.indicator == "SP.POP.TOTL"
        assert panel.scheme == RegionScheme.ISO2C
        assert len(panel) == 5
        assert panel.get("RS", 2020) == 6_800_000
        assert panel.get("NA", 2020) == 2_500_000
        assert panel.data.dtype == np.float64

    def test_from_raw_sorted(self, raw_frame):
        panel = IndicatorPanel.from_raw(raw_frame, "SP.POP.TOTL")

        assert panel.data.index.is_monotonic_increasing

    def test_from_raw_keeps_absent_values(self, raw_frame):
        panel = IndicatorPanel.from_raw(raw_frame, "SP.URB.TOTL.IN.ZS")

        assert len(panel) == 5
        assert panel.get("XK", 2020) is None
        assert panel.data.isna().sum() == 2

    def test_from_raw_missing_column(self, raw_frame):
        with pytest.raises(PanelIntegrityError, match="missing columns"):
            IndicatorPanel.from_raw(raw_frame, "NY.GDP.MKTP.PP.KD")

    def test_from_raw_non_numeric(self, raw_frame):
        raw_frame["SP.POP.TOTL"] = raw_frame["SP.POP.TOTL"].astype(object)
        raw_frame.loc[0, "SP.POP.TOTL"] = "many"

        with pytest.raises(PanelIntegrityError, match="Non-numeric"):
            IndicatorPanel.from_raw(raw_frame, "SP.POP.TOTL")

    def test_duplicate_keys(self):
        """Test that two values for one region/year are rejected."""
        with pytest.raises(PanelIntegrityError, match=r"\(RS, 2020\)"):
            IndicatorPanel.from_records(
                [("RS", 2020, 1.0), ("RS", 2020, 2.0)], "SP.POP.TOTL"
            )

    def test_duplicate_error_is_processing_error(self):
        with pytest.raises(ProcessingError):
            IndicatorPanel.from_records(
                [("RS", 2020, 1.0), ("RS", 2020, 2.0)], "SP.POP.TOTL"
            )

    def test_blank_labels_may_repeat(self):
        """Test that unresolved labels can share a year."""
        panel = IndicatorPanel.from_records(
            [(None, 2020, 1.0), (None, 2020, 2.0), ("SRB", 2020, 3.0)],
            "SP.POP.TOTL",
            RegionScheme.ISO3C
        )

        assert panel.blank_region_mask().tolist() == [True, True, False]

    def test_index_names_required(self):
        series = pd.Series(
            [1.0],
            index=pd.MultiIndex.from_tuples([("RS", 2020)], names=["country", "time"])
        )

        with pytest.raises(PanelIntegrityError, match="MultiIndex"):
            IndicatorPanel(series)


class TestIndicatorPanelAccess:
    """Test panel accessors."""

    @pytest.fixture
    def panel(self):
        return IndicatorPanel.from_records(
            [("RS", 2019, 6.9), ("RS", 2020, 6.8), ("XK", 2020, None)],
            "SP.POP.TOTL"
        )

    def test_regions_and_years(self, panel):
        assert panel.regions == ["RS", "XK"]
        assert panel.years == [2019, 2020]

    def test_get_missing_row(self, panel):
        assert panel.get("DE", 2020) is None

    def test_get_absent_value(self, panel):
        assert panel.get("XK", 2020) is None

    def test_with_data_keeps_name(self, panel):
        doubled = panel.with_data(panel.data * 2)

        assert doubled.indicator == "SP.POP.TOTL"
        assert doubled.get("RS", 2020) == pytest.approx(13.6)
        assert panel.get("RS", 2020) == pytest.approx(6.8)

    def test_with_data_changes_scheme(self, panel):
        relabelled = panel.with_data(panel.data, scheme="iso3c")

        assert relabelled.scheme == RegionScheme.ISO3C

    def test_data_is_copied(self, panel):
        """Test that a panel does not share its series with the caller."""
        series = panel.data.copy()
        other = IndicatorPanel(series)
        series.iloc[0] = 0.0

        assert other.get("RS", 2019) == pytest.approx(6.9)

    def test_to_frame(self, panel):
        frame = panel.to_frame()

        assert list(frame.columns) == ["region", "year", "value"]
        assert len(frame) == 3

    def test_equals(self, panel):
        same = IndicatorPanel.from_records(
            [("RS", 2019, 6.9), ("RS", 2020, 6.8), ("XK", 2020, None)],
            "SP.POP.TOTL"
        )

        assert panel.equals(same)
        assert not panel.equals(same.with_data(same.data, scheme="iso3c"))

    def test_repr(self, panel):
        assert "SP.POP.TOTL" in repr(panel)
