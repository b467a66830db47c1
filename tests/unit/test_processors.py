"""
Unit tests for panel processors.
"""

import math
from unittest.mock import Mock

import numpy as np
import pandas as pd
import pytest

from wdi_conversion.exceptions import ConfigurationError, ProcessingError, RebasingError
from wdi_conversion.models import AggregationRule, IndicatorSpec, RegionScheme, WDI_INDICATORS
from wdi_conversion.panel import IndicatorPanel
from wdi_conversion.processors import (
    BasisRebasingAdapter, GDPUnitConverter, IndicatorCatalog, RegionAggregator,
    RegionCodeHarmonizer, ScaleNormalizer, ValidityFilter, aggregate_regions, scale_panel
)
from wdi_conversion.processors.base import ProcessingStatus
from wdi_conversion.processors.catalog import available_indicators

POP = next(s for s in WDI_INDICATORS if s.code == "SP.POP.TOTL")
URB = next(s for s in WDI_INDICATORS if s.code == "SP.URB.TOTL.IN.ZS")
GDP = next(s for s in WDI_INDICATORS if s.code == "NY.GDP.MKTP.PP.KD")


def make_panel(records, indicator="SP.POP.TOTL", scheme=RegionScheme.ISO2C):
    return IndicatorPanel.from_records(records, indicator, scheme)


@pytest.fixture
def population():
    """Provider-coded population panel with Kosovo reported separately."""
    return make_panel([
        ("RS", 2019, 6_900_000),
        ("RS", 2020, 6_800_000),
        ("XK", 2020, 100_000),
        ("DE", 2020, 83_000_000),
        ("1W", 2020, None),
    ])


class TestIndicatorCatalog:
    """Test alias resolution and catalog membership."""

    @pytest.fixture
    def catalog(self):
        return IndicatorCatalog()

    @pytest.mark.parametrize("alias,code", [
        ("gdp", "NY.GDP.MKTP.PP.KD"),
        ("pop", "SP.POP.TOTL"),
        ("lab", "SP.POP.1564.TO"),
        ("urb", "SP.URB.TOTL.IN.ZS"),
    ])
    def test_resolve_alias(self, catalog, alias, code):
        assert catalog.resolve_alias(alias) == code

    def test_resolve_unknown_tag_passes_through(self, catalog):
        assert catalog.resolve_alias("NV.AGR.TOTL.KD") == "NV.AGR.TOTL.KD"
        assert catalog.resolve_alias("xyz") == "xyz"

    def test_require_known(self, catalog):
        assert catalog.require("SP.POP.TOTL", ["SP.POP.TOTL", "AG.SRF.TOTL.K2"]) == "SP.POP.TOTL"

    def test_require_unknown_lists_all_codes(self, catalog):
        """Test the exact message for an unknown indicator."""
        available = [s.code for s in WDI_INDICATORS]

        with pytest.raises(ConfigurationError) as exc_info:
            catalog.require("xyz", available)

        expected = "Bad subtype. Possible subtypes are: \n" + "\n".join(sorted(available)) + "."
        assert str(exc_info.value) == expected
        assert exc_info.value.valid_options == sorted(available)

    def test_get_unknown_code_is_neutral(self, catalog):
        spec = catalog.get("EN.ATM.CO2E.KT")

        assert spec.scale_factor == 1.0
        assert not spec.aggregation_eligible
        assert not spec.requires_rebasing

    def test_duplicate_alias(self):
        with pytest.raises(ValueError, match="Duplicate indicator alias"):
            IndicatorCatalog([IndicatorSpec("A", "a", alias="x"), IndicatorSpec("B", "b", alias="x")])

    def test_available_indicators(self):
        frame = pd.DataFrame(columns=["iso2c", "iso3c", "country", "year", "SP.POP.TOTL"])

        assert available_indicators(frame) == ["SP.POP.TOTL"]


class TestScaleNormalizer:
    """Test unit rescaling."""

    def test_scale_values(self, population):
        scaled = scale_panel(population, 1e-6)

        assert scaled.get("RS", 2020) == pytest.approx(6.8)
        assert scaled.get("XK", 2020) == pytest.approx(0.1)

    def test_absent_stays_absent(self, population):
        scaled = scale_panel(population, 1e-6)

        assert scaled.get("1W", 2020) is None
        assert len(scaled) == len(population)

    def test_identity(self, population):
        assert scale_panel(population, 1).equals(population)

    def test_linearity(self, population):
        twice = scale_panel(scale_panel(population, 1e-3), 1e-3)
        once = scale_panel(population, 1e-6)

        np.testing.assert_allclose(twice.data.to_numpy(), once.data.to_numpy(), rtol=1e-12)

    def test_input_unchanged(self, population):
        before = population.data.copy()
        scale_panel(population, 1e-6)

        pd.testing.assert_series_equal(population.data, before)

    @pytest.mark.parametrize("factor", [0, math.inf, math.nan])
    def test_invalid_factor(self, population, factor):
        with pytest.raises(ConfigurationError, match="Invalid scale factor"):
            scale_panel(population, factor)

    @pytest.mark.parametrize("factor", [np.float64(1e-6), np.int64(2)])
    def test_numpy_factor(self, population, factor):
        scaled = scale_panel(population, factor)

        assert scaled.get("RS", 2020) == pytest.approx(6_800_000 * float(factor))

    def test_processor_uses_catalog_factor(self, population):
        result = ScaleNormalizer().process(population, POP)

        assert result.status == ProcessingStatus.COMPLETED
        assert result.metadata.parameters["factor"] == 1e-6
        assert result.data.get("DE", 2020) == pytest.approx(83.0)

    def test_processor_skips_unit_factor(self, population):
        result = ScaleNormalizer().process(population, URB)

        assert result.status == ProcessingStatus.SKIPPED
        assert result.data.equals(population)


class TestRegionAggregator:
    """Test dependent-territory aggregation."""

    def test_parent_is_sum(self, population):
        aggregated = aggregate_regions(population, [AggregationRule("RS", ("XK",))])

        assert aggregated.get("RS", 2020) == 6_900_000
        assert aggregated.get("RS", 2019) == 6_900_000

    def test_children_are_kept(self, population):
        aggregated = aggregate_regions(population, [AggregationRule("RS", ("XK",))])

        assert aggregated.get("XK", 2020) == 100_000
        assert aggregated.get("DE", 2020) == 83_000_000
        assert len(aggregated) == len(population)

    def test_absent_if_all_absent(self):
        panel = make_panel([("RS", 2020, None), ("XK", 2020, None)])

        aggregated = aggregate_regions(panel, [AggregationRule("RS", ("XK",))])

        assert aggregated.get("RS", 2020) is None
        assert ("RS", 2020) in aggregated.data.index

    def test_one_absent_contributor(self):
        panel = make_panel([("RS", 2020, None), ("XK", 2020, 0.1)])

        aggregated = aggregate_regions(panel, [AggregationRule("RS", ("XK",))])

        assert aggregated.get("RS", 2020) == pytest.approx(0.1)

    def test_parent_row_created_for_child_only_year(self):
        panel = make_panel([("RS", 2019, 6.9), ("XK", 2020, 0.1)])

        aggregated = aggregate_regions(panel, [AggregationRule("RS", ("XK",))])

        assert aggregated.get("RS", 2020) == pytest.approx(0.1)
        assert aggregated.get("RS", 2019) == pytest.approx(6.9)

    def test_no_contributors(self):
        panel = make_panel([("DE", 2020, 83.0)])

        aggregated = aggregate_regions(panel, [AggregationRule("RS", ("XK",))])

        assert aggregated.equals(panel)

    def test_multiple_children(self):
        panel = make_panel([("CN", 2020, 10.0), ("HK", 2020, 1.0), ("MO", 2020, 0.5)])

        aggregated = aggregate_regions(panel, [AggregationRule("CN", ("HK", "MO"))])

        assert aggregated.get("CN", 2020) == pytest.approx(11.5)

    def test_ineligible_indicator_unchanged(self, population, caplog):
        """Test that ineligible indicators pass through with a warning."""
        with caplog.at_level("WARNING"):
            result = RegionAggregator().process(population, URB)

        assert result.status == ProcessingStatus.SKIPPED
        assert result.data.equals(population)
        assert result.diagnostics["unmerged"] == {"RS": ["XK"]}
        assert "XK not merged into RS" in caplog.text
        assert "data quality" in caplog.text

    def test_eligible_indicator_aggregated(self, population):
        result = RegionAggregator().process(population, POP)

        assert result.status == ProcessingStatus.COMPLETED
        assert result.data.get("RS", 2020) == 6_900_000

    def test_configured_rules(self):
        panel = make_panel([("CN", 2020, 10.0), ("HK", 2020, 1.0)])

        result = RegionAggregator([AggregationRule("CN", ("HK",))]).process(panel, POP)

        assert result.data.get("CN", 2020) == pytest.approx(11.0)


class TestRegionCodeHarmonizer:
    """Test region relabelling and filtering."""

    def test_relabel(self, population):
        result = RegionCodeHarmonizer().process(population)
        panel = result.data

        assert panel.scheme == RegionScheme.ISO3C
        assert panel.get("SRB", 2020) == 6_800_000
        assert panel.get("DEU", 2020) == 83_000_000

    def test_unknown_codes_do_not_raise(self, population):
        """Test that unresolved codes become blank labels."""
        result = RegionCodeHarmonizer().process(population)

        assert len(result.data) == len(population)
        assert int(result.data.blank_region_mask().sum()) == 2
        assert result.diagnostics["unresolved_regions"] == ["1W", "XK"]

    def test_override(self):
        panel = make_panel([("JG", 2020, 0.17)])

        result = RegionCodeHarmonizer().process(panel)

        assert result.data.get("JEY", 2020) == pytest.approx(0.17)

    def test_colliding_overrides(self):
        panel = make_panel([("RS", 2020, 6.8), ("XK", 2020, 0.1)])

        with pytest.raises(ConfigurationError, match="SRB"):
            RegionCodeHarmonizer(overrides={"XK": "SRB"}).process(panel)

    def test_custom_cross_reference(self):
        cross_reference = Mock()
        cross_reference.lookup_many.return_value = {"RS": "SRB"}
        panel = make_panel([("RS", 2020, 6.8)])

        result = RegionCodeHarmonizer(cross_reference=cross_reference).process(panel)

        cross_reference.lookup_many.assert_called_once()
        assert result.data.get("SRB", 2020) == pytest.approx(6.8)

    def test_filter_drops_blank_rows(self, population):
        relabelled = RegionCodeHarmonizer().process(population).data

        result = ValidityFilter().process(relabelled)

        assert len(result.data) == len(population) - 2
        assert sorted(result.data.regions) == ["DEU", "SRB"]
        assert result.diagnostics["dropped_rows"] == 2

    def test_filter_never_grows(self, population):
        relabelled = RegionCodeHarmonizer().process(population).data

        filtered = ValidityFilter().process(relabelled).data

        assert len(filtered) <= len(relabelled)
        assert not filtered.blank_region_mask().any()

    def test_filter_skips_clean_panel(self):
        panel = make_panel([("SRB", 2020, 6.8)], scheme=RegionScheme.ISO3C)

        result = ValidityFilter().process(panel)

        assert result.status == ProcessingStatus.SKIPPED
        assert result.data.equals(panel)


@pytest.fixture
def factor_table():
    """Conversion factors with the 2017 price level 10% below 2021."""
    return pd.DataFrame({
        "iso3c": ["SRB", "SRB", "SRB", "DEU", "DEU"],
        "year": [2017, 2020, 2021, 2017, 2021],
        "deflator": [90.0, 98.0, 100.0, 95.0, 100.0],
        "mer": [105.0, 104.0, 100.0, 0.88, 0.85],
        "ppp": [40.0, 43.0, 44.0, 0.75, 0.74],
    })


class TestGDPUnitConverter:
    """Test monetary unit conversion."""

    @pytest.fixture
    def converter(self, factor_table):
        return GDPUnitConverter({"wb_wdi": factor_table})

    def test_rebase_ppp(self, converter):
        panel = make_panel([("SRB", 2020, 100.0)], "NY.GDP.MKTP.PP.KD", RegionScheme.ISO3C)

        converted = converter.convert(
            panel, "constant 2021 Int$PPP", "constant 2017 Int$PPP", "wb_wdi"
        )

        expected = 100.0 * 44.0 * (90.0 / 100.0) / 40.0
        assert converted.get("SRB", 2020) == pytest.approx(expected)

    def test_identity(self, converter):
        panel = make_panel([("SRB", 2020, 100.0)], "NY.GDP.MKTP.PP.KD", RegionScheme.ISO3C)

        converted = converter.convert(panel, "constant 2017 Int$PPP", "constant 2017 Int$PPP")

        assert converted.equals(panel)

    def test_current_units_use_observation_year(self, converter):
        panel = make_panel([("SRB", 2020, 43.0)], "NY.GDP.MKTP.CN", RegionScheme.ISO3C)

        converted = converter.convert(panel, "current LCU", "current Int$PPP")

        assert converted.get("SRB", 2020) == pytest.approx(1.0)

    def test_mer_to_ppp_same_year(self, converter):
        panel = make_panel([("DEU", 2017, 1.0)], "NY.GDP.MKTP.KD", RegionScheme.ISO3C)

        converted = converter.convert(panel, "constant 2017 US$MER", "constant 2017 Int$PPP")

        assert converted.get("DEU", 2017) == pytest.approx(0.88 / 0.75)

    def test_absent_values_need_no_factors(self, converter):
        panel = make_panel(
            [("SRB", 2020, 100.0), ("FRA", 2020, None)], "NY.GDP.MKTP.PP.KD", RegionScheme.ISO3C
        )

        converted = converter.convert(panel, "constant 2021 Int$PPP", "constant 2017 Int$PPP")

        assert converted.get("FRA", 2020) is None
        assert ("FRA", 2020) in converted.data.index

    def test_missing_factor_names_region_and_year(self, converter):
        panel = make_panel(
            [("SRB", 2020, 100.0), ("FRA", 2020, 2500.0)], "NY.GDP.MKTP.PP.KD", RegionScheme.ISO3C
        )

        with pytest.raises(RebasingError, match="FRA 2020") as exc_info:
            converter.convert(panel, "constant 2021 Int$PPP", "constant 2017 Int$PPP")

        assert exc_info.value.regions == ["FRA"]
        assert ("FRA", 2020, "ppp 2021") in exc_info.value.missing

    def test_unknown_source(self, converter):
        panel = make_panel([("SRB", 2020, 100.0)], "NY.GDP.MKTP.PP.KD", RegionScheme.ISO3C)

        with pytest.raises(ConfigurationError, match="imf_weo"):
            converter.convert(panel, "constant 2021 Int$PPP", "constant 2017 Int$PPP", "imf_weo")

    def test_register_requires_columns(self, factor_table):
        with pytest.raises(ConfigurationError, match="ppp"):
            GDPUnitConverter({"bad": factor_table.drop(columns=["ppp"])})

    def test_register_rejects_duplicates(self, factor_table):
        with pytest.raises(ConfigurationError, match="duplicate"):
            GDPUnitConverter({"bad": pd.concat([factor_table, factor_table.head(1)])})


class TestBasisRebasingAdapter:
    """Test the rebasing step."""

    @pytest.fixture
    def gdp_panel(self):
        return make_panel([("SRB", 2020, 100.0)], "NY.GDP.MKTP.PP.KD", RegionScheme.ISO3C)

    def test_calls_converter_with_fixed_units(self, gdp_panel):
        converter = Mock(spec=GDPUnitConverter)
        converter.convert.return_value = gdp_panel

        result = BasisRebasingAdapter(converter).process(gdp_panel, GDP)

        args = converter.convert.call_args[0]
        assert str(args[1]) == "constant 2021 Int$PPP"
        assert str(args[2]) == "constant 2017 Int$PPP"
        assert args[3] == "wb_wdi"
        assert result.status == ProcessingStatus.COMPLETED

    def test_skips_other_indicators(self, gdp_panel):
        converter = Mock(spec=GDPUnitConverter)

        result = BasisRebasingAdapter(converter).process(gdp_panel, POP)

        converter.convert.assert_not_called()
        assert result.status == ProcessingStatus.SKIPPED

    def test_requires_canonical_codes(self):
        panel = make_panel([("RS", 2020, 100.0)], "NY.GDP.MKTP.PP.KD")

        with pytest.raises(ProcessingError, match="iso3c"):
            BasisRebasingAdapter(Mock(spec=GDPUnitConverter)).process(panel, GDP)

    def test_rebasing_error_propagates(self, gdp_panel, factor_table):
        converter = GDPUnitConverter({"wb_wdi": factor_table[factor_table["iso3c"] != "SRB"]})

        with pytest.raises(RebasingError, match="SRB 2020"):
            BasisRebasingAdapter(converter).process_with_validation(gdp_panel, GDP)

    def test_invalid_units(self):
        with pytest.raises(ConfigurationError):
            BasisRebasingAdapter(Mock(spec=GDPUnitConverter), unit_in="2021 dollars")


class TestProcessWithValidation:
    """Test the shared processing wrapper."""

    def test_records_history(self, population):
        scaler = ScaleNormalizer()

        result = scaler.process_with_validation(population, POP)

        history = scaler.get_processing_history()
        assert len(history) == 1
        assert history[0].rows_in == history[0].rows_out == len(population)
        assert result.metadata.execution_time is not None

    def test_unexpected_error_is_wrapped(self, population):
        scaler = ScaleNormalizer()
        scaler.process = Mock(side_effect=KeyError("boom"))

        with pytest.raises(ProcessingError, match="boom") as exc_info:
            scaler.process_with_validation(population, POP)

        assert exc_info.value.processor_name == "ScaleNormalizer"
        assert scaler.get_info()["failed_operations"] == 1

    def test_typed_error_keeps_type(self, population):
        with pytest.raises(ConfigurationError):
            ScaleNormalizer(factor=0).process_with_validation(population, POP)

    def test_infinite_output_fails_validation(self, population):
        result = ScaleNormalizer(factor=1e308).process_with_validation(population, POP)

        assert result.status == ProcessingStatus.FAILED
        assert result.has_validation_errors
