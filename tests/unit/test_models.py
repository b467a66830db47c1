"""
Unit tests for core data models.
"""

import pytest

from wdi_conversion.exceptions import ConfigurationError
from wdi_conversion.models import (
    AggregationRule, BasisDescriptor, CurrencyType, DatasetMetadata, IndicatorSpec,
    DEFAULT_AGGREGATION_RULES, DEFAULT_REGION_OVERRIDES, WDI_INDICATORS
)


class TestIndicatorSpec:
    """Test IndicatorSpec model."""

    def test_defaults(self):
        """Test an entry without conversion properties."""
        spec = IndicatorSpec("AG.SRF.TOTL.K2", "Surface area")

        assert spec.alias is None
        assert spec.scale_factor == 1.0
        assert not spec.aggregation_eligible
        assert not spec.requires_rebasing

    def test_empty_code(self):
        """Test that an empty code is rejected."""
        with pytest.raises(ValueError, match="cannot be empty"):
            IndicatorSpec("", "Nothing")

    def test_zero_scale_factor(self):
        """Test that a zero scale factor is rejected."""
        with pytest.raises(ValueError, match="Scale factor"):
            IndicatorSpec("SP.POP.TOTL", "Population", scale_factor=0)

    def test_frozen(self):
        """Test that entries cannot be modified."""
        spec = IndicatorSpec("SP.POP.TOTL", "Population")

        with pytest.raises(AttributeError):
            spec.scale_factor = 2.0


class TestIndicatorCatalogDefaults:
    """Test the default indicator list."""

    def test_codes(self):
        """Test the downloaded indicator set."""
        codes = [spec.code for spec in WDI_INDICATORS]

        assert codes == [
            "SP.POP.TOTL", "SP.POP.1564.TO", "SP.URB.TOTL.IN.ZS", "PA.NUS.PPPC.RF",
            "NY.GDP.MKTP.PP.KD", "NV.AGR.TOTL.KD", "AG.SRF.TOTL.K2",
        ]

    def test_aliases(self):
        """Test the short names."""
        aliases = {spec.alias: spec.code for spec in WDI_INDICATORS if spec.alias}

        assert aliases == {
            "pop": "SP.POP.TOTL",
            "lab": "SP.POP.1564.TO",
            "urb": "SP.URB.TOTL.IN.ZS",
            "gdp": "NY.GDP.MKTP.PP.KD",
        }

    def test_scaled_indicators_are_aggregated(self):
        """Test that the rescaled indicators are exactly the aggregated ones."""
        scaled = {s.code for s in WDI_INDICATORS if s.scale_factor == 1e-6}
        aggregated = {s.code for s in WDI_INDICATORS if s.aggregation_eligible}

        assert scaled == aggregated == {
            "SP.POP.TOTL", "SP.POP.1564.TO", "NY.GDP.MKTP.PP.KD", "NV.AGR.TOTL.KD"
        }

    def test_only_ppp_gdp_is_rebased(self):
        """Test the rebasing flag."""
        rebased = [s.code for s in WDI_INDICATORS if s.requires_rebasing]

        assert rebased == ["NY.GDP.MKTP.PP.KD"]


class TestAggregationRule:
    """Test AggregationRule model."""

    def test_default_rule(self):
        """Test the Kosovo/Serbia default."""
        assert DEFAULT_AGGREGATION_RULES == (AggregationRule("RS", ("XK",)),)

    def test_default_rules_read_only(self):
        with pytest.raises(AttributeError):
            DEFAULT_AGGREGATION_RULES.append(AggregationRule("DE", ("XK",)))

    def test_list_children_converted(self):
        """Test that children given as a list become a tuple."""
        rule = AggregationRule("RS", ["XK"])

        assert rule.children == ("XK",)
        assert rule.contributors == ("RS", "XK")

    def test_single_code_child(self):
        """Test that a bare code is one child, not a sequence of letters."""
        rule = AggregationRule("RS", "XK")

        assert rule.children == ("XK",)

    def test_no_children(self):
        """Test that a rule needs children."""
        with pytest.raises(ValueError, match="no children"):
            AggregationRule("RS", ())

    def test_self_reference(self):
        """Test that a region cannot be merged into itself."""
        with pytest.raises(ValueError, match="into itself"):
            AggregationRule("RS", ("RS",))


class TestBasisDescriptor:
    """Test monetary unit parsing."""

    def test_parse_constant(self):
        """Test constant price units."""
        basis = BasisDescriptor.parse("constant 2017 Int$PPP")

        assert basis.currency == CurrencyType.INT_PPP
        assert basis.base_year == 2017
        assert basis.is_constant
        assert str(basis) == "constant 2017 Int$PPP"

    def test_parse_current(self):
        """Test current price units."""
        basis = BasisDescriptor.parse("current LCU")

        assert basis.currency == CurrencyType.LCU
        assert basis.base_year is None
        assert not basis.is_constant
        assert str(basis) == "current LCU"

    def test_parse_mer(self):
        """Test market exchange rate units."""
        basis = BasisDescriptor.parse("constant 2015 US$MER")

        assert basis.currency == CurrencyType.USD_MER

    @pytest.mark.parametrize("unit", [
        "2017 Int$PPP",
        "constant Int$PPP",
        "constant 2017 EUR",
        "constant 17 Int$PPP",
        "",
    ])
    def test_parse_invalid(self, unit):
        """Test that malformed units raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Unrecognized monetary unit"):
            BasisDescriptor.parse(unit)

    def test_equality(self):
        """Test that parsed descriptors compare by value."""
        assert BasisDescriptor.parse("constant 2021 Int$PPP") == BasisDescriptor.parse(
            " constant 2021 Int$PPP "
        )


class TestDatasetMetadata:
    """Test provenance metadata."""

    def test_defaults(self):
        """Test the default WDI provenance."""
        metadata = DatasetMetadata()

        assert metadata.title == "Select indicators from the WDI"
        assert metadata.author == "World Bank"
        assert metadata.unit == "-"
        assert "world-development-indicators" in metadata.comment

    def test_free_text_passthrough(self):
        """Test that fields are kept verbatim."""
        metadata = DatasetMetadata(release_date="2025-04-11", doi="10.0000/example")

        assert metadata.release_date == "2025-04-11"
        assert metadata.doi == "10.0000/example"


def test_default_region_overrides():
    """Test that the Channel Islands code maps to Jersey."""
    assert DEFAULT_REGION_OVERRIDES == {"JG": "JEY"}


def test_default_region_overrides_read_only():
    with pytest.raises(TypeError):
        DEFAULT_REGION_OVERRIDES["XK"] = "SRB"

    assert "XK" not in DEFAULT_REGION_OVERRIDES
