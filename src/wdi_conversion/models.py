"""
Core data models for the WDI conversion system.

This module defines the static configuration used throughout the conversion
pipeline: the indicator catalog, region coding schemes, aggregation rules
for disputed territories, monetary unit descriptors and provenance metadata.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConfigurationError


class RegionScheme(str, Enum):
    """Region coding schemes."""
    ISO2C = "iso2c"  # provider scheme (World Bank API ids)
    ISO3C = "iso3c"  # canonical scheme of the modeling framework


class CurrencyType(str, Enum):
    """Currency conventions understood by the unit converter."""
    LCU = "LCU"
    USD_MER = "US$MER"
    INT_PPP = "Int$PPP"


@dataclass(frozen=True)
class IndicatorSpec:
    """
    A WDI indicator with its conversion properties.

    Attributes:
        code: World Bank indicator code
        name: Descriptive name
        alias: Optional short name accepted in place of the code
        unit: Unit of the converted series
        scale_factor: Multiplier from raw to working units
        aggregation_eligible: Whether dependent territories may be summed into their parent
        requires_rebasing: Whether the series needs price-basis rebasing
    """
    code: str
    name: str
    alias: Optional[str] = None
    unit: str = "-"
    scale_factor: float = 1.0
    aggregation_eligible: bool = False
    requires_rebasing: bool = False

    def __post_init__(self):
        """Validate indicator code and scale factor."""
        if not self.code:
            raise ValueError("Indicator code cannot be empty")

        if self.scale_factor == 0:
            raise ValueError(f"Scale factor cannot be zero: {self.code}")


@dataclass(frozen=True)
class AggregationRule:
    """
    Merge the values of dependent regions into a parent region.

    Codes are in the provider scheme, since aggregation runs before
    region harmonization.
    """
    parent: str
    children: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.parent:
            raise ValueError("Aggregation parent cannot be empty")

        # A bare code is a single child, lists come from config files
        children = (self.children,) if isinstance(self.children, str) else tuple(self.children)
        object.__setattr__(self, "children", children)

        if not self.children:
            raise ValueError(f"Aggregation rule for {self.parent} has no children")

        if self.parent in self.children:
            raise ValueError(f"Region {self.parent} cannot be aggregated into itself")

    @property
    def contributors(self) -> Tuple[str, ...]:
        """Parent followed by children."""
        return (self.parent,) + self.children


_BASIS_PATTERN = re.compile(
    r"^(?:constant (?P<year>\d{4})|current) (?P<currency>LCU|US\$MER|Int\$PPP)$"
)


class BasisDescriptor(BaseModel):
    """
    Monetary unit of a GDP-like series.

    Examples: "constant 2017 Int$PPP", "constant 2015 US$MER", "current LCU".
    """
    model_config = ConfigDict(frozen=True)

    currency: CurrencyType
    base_year: Optional[int] = Field(default=None, ge=1900, le=2100)

    @classmethod
    def parse(cls, unit: str) -> BasisDescriptor:
        """Parse a unit string, raising ConfigurationError if malformed."""
        match = _BASIS_PATTERN.match(unit.strip())
        if not match:
            raise ConfigurationError(
                f"Unrecognized monetary unit: '{unit}'. Expected 'constant YYYY <currency>' "
                f"or 'current <currency>' with currency one of "
                f"{', '.join(c.value for c in CurrencyType)}."
            )

        year = match.group("year")
        return cls(
            currency=CurrencyType(match.group("currency")),
            base_year=int(year) if year else None
        )

    @property
    def is_constant(self) -> bool:
        return self.base_year is not None

    def __str__(self) -> str:
        if self.is_constant:
            return f"constant {self.base_year} {self.currency.value}"
        return f"current {self.currency.value}"


class DatasetMetadata(BaseModel):
    """
    Provenance fields returned alongside converted data.

    These are free text and are passed through unchanged.
    """
    title: str = "Select indicators from the WDI"
    description: str = (
        "Select indicators from the World Development Indicators database from the World Bank"
    )
    unit: str = "-"
    author: str = "World Bank"
    license: str = "-"
    url: str = "-"
    doi: str = "-"
    release_date: str = "-"
    comment: str = "see also https://databank.worldbank.org/source/world-development-indicators"


# Identifier columns of the raw WDI table; every other column is an indicator
RAW_ID_COLUMNS = ("iso2c", "iso3c", "country", "year")

# Indicators downloaded into each WDI snapshot
WDI_INDICATORS = (
    IndicatorSpec(
        "SP.POP.TOTL", "Population, total", alias="pop",
        unit="million people", scale_factor=1e-6, aggregation_eligible=True
    ),
    IndicatorSpec(
        "SP.POP.1564.TO", "Working age population (15-64 years old)", alias="lab",
        unit="million people", scale_factor=1e-6, aggregation_eligible=True
    ),
    IndicatorSpec(
        "SP.URB.TOTL.IN.ZS", "Urban population (% of total)", alias="urb",
        unit="percent"
    ),
    IndicatorSpec(
        "PA.NUS.PPPC.RF", "Price level ratio of PPP conversion factor (GDP) to market exchange rate",
        unit="ratio"
    ),
    IndicatorSpec(
        "NY.GDP.MKTP.PP.KD", "GDP, PPP (constant 2017 international $)", alias="gdp",
        unit="million constant 2017 Int$PPP", scale_factor=1e-6,
        aggregation_eligible=True, requires_rebasing=True
    ),
    IndicatorSpec(
        "NV.AGR.TOTL.KD", "Agriculture, forestry, and fishing, value added (constant 2015 US$)",
        unit="million constant 2015 US$MER", scale_factor=1e-6, aggregation_eligible=True
    ),
    IndicatorSpec(
        "AG.SRF.TOTL.K2", "Surface area (sq. km)",
        unit="square km"
    ),
)

# Kosovo is reported separately by the World Bank and merged into Serbia
DEFAULT_AGGREGATION_RULES: Tuple[AggregationRule, ...] = (
    AggregationRule("RS", ("XK",)),
)

# Provider codes the ISO table resolves incorrectly or not at all
DEFAULT_REGION_OVERRIDES: Mapping[str, str] = MappingProxyType({
    "JG": "JEY",
})

DEFAULT_REBASE_UNIT_IN = "constant 2021 Int$PPP"
DEFAULT_REBASE_UNIT_OUT = "constant 2017 Int$PPP"
DEFAULT_REBASE_SOURCE = "wb_wdi"
