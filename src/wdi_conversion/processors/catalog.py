"""
Indicator catalog and alias resolution.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .base import ConfigurationError
from ..models import IndicatorSpec, RAW_ID_COLUMNS, WDI_INDICATORS


class IndicatorCatalog:
    """
    Read-only registry of known indicators.

    Resolves short aliases ("gdp", "pop", "lab", "urb") to World Bank codes
    and checks that a requested code is available in a raw table.
    """

    def __init__(self, indicators: Optional[Iterable[IndicatorSpec]] = None):
        """
        Initialize the catalog.

        Args:
            indicators: Indicator entries (defaults to WDI_INDICATORS)
        """
        entries = list(indicators if indicators is not None else WDI_INDICATORS)

        self._by_code: Dict[str, IndicatorSpec] = {}
        self._aliases: Dict[str, str] = {}

        for spec in entries:
            if spec.code in self._by_code:
                raise ValueError(f"Duplicate indicator code in catalog: {spec.code}")
            self._by_code[spec.code] = spec

            if spec.alias:
                if spec.alias in self._aliases:
                    raise ValueError(f"Duplicate indicator alias in catalog: {spec.alias}")
                self._aliases[spec.alias] = spec.code

    def resolve_alias(self, tag: str) -> str:
        """Return the code an alias stands for, or the tag itself."""
        return self._aliases.get(tag, tag)

    def require(self, code: str, available: Sequence[str]) -> str:
        """
        Ensure an indicator code is among the available ones.

        Raises:
            ConfigurationError: listing every valid code, sorted, one per line
        """
        options = sorted(available)
        if code not in options:
            raise ConfigurationError(
                "Bad subtype. Possible subtypes are: \n" + "\n".join(options) + ".",
                valid_options=options
            )
        return code

    def get(self, code: str) -> IndicatorSpec:
        """
        Catalog entry for a code.

        Codes present in a snapshot but unknown to the catalog get a neutral
        entry: no rescaling, no aggregation, no rebasing.
        """
        return self._by_code.get(code) or IndicatorSpec(code=code, name=code)

    def __contains__(self, code: str) -> bool:
        return code in self._by_code

    @property
    def codes(self) -> List[str]:
        return sorted(self._by_code)

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)


def available_indicators(frame: pd.DataFrame) -> List[str]:
    """Indicator columns of a raw WDI table."""
    return [c for c in frame.columns if c not in RAW_ID_COLUMNS]
