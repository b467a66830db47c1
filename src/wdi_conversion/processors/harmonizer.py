"""
Region harmonization processors.

This module converts region labels from the World Bank's ISO alpha-2 ids to
the ISO alpha-3 codes used downstream, and removes the rows whose label could
not be resolved (World Bank aggregates, non-ISO territories).
"""

from typing import Dict, List, Mapping, Optional

import pandas as pd

from .base import ConfigurationError, DataProcessor, ProcessingResult, ProcessingStatus
from ..models import DEFAULT_REGION_OVERRIDES, IndicatorSpec, RegionScheme
from ..panel import INDEX_NAMES, IndicatorPanel
from ..regions import RegionCrossReference, is_blank_code


class RegionCodeHarmonizer(DataProcessor):
    """
    Relabels a panel from the provider scheme to the canonical scheme.

    Explicit overrides are consulted before the cross-reference table. Codes
    that resolve to nothing get a blank label instead of raising; the
    ValidityFilter removes those rows afterwards.
    """

    def __init__(
        self,
        cross_reference: Optional[RegionCrossReference] = None,
        overrides: Optional[Mapping[str, str]] = None,
        from_scheme: RegionScheme = RegionScheme.ISO2C,
        to_scheme: RegionScheme = RegionScheme.ISO3C,
        name: Optional[str] = None
    ):
        """
        Initialize region code harmonizer.

        Args:
            cross_reference: Region lookup service
            overrides: Provider code to canonical code, takes precedence over the table
            from_scheme: Scheme of the input labels
            to_scheme: Scheme of the output labels
            name: Processor name
        """
        super().__init__(name or "RegionCodeHarmonizer")
        self.cross_reference = cross_reference or RegionCrossReference()
        self.overrides: Dict[str, str] = dict(
            overrides if overrides is not None else DEFAULT_REGION_OVERRIDES
        )
        self.from_scheme = RegionScheme(from_scheme)
        self.to_scheme = RegionScheme(to_scheme)

    def build_mapping(self, codes: List[Optional[str]]) -> Dict[str, Optional[str]]:
        """
        Resolve every distinct input code.

        Raises:
            ConfigurationError: if two provider codes resolve to the same canonical code
        """
        mapping = self.cross_reference.lookup_many(
            [c for c in codes if not is_blank_code(c)],
            self.from_scheme,
            self.to_scheme,
            self.overrides
        )

        seen: Dict[str, str] = {}
        for source, target in mapping.items():
            if target is None:
                continue
            if target in seen and seen[target] != source:
                raise ConfigurationError(
                    f"Region codes {seen[target]} and {source} both map to {target}; "
                    f"check the region overrides"
                )
            seen[target] = source

        return mapping

    def process(
        self,
        panel: IndicatorPanel,
        indicator: Optional[IndicatorSpec] = None
    ) -> ProcessingResult:
        if panel.scheme != self.from_scheme:
            self.logger.warning(
                f"Panel {panel.indicator} is labelled {panel.scheme.value}, "
                f"expected {self.from_scheme.value}"
            )

        mapping = self.build_mapping(panel.regions)

        labels = [
            None if is_blank_code(code) else mapping[code]
            for code in panel.region_labels
        ]
        index = pd.MultiIndex.from_arrays(
            [pd.Index(labels, dtype=object), panel.data.index.get_level_values("year")],
            names=INDEX_NAMES
        )
        relabelled = pd.Series(panel.data.to_numpy(), index=index, name=panel.indicator)

        unresolved = sorted(code for code, target in mapping.items() if target is None)
        if unresolved:
            self.logger.debug(
                f"{len(unresolved)} region code(s) of {panel.indicator} did not resolve: "
                f"{', '.join(unresolved)}"
            )

        return self._result(
            panel.with_data(relabelled, scheme=self.to_scheme),
            parameters={
                "from_scheme": self.from_scheme.value,
                "to_scheme": self.to_scheme.value,
                "overrides": dict(self.overrides)
            },
            diagnostics={"unresolved_regions": unresolved}
        )


class ValidityFilter(DataProcessor):
    """Drops rows whose region label is missing or empty."""

    def __init__(self, name: Optional[str] = None):
        super().__init__(name or "ValidityFilter")

    def process(
        self,
        panel: IndicatorPanel,
        indicator: Optional[IndicatorSpec] = None
    ) -> ProcessingResult:
        blank = panel.blank_region_mask()
        dropped = int(blank.sum())

        if dropped == 0:
            return self._result(
                panel.with_data(panel.data),
                ProcessingStatus.SKIPPED,
                diagnostics={"dropped_rows": 0}
            )

        kept = panel.data[~blank]
        self.logger.info(f"Dropped {dropped} row(s) without a valid region from {panel.indicator}")

        return self._result(panel.with_data(kept), diagnostics={"dropped_rows": dropped})

