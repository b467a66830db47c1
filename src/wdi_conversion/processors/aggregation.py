"""
Disputed-territory aggregation processor.

The World Bank reports some territories separately from the country they are
counted under in the modeling framework (Kosovo and Serbia). For additive
indicators their values are summed into the parent region before region codes
are harmonized; the child rows themselves stay in the panel.
"""

from typing import Dict, List, Optional, Sequence

import pandas as pd

from .base import DataProcessor, ProcessingResult, ProcessingStatus
from ..models import AggregationRule, DEFAULT_AGGREGATION_RULES, IndicatorSpec
from ..panel import INDEX_NAMES, IndicatorPanel


def aggregate_regions(panel: IndicatorPanel, rules: Sequence[AggregationRule]) -> IndicatorPanel:
    """
    Apply aggregation rules to a panel.

    For each rule and each year in which any contributor (parent or child)
    has a row, the parent value becomes the sum of the contributors' present
    values, or absent if every contributor is absent. Rows of other regions
    are untouched.

    Args:
        panel: Panel in the provider coding scheme
        rules: Aggregation rules applied in order

    Returns:
        New panel
    """
    data = panel.data
    for rule in rules:
        regions = data.index.get_level_values("region")
        contributors = data[regions.isin(rule.contributors)]
        if contributors.empty:
            continue

        # Absent only when every contributor is absent
        merged = contributors.groupby(level="year").sum(min_count=1)

        parent_index = pd.MultiIndex.from_arrays(
            [[rule.parent] * len(merged), merged.index.to_numpy()],
            names=INDEX_NAMES
        )
        parent_rows = pd.Series(merged.to_numpy(), index=parent_index, name=data.name)

        data = pd.concat([data[regions != rule.parent], parent_rows]).sort_index()

    return panel.with_data(data)


class RegionAggregator(DataProcessor):
    """
    Merges dependent regions into their parent for aggregation-eligible
    indicators.
    """

    def __init__(
        self,
        rules: Optional[Sequence[AggregationRule]] = None,
        name: Optional[str] = None
    ):
        """
        Initialize region aggregator.

        Args:
            rules: Aggregation rules (defaults to merging XK into RS)
            name: Processor name
        """
        super().__init__(name or "RegionAggregator")
        self.rules: List[AggregationRule] = list(
            rules if rules is not None else DEFAULT_AGGREGATION_RULES
        )

    def process(
        self,
        panel: IndicatorPanel,
        indicator: Optional[IndicatorSpec] = None
    ) -> ProcessingResult:
        eligible = indicator is not None and indicator.aggregation_eligible
        parameters = {"rules": [(r.parent, list(r.children)) for r in self.rules]}

        if not eligible:
            unmerged = self._unmerged_children(panel)
            for parent, children in unmerged.items():
                self.logger.warning(
                    f"{', '.join(children)} not merged into {parent} for {panel.indicator}; "
                    f"the separately reported values may have materially different data "
                    f"quality than the merged alternative"
                )
            return self._result(
                panel.with_data(panel.data),
                ProcessingStatus.SKIPPED,
                parameters=parameters,
                diagnostics={"unmerged": unmerged}
            )

        aggregated = aggregate_regions(panel, self.rules)
        self.logger.debug(f"Applied {len(self.rules)} aggregation rule(s) to {panel.indicator}")

        return self._result(aggregated, parameters=parameters)

    def _unmerged_children(self, panel: IndicatorPanel) -> Dict[str, List[str]]:
        present = set(panel.regions)
        unmerged: Dict[str, List[str]] = {}
        for rule in self.rules:
            children = [c for c in rule.children if c in present]
            if children:
                unmerged.setdefault(rule.parent, []).extend(children)
        return unmerged
