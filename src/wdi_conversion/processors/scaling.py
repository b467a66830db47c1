"""
Unit rescaling processor.
"""

import math
import numbers
from typing import Optional

from .base import ConfigurationError, DataProcessor, ProcessingResult, ProcessingStatus
from ..models import IndicatorSpec
from ..panel import IndicatorPanel


def scale_panel(panel: IndicatorPanel, factor: float) -> IndicatorPanel:
    """
    Multiply every value of a panel by a constant.

    Absent values stay absent. A factor of 1 returns an equal panel.

    Raises:
        ConfigurationError: if the factor is zero or not finite
    """
    if not isinstance(factor, numbers.Real) or not math.isfinite(factor) or factor == 0:
        raise ConfigurationError(f"Invalid scale factor for {panel.indicator}: {factor!r}")

    if factor == 1:
        return panel.with_data(panel.data)

    return panel.with_data(panel.data * float(factor))


class ScaleNormalizer(DataProcessor):
    """
    Converts raw units to working units using the catalog scale factor
    (e.g. people to million people).
    """

    def __init__(self, factor: Optional[float] = None, name: Optional[str] = None):
        """
        Initialize scale normalizer.

        Args:
            factor: Fixed factor; if omitted the indicator's scale_factor is used
            name: Processor name
        """
        super().__init__(name or "ScaleNormalizer")
        self.factor = factor

    def process(
        self,
        panel: IndicatorPanel,
        indicator: Optional[IndicatorSpec] = None
    ) -> ProcessingResult:
        factor = self.factor
        if factor is None:
            factor = indicator.scale_factor if indicator is not None else 1.0

        scaled = scale_panel(panel, factor)

        if factor == 1:
            self.logger.debug(f"No rescaling needed for {panel.indicator}")
            status = ProcessingStatus.SKIPPED
        else:
            self.logger.debug(f"Scaled {panel.indicator} by {factor:g}")
            status = ProcessingStatus.COMPLETED

        return self._result(scaled, status, parameters={"factor": factor})
