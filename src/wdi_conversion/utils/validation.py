"""
Data validation utilities for raw WDI tables and indicator panels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Union

import numpy as np
import pandas as pd

from ..models import RAW_ID_COLUMNS
from ..panel import IndicatorPanel


@dataclass
class ValidationResult:
    """
    Result of a data validation check.

    Attributes:
        is_valid: Whether validation passed
        errors: List of error messages
        warnings: List of warning messages
        details: Additional validation details
    """
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Union[str, int, float]] = field(default_factory=dict)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def add_detail(self, key: str, value: Union[str, int, float]) -> None:
        """Add a detail."""
        self.details[key] = value

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Combine two results into a new one."""
        merged = ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
            details={**self.details, **other.details}
        )
        return merged


def validate_panel(panel: IndicatorPanel, name: str = "panel") -> ValidationResult:
    """
    Check an indicator panel for structural problems.

    Blank region labels are reported as a warning: the harmonizer produces
    them on purpose and the validity filter removes them.
    """
    result = ValidationResult(is_valid=True)
    data = panel.data

    result.add_detail("rows", len(data))
    result.add_detail("regions", len(panel.regions))

    if data.empty:
        result.add_warning(f"{name}: panel for {panel.indicator} is empty")
        return result

    blank = panel.blank_region_mask()
    if blank.any():
        result.add_warning(
            f"{name}: {int(blank.sum())} rows without a {panel.scheme.value} region code"
        )

    values = data.to_numpy()
    if np.isinf(values).any():
        result.add_error(f"{name}: infinite values in {panel.indicator}")

    missing_share = float(np.isnan(values).mean())
    result.add_detail("missing_share", missing_share)
    if missing_share == 1.0:
        result.add_warning(f"{name}: every value of {panel.indicator} is absent")

    return result


def validate_raw_table(
    frame: pd.DataFrame,
    id_columns: Sequence[str] = ("iso2c", "year")
) -> ValidationResult:
    """
    Check a raw WDI table before indicators are sliced out of it.

    Args:
        frame: Raw table with identifier and indicator columns
        id_columns: Columns that must identify a row uniquely

    Returns:
        ValidationResult
    """
    result = ValidationResult(is_valid=True)

    missing = [c for c in id_columns if c not in frame.columns]
    if missing:
        result.add_error(f"Raw table is missing identifier columns: {missing}")
        return result

    indicators = [c for c in frame.columns if c not in RAW_ID_COLUMNS]
    result.add_detail("indicators", len(indicators))
    result.add_detail("rows", len(frame))

    if not indicators:
        result.add_error("Raw table has no indicator columns")

    duplicated = frame.duplicated(subset=list(id_columns))
    if duplicated.any():
        result.add_error(f"Raw table has {int(duplicated.sum())} duplicate region/year rows")

    return result
