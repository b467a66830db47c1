"""
Utility modules for the WDI conversion system.
"""

from .logging import setup_logging, get_logger
from .validation import validate_panel, validate_raw_table, ValidationResult

__all__ = [
    "setup_logging",
    "get_logger",
    "validate_panel",
    "validate_raw_table",
    "ValidationResult",
]
