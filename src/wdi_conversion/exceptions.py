"""
Exception hierarchy for the WDI conversion package.

Exception Hierarchy:
    WDIConversionError (base)
    ├── ProcessingError
    │   ├── ConfigurationError
    │   ├── RebasingError
    │   └── PanelIntegrityError
    └── DataSourceError
        ├── UpstreamFetchError
        └── SnapshotError

Region-code lookup failures are deliberately absent from this list: they are
represented as missing labels and removed by the validity filter.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple


class WDIConversionError(Exception):
    """Base exception for all package errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for reporting."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ProcessingError(WDIConversionError):
    """Base exception for processing errors."""

    def __init__(
        self,
        message: str,
        processor_name: Optional[str] = None,
        operation_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.processor_name = processor_name
        self.operation_id = operation_id
        self.original_error = original_error


class ConfigurationError(ProcessingError):
    """
    Raised for configuration problems.

    Examples:
        - Unknown indicator tag after alias resolution
        - Malformed monetary unit string
        - Invalid scale factor or colliding region overrides
    """

    def __init__(
        self,
        message: str,
        valid_options: Optional[Sequence[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.valid_options = list(valid_options) if valid_options is not None else []


class RebasingError(ProcessingError):
    """Raised when a conversion factor is missing for some region/year."""

    def __init__(
        self,
        message: str,
        missing: Optional[List[Tuple[str, int, str]]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.missing = list(missing or [])

    @property
    def regions(self) -> List[str]:
        """Regions lacking at least one conversion factor."""
        return sorted({region for region, _, _ in self.missing})


class PanelIntegrityError(ProcessingError):
    """Raised when a panel holds more than one value per (region, year)."""
    pass


class DataSourceError(WDIConversionError):
    """Base exception for data source errors."""

    def __init__(
        self,
        message: str,
        source_type: Optional[str] = None,
        query_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.source_type = source_type
        self.query_id = query_id


class UpstreamFetchError(DataSourceError):
    """Raw data provider unavailable or returned an error payload."""
    pass


class SnapshotError(DataSourceError):
    """Error reading or writing a stored raw-data snapshot."""
    pass
