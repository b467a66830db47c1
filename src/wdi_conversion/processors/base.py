"""
Base classes for panel processors.

This module defines the common interface for every conversion step, so that
steps can be composed by the pipeline orchestrator and report uniform
metadata and diagnostics.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import ConfigurationError, PanelIntegrityError, ProcessingError, RebasingError
from ..models import IndicatorSpec
from ..panel import IndicatorPanel
from ..utils.logging import get_logger
from ..utils.validation import ValidationResult, validate_panel

logger = get_logger(__name__)

__all__ = [
    "ProcessingStatus",
    "ProcessingMetadata",
    "ProcessingResult",
    "ProcessingError",
    "ConfigurationError",
    "RebasingError",
    "PanelIntegrityError",
    "DataProcessor",
]


class ProcessingStatus(str, Enum):
    """Status of a processing operation."""
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ProcessingMetadata:
    """Metadata for processing operations."""
    processor_name: str
    operation_id: str
    indicator: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    execution_time: Optional[float] = None
    rows_in: Optional[int] = None
    rows_out: Optional[int] = None
    error_message: Optional[str] = None


@dataclass
class ProcessingResult:
    """
    Result of a processing step.

    Attributes:
        data: Output panel
        metadata: Processing metadata
        status: Processing status
        validation: Output validation results
        diagnostics: Step-specific observations (e.g. dropped regions)
    """
    data: IndicatorPanel
    metadata: ProcessingMetadata
    status: ProcessingStatus = ProcessingStatus.COMPLETED
    validation: Optional[ValidationResult] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        """Check if processing was successful."""
        return self.status in (ProcessingStatus.COMPLETED, ProcessingStatus.SKIPPED)

    @property
    def has_validation_errors(self) -> bool:
        """Check if there are validation errors."""
        return self.validation is not None and not self.validation.is_valid


class DataProcessor(ABC):
    """
    Abstract base class for all panel processors.

    Subclasses implement process(), which must return a new panel and leave
    its input untouched.
    """

    def __init__(self, name: Optional[str] = None):
        """
        Initialize data processor.

        Args:
            name: Processor name (defaults to class name)
        """
        self.name = name or self.__class__.__name__
        self.logger = get_logger(f"{__name__}.{self.name}")
        self._processing_history: List[ProcessingMetadata] = []

    @abstractmethod
    def process(
        self,
        panel: IndicatorPanel,
        indicator: Optional[IndicatorSpec] = None
    ) -> ProcessingResult:
        """
        Transform a panel.

        Args:
            panel: Input panel
            indicator: Catalog entry of the panel's indicator

        Returns:
            ProcessingResult with the new panel and metadata
        """
        pass

    def process_with_validation(
        self,
        panel: IndicatorPanel,
        indicator: Optional[IndicatorSpec] = None,
        validate_input: bool = True,
        validate_output: bool = True
    ) -> ProcessingResult:
        """
        Process a panel with optional input/output validation.

        Typed processing errors propagate unchanged; anything else is
        wrapped in a ProcessingError naming this processor.
        """
        operation_id = self._generate_operation_id()
        start_time = time.time()

        metadata = ProcessingMetadata(
            processor_name=self.name,
            operation_id=operation_id,
            indicator=panel.indicator,
            rows_in=len(panel)
        )

        try:
            self.logger.debug(f"Starting {self.name} on {panel.indicator} ({operation_id})")

            if validate_input:
                input_validation = self.validate_input(panel)
                if not input_validation.is_valid:
                    raise ProcessingError(
                        f"Input validation failed for {panel.indicator}: {input_validation.errors}",
                        self.name,
                        operation_id
                    )

            result = self.process(panel, indicator)

            metadata.execution_time = time.time() - start_time
            metadata.rows_out = len(result.data)
            metadata.parameters = result.metadata.parameters
            result.metadata = metadata

            if validate_output:
                output_validation = self.validate_output(result.data)
                result.validation = output_validation

                if not output_validation.is_valid:
                    result.status = ProcessingStatus.FAILED
                    self.logger.warning(
                        f"Output validation failed for {operation_id}: {output_validation.errors}"
                    )

            self._processing_history.append(metadata)

            self.logger.debug(
                f"{self.name} finished {panel.indicator} in {metadata.execution_time:.3f}s "
                f"({metadata.rows_in} -> {metadata.rows_out} rows)"
            )

            return result

        except ProcessingError as e:
            metadata.execution_time = time.time() - start_time
            metadata.error_message = str(e)
            self._processing_history.append(metadata)

            if e.processor_name is None:
                e.processor_name = self.name
                e.operation_id = operation_id

            self.logger.error(f"{self.name} failed on {panel.indicator}: {e}")
            raise

        except Exception as e:
            metadata.execution_time = time.time() - start_time
            metadata.error_message = str(e)
            self._processing_history.append(metadata)

            self.logger.error(f"{self.name} failed on {panel.indicator}: {e}")

            raise ProcessingError(
                f"Processing failed: {e}",
                self.name,
                operation_id,
                e
            ) from e

    def validate_input(self, panel: IndicatorPanel) -> ValidationResult:
        """Validate input panel (subclasses can override)."""
        return validate_panel(panel, name=f"{self.name} input")

    def validate_output(self, panel: IndicatorPanel) -> ValidationResult:
        """Validate output panel (subclasses can override)."""
        return validate_panel(panel, name=f"{self.name} output")

    def _result(
        self,
        panel: IndicatorPanel,
        status: ProcessingStatus = ProcessingStatus.COMPLETED,
        parameters: Optional[Dict[str, Any]] = None,
        diagnostics: Optional[Dict[str, Any]] = None
    ) -> ProcessingResult:
        """Wrap a panel into a ProcessingResult."""
        metadata = ProcessingMetadata(
            processor_name=self.name,
            operation_id=self._generate_operation_id(),
            indicator=panel.indicator,
            parameters=parameters or {}
        )
        return ProcessingResult(
            data=panel,
            metadata=metadata,
            status=status,
            diagnostics=diagnostics or {}
        )

    def get_processing_history(self) -> List[ProcessingMetadata]:
        """Get processing operation history."""
        return self._processing_history.copy()

    def clear_history(self) -> None:
        """Clear processing history."""
        self._processing_history.clear()

    def get_info(self) -> Dict[str, Any]:
        """Get processor information."""
        return {
            "name": self.name,
            "class": self.__class__.__name__,
            "total_operations": len(self._processing_history),
            "successful_operations": sum(
                1 for m in self._processing_history if m.error_message is None
            ),
            "failed_operations": sum(
                1 for m in self._processing_history if m.error_message is not None
            )
        }

    def _generate_operation_id(self) -> str:
        """Generate unique operation identifier."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        return f"{self.name}_{timestamp}"

    def __repr__(self) -> str:
        """String representation."""
        return f"{self.__class__.__name__}(name='{self.name}')"
