"""
Configuration management for the WDI conversion system.

This module provides configuration management using pydantic-settings for
validation, type checking, and environment variable integration. The active
raw-data snapshot is chosen here explicitly, never auto-selected, so that a
conversion re-run against an old snapshot key reproduces its output exactly.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import (
    AggregationRule, BasisDescriptor, DEFAULT_AGGREGATION_RULES,
    DEFAULT_REBASE_SOURCE, DEFAULT_REBASE_UNIT_IN, DEFAULT_REBASE_UNIT_OUT,
    DEFAULT_REGION_OVERRIDES, WDI_INDICATORS
)


class SnapshotConfig(BaseSettings):
    """Storage of versioned raw WDI snapshots."""

    model_config = SettingsConfigDict(env_prefix="SNAPSHOT_")

    database_path: Path = Field(
        default=Path("./data/wdi_snapshots.sqlite"),
        description="Path to the SQLite database holding raw snapshots"
    )

    active_key: str = Field(
        default="WDI_11_04_2025",
        min_length=1,
        description="Snapshot key read by conversions"
    )

    connection_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Database connection timeout in seconds"
    )


class FetchConfig(BaseSettings):
    """Configuration for the World Bank API client."""

    model_config = SettingsConfigDict(env_prefix="FETCH_")

    base_url: str = Field(
        default="https://api.worldbank.org/v2",
        description="World Bank API root"
    )

    timeout: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="HTTP timeout in seconds"
    )

    per_page: int = Field(
        default=20000,
        ge=50,
        le=32500,
        description="Records requested per API page"
    )

    start_year: int = Field(
        default=1960,
        ge=1960,
        description="First year downloaded into a snapshot"
    )

    end_year: Optional[int] = Field(
        default=None,
        description="Last year downloaded (defaults to the previous calendar year)"
    )

    indicators: List[str] = Field(
        default_factory=lambda: [i.code for i in WDI_INDICATORS],
        description="Indicator codes downloaded into a snapshot"
    )

    @property
    def resolved_end_year(self) -> int:
        return self.end_year if self.end_year is not None else date.today().year - 1


class ConversionConfig(BaseSettings):
    """Region handling and rebasing parameters of the conversion pipeline."""

    model_config = SettingsConfigDict(env_prefix="CONV_")

    region_overrides: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_REGION_OVERRIDES),
        description="Provider codes mapped explicitly to canonical codes"
    )

    aggregation_rules: List[Dict[str, Union[str, List[str]]]] = Field(
        default_factory=lambda: [
            {"parent": r.parent, "children": list(r.children)} for r in DEFAULT_AGGREGATION_RULES
        ],
        description="Dependent regions merged into a parent region"
    )

    rebase_unit_in: str = Field(
        default=DEFAULT_REBASE_UNIT_IN,
        description="Monetary unit of the raw PPP GDP series"
    )

    rebase_unit_out: str = Field(
        default=DEFAULT_REBASE_UNIT_OUT,
        description="Monetary unit of the converted PPP GDP series"
    )

    rebase_source: str = Field(
        default=DEFAULT_REBASE_SOURCE,
        description="Conversion factor table used for rebasing"
    )

    factor_database_path: Optional[Path] = Field(
        default=None,
        description="SQLite database holding conversion factor tables"
    )

    validate_steps: bool = Field(
        default=True,
        description="Validate panels before and after each pipeline step"
    )

    @field_validator("aggregation_rules")
    @classmethod
    def validate_aggregation_rules(cls, v):
        """Ensure every rule builds a valid AggregationRule."""
        for rule in v:
            AggregationRule(rule.get("parent", ""), rule.get("children", ()))
        return v

    @field_validator("rebase_unit_in", "rebase_unit_out")
    @classmethod
    def validate_unit(cls, v):
        """Reject unit strings the converter cannot interpret."""
        try:
            BasisDescriptor.parse(v)
        except ConfigurationError as e:
            raise ValueError(e.message) from e
        return v

    @property
    def rules(self) -> List[AggregationRule]:
        """Aggregation rules as model objects."""
        return [
            AggregationRule(rule["parent"], rule["children"])
            for rule in self.aggregation_rules
        ]


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )

    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )

    file_path: Optional[Path] = Field(
        default=None,
        description="Path to log file (None for console only)"
    )

    rotation_size: str = Field(
        default="10MB",
        description="Log file rotation size"
    )

    retention_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Number of rotated log files to keep"
    )


class WDIConversionConfig(BaseSettings):
    """
    Main configuration class for the WDI conversion system.

    This class aggregates all configuration sections. It is loaded once
    before any conversion starts and treated as read-only afterwards.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    project_name: str = Field(
        default="wdi-conversion",
        description="Project name for identification"
    )

    snapshot: SnapshotConfig = Field(
        default_factory=SnapshotConfig,
        description="Raw snapshot storage"
    )

    fetch: FetchConfig = Field(
        default_factory=FetchConfig,
        description="World Bank API client settings"
    )

    conversion: ConversionConfig = Field(
        default_factory=ConversionConfig,
        description="Conversion pipeline parameters"
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration"
    )

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> WDIConversionConfig:
        """Load configuration from a file."""
        config_path = Path(config_path)

        if config_path.suffix.lower() == '.json':
            import json
            with open(config_path, 'r') as f:
                config_data = json.load(f)
        elif config_path.suffix.lower() in ['.yaml', '.yml']:
            import yaml
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported config file format: {config_path.suffix}")

        return cls(**config_data)

    def save_to_file(self, config_path: Union[str, Path]) -> None:
        """Save configuration to a file."""
        config_path = Path(config_path)

        if config_path.suffix.lower() == '.json':
            import json
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, 'w') as f:
                json.dump(self.model_dump(mode="json"), f, indent=2)
        elif config_path.suffix.lower() in ['.yaml', '.yml']:
            import yaml
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, 'w') as f:
                yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False)
        else:
            raise ValueError(f"Unsupported config file format: {config_path.suffix}")


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    **overrides
) -> WDIConversionConfig:
    """
    Load configuration with optional file and overrides.

    Args:
        config_path: Path to configuration file (optional)
        **overrides: Configuration overrides

    Returns:
        WDIConversionConfig instance
    """
    if config_path:
        config = WDIConversionConfig.from_file(config_path)
        if overrides:
            config_dict = config.model_dump()
            config_dict.update(overrides)
            config = WDIConversionConfig(**config_dict)
        return config
    else:
        return WDIConversionConfig(**overrides)
