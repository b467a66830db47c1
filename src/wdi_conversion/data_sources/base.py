"""
Base interfaces and abstract classes for data sources.

This module defines the collaborators the conversion pipeline depends on: a
source of raw WDI tables, a durable store of raw snapshots and the common
connection/query bookkeeping they share.
"""

from __future__ import annotations

import hashlib
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

import pandas as pd
from pydantic import BaseModel, ConfigDict

from ..exceptions import DataSourceError, SnapshotError, UpstreamFetchError
from ..utils.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "DataSourceType",
    "QueryStatus",
    "QueryMetadata",
    "QueryResult",
    "DataSource",
    "CachedDataSource",
    "RawPanelSource",
    "SnapshotStore",
    "DataSourceError",
    "UpstreamFetchError",
    "SnapshotError",
]


class DataSourceType(str, Enum):
    """Types of data sources."""
    WORLD_BANK = "world_bank"
    SNAPSHOT = "snapshot"
    FACTORS = "factors"
    CUSTOM = "custom"


class QueryStatus(str, Enum):
    """Status of a data query."""
    COMPLETED = "completed"
    FAILED = "failed"
    CACHED = "cached"


@dataclass
class QueryMetadata:
    """Metadata for data queries."""
    query_id: str
    source_type: DataSourceType
    dataset_name: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    execution_time: Optional[float] = None
    row_count: Optional[int] = None
    error_message: Optional[str] = None


class QueryResult(BaseModel):
    """
    Result of a data source query.

    Attributes:
        data: Retrieved data as DataFrame
        metadata: Query metadata
        status: Query execution status
        cache_hit: Whether result came from cache
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: pd.DataFrame
    metadata: QueryMetadata
    status: QueryStatus = QueryStatus.COMPLETED
    cache_hit: bool = False

    @property
    def is_empty(self) -> bool:
        """Check if result is empty."""
        return self.data.empty

    @property
    def shape(self) -> tuple:
        return self.data.shape


class DataSource(ABC):
    """
    Abstract base class for all data sources.

    Failures inside execute_query are re-raised as the source's error_class,
    so callers only ever see DataSourceError subclasses.
    """

    error_class: Type[DataSourceError] = DataSourceError

    def __init__(self, source_type: DataSourceType, connection_params: Optional[Dict[str, Any]] = None):
        """
        Initialize data source.

        Args:
            source_type: Type of data source
            connection_params: Connection parameters
        """
        self.source_type = source_type
        self.connection_params = connection_params or {}
        self._is_connected = False
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to data source."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to data source."""
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test if connection is working."""
        pass

    def execute_query(
        self,
        query: str,
        runner: Callable[[], pd.DataFrame],
        parameters: Optional[Dict[str, Any]] = None
    ) -> QueryResult:
        """
        Run a query with bookkeeping and error translation.

        Args:
            query: Dataset or query identifier, used for logging
            runner: Callable producing the data
            parameters: Query parameters, recorded in the metadata

        Returns:
            QueryResult object
        """
        query_id = self._generate_query_id()
        start_time = time.time()

        metadata = QueryMetadata(
            query_id=query_id,
            source_type=self.source_type,
            dataset_name=query,
            parameters=parameters or {}
        )

        try:
            self.logger.debug(f"Executing query {query_id} on {query}")

            if not self._is_connected:
                self.connect()

            data = runner()

            metadata.execution_time = time.time() - start_time
            metadata.row_count = len(data)

            self.logger.debug(
                f"Query {query_id} returned {metadata.row_count} rows "
                f"in {metadata.execution_time:.2f}s"
            )

            return QueryResult(data=data, metadata=metadata, status=QueryStatus.COMPLETED)

        except DataSourceError as e:
            if e.query_id is None:
                e.query_id = query_id
            self.logger.error(f"Query {query_id} failed: {e}")
            raise

        except Exception as e:
            metadata.execution_time = time.time() - start_time
            metadata.error_message = str(e)

            self.logger.error(f"Query {query_id} failed: {e}")

            raise self.error_class(
                f"Query execution failed: {e}",
                self.source_type.value,
                query_id
            ) from e

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _generate_query_id(self) -> str:
        """Generate unique query identifier."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        return f"{self.source_type.value}_{timestamp}"

    @property
    def is_connected(self) -> bool:
        return self._is_connected


class CachedDataSource(DataSource):
    """
    Data source with an in-memory result cache.

    Results are keyed by query name and parameters and expire after cache_ttl
    seconds.
    """

    def __init__(
        self,
        source_type: DataSourceType,
        connection_params: Optional[Dict[str, Any]] = None,
        cache_enabled: bool = True,
        cache_ttl: int = 3600
    ):
        """
        Initialize cached data source.

        Args:
            source_type: Type of data source
            connection_params: Connection parameters
            cache_enabled: Whether to enable caching
            cache_ttl: Cache time-to-live in seconds
        """
        super().__init__(source_type, connection_params)
        self.cache_enabled = cache_enabled
        self.cache_ttl = cache_ttl
        self._cache: Dict[str, tuple] = {}

    def execute_query(
        self,
        query: str,
        runner: Callable[[], pd.DataFrame],
        parameters: Optional[Dict[str, Any]] = None
    ) -> QueryResult:
        """Execute query with caching support."""
        if not self.cache_enabled:
            return super().execute_query(query, runner, parameters)

        cache_key = self._generate_cache_key(query, parameters)

        if cache_key in self._cache:
            cached_result, cache_time = self._cache[cache_key]
            cache_age = (datetime.now() - cache_time).total_seconds()

            if cache_age < self.cache_ttl:
                self.logger.debug(f"Cache hit for query: {query}")
                return cached_result.model_copy(
                    update={"cache_hit": True, "status": QueryStatus.CACHED}
                )

            del self._cache[cache_key]

        result = super().execute_query(query, runner, parameters)
        self._cache[cache_key] = (result, datetime.now())

        return result

    def clear_cache(self) -> None:
        """Clear all cached results."""
        self._cache.clear()
        self.logger.debug("Cache cleared")

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_entries = len(self._cache)
        current_time = datetime.now()

        expired_entries = sum(
            1 for _, cache_time in self._cache.values()
            if (current_time - cache_time).total_seconds() > self.cache_ttl
        )

        return {
            "total_entries": total_entries,
            "valid_entries": total_entries - expired_entries,
            "expired_entries": expired_entries,
            "cache_ttl": self.cache_ttl,
            "cache_enabled": self.cache_enabled
        }

    def _generate_cache_key(self, query: str, parameters: Optional[Dict[str, Any]]) -> str:
        cache_data = {
            "query": query,
            "parameters": parameters or {},
            "source_type": self.source_type.value
        }
        cache_string = json.dumps(cache_data, sort_keys=True, default=str)
        return hashlib.md5(cache_string.encode()).hexdigest()


class RawPanelSource(ABC):
    """Provider of raw WDI tables."""

    @abstractmethod
    def fetch(
        self,
        indicator_codes: Sequence[str],
        start_year: int,
        end_year: int
    ) -> pd.DataFrame:
        """
        Fetch indicators for every region.

        Returns:
            Wide table with columns iso2c, country, year and one column per code

        Raises:
            UpstreamFetchError: if the provider is unavailable or returns an error
        """
        pass


class SnapshotStore(ABC):
    """
    Durable, versioned storage of raw tables.

    Snapshots are immutable once stored; new data gets a new key.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[bytes]:
        """Payload stored under key, or None if there is none."""
        pass

    @abstractmethod
    def store(self, key: str, payload: bytes) -> None:
        """
        Store a payload under a new key.

        Raises:
            SnapshotError: if the key already exists
        """
        pass

    @abstractmethod
    def list_keys(self) -> List[str]:
        """All stored keys, sorted."""
        pass
