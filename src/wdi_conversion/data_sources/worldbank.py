"""
World Bank API connector.

Downloads World Development Indicators for every economy and aggregate from
the World Bank's v2 REST API and assembles them into the wide raw table the
conversion pipeline consumes (one row per region and year, one column per
indicator).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
import requests

from .base import (
    CachedDataSource, DataSourceType, RawPanelSource, SnapshotStore, UpstreamFetchError
)
from .snapshot import serialize_frame
from ..models import DatasetMetadata, WDI_INDICATORS

DEFAULT_BASE_URL = "https://api.worldbank.org/v2"
DEFAULT_START_YEAR = 1960


class WorldBankDataSource(CachedDataSource, RawPanelSource):
    """
    World Bank WDI API client.

    Each indicator is requested for all regions at once and paged through
    until the last page. Results are cached in memory per indicator and year
    range.
    """

    error_class = UpstreamFetchError

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        per_page: int = 20000,
        session: Optional[requests.Session] = None,
        start_year: int = DEFAULT_START_YEAR,
        end_year: Optional[int] = None,
        indicator_codes: Optional[Sequence[str]] = None,
        **kwargs
    ):
        """
        Initialize World Bank data source.

        Args:
            base_url: API root
            timeout: HTTP timeout in seconds
            per_page: Records requested per page
            session: Preconfigured HTTP session
            start_year: Default first year
            end_year: Default last year (None means the previous calendar year)
            indicator_codes: Default indicators (None means the catalog)
            **kwargs: Additional arguments for CachedDataSource
        """
        super().__init__(
            DataSourceType.WORLD_BANK,
            {"base_url": base_url, "timeout": timeout, "per_page": per_page},
            **kwargs
        )
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.per_page = per_page
        self._session = session
        self._owns_session = session is None
        self.start_year = start_year
        self.end_year = end_year
        self.indicator_codes = list(indicator_codes) if indicator_codes is not None else None

    @classmethod
    def from_config(cls, config, **kwargs) -> WorldBankDataSource:
        """Create a source from a FetchConfig."""
        return cls(
            base_url=config.base_url,
            timeout=config.timeout,
            per_page=config.per_page,
            start_year=config.start_year,
            end_year=config.end_year,
            indicator_codes=config.indicators,
            **kwargs
        )

    def connect(self) -> None:
        """Open an HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Accept": "application/json"})
            self._owns_session = True

        self._is_connected = True

    def disconnect(self) -> None:
        """Close the HTTP session if this source opened it."""
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None

        self._is_connected = False

    def test_connection(self) -> bool:
        """Check that the API answers."""
        try:
            self._get_page(f"{self.base_url}/country", {"format": "json", "per_page": 1})
            return True
        except UpstreamFetchError:
            return False

    def fetch_indicator(self, code: str, start_year: int, end_year: int) -> pd.DataFrame:
        """
        Download one indicator for all regions.

        Returns:
            Long table with columns iso2c, iso3c, country, year, value
        """
        parameters = {"start_year": start_year, "end_year": end_year}
        result = self.execute_query(
            code,
            lambda: self._download_indicator(code, start_year, end_year),
            parameters
        )
        return result.data

    def fetch(
        self,
        indicator_codes: Sequence[str],
        start_year: Optional[int] = None,
        end_year: Optional[int] = None
    ) -> pd.DataFrame:
        """
        Download several indicators into one wide table.

        Args:
            indicator_codes: WDI indicator codes
            start_year: First year (defaults to the source's start year)
            end_year: Last year (defaults to the source's end year)

        Returns:
            Table with columns iso2c, iso3c, country, year and one column per code

        Raises:
            UpstreamFetchError: on HTTP, network or API errors
        """
        if not indicator_codes:
            raise ValueError("At least one indicator code is required")

        start_year = start_year if start_year is not None else self.start_year
        end_year = end_year if end_year is not None else self.end_year
        if end_year is None:
            end_year = pd.Timestamp.today().year - 1

        if end_year < start_year:
            raise ValueError(f"end_year {end_year} is before start_year {start_year}")

        columns: List[pd.Series] = []
        names: Dict[str, Tuple[Optional[str], Optional[str]]] = {}

        for code in indicator_codes:
            long = self.fetch_indicator(code, start_year, end_year)
            self.logger.info(f"Fetched {code}: {len(long)} rows")

            ids = long[["iso2c", "iso3c", "country"]].drop_duplicates("iso2c")
            for row in ids.itertuples(index=False):
                names.setdefault(row.iso2c, (row.iso3c, row.country))

            columns.append(long.set_index(["iso2c", "year"])["value"].rename(code))

        wide = pd.concat(columns, axis=1, join="outer").reset_index()
        wide["iso3c"] = wide["iso2c"].map(lambda c: names.get(c, (None, None))[0])
        wide["country"] = wide["iso2c"].map(lambda c: names.get(c, (None, None))[1])

        ordered = ["iso2c", "iso3c", "country", "year"] + list(indicator_codes)
        return wide[ordered].sort_values(["iso2c", "year"]).reset_index(drop=True)

    def download_snapshot(
        self,
        snapshot_store: SnapshotStore,
        key: str,
        indicator_codes: Optional[Sequence[str]] = None,
        start_year: Optional[int] = None,
        end_year: Optional[int] = None
    ) -> DatasetMetadata:
        """
        Download the WDI indicator set and store it as a new snapshot.

        Args:
            snapshot_store: Destination store
            key: New snapshot key, e.g. "WDI_11_04_2025"
            indicator_codes: Indicators to download (defaults to the source's
                indicators, then the catalog)
            start_year: First year (defaults to the source's start year)
            end_year: Last year (defaults to the source's end year)

        Returns:
            Provenance metadata of the stored snapshot

        Raises:
            UpstreamFetchError: if the download fails
            SnapshotError: if the key already exists
        """
        if indicator_codes is None:
            indicator_codes = self.indicator_codes or [i.code for i in WDI_INDICATORS]
        codes = list(indicator_codes)
        frame = self.fetch(codes, start_year, end_year)

        snapshot_store.store(key, serialize_frame(frame))
        self.logger.info(f"Stored WDI snapshot '{key}' with {len(codes)} indicators")

        return DatasetMetadata()

    def _download_indicator(self, code: str, start_year: int, end_year: int) -> pd.DataFrame:
        url = f"{self.base_url}/country/all/indicator/{code}"
        params: Dict[str, Any] = {
            "format": "json",
            "per_page": self.per_page,
            "date": f"{start_year}:{end_year}",
        }

        records: List[Dict[str, Any]] = []
        page, pages = 1, 1
        while page <= pages:
            meta, page_records = self._get_page(url, {**params, "page": page})
            records.extend(page_records)
            pages = int(meta.get("pages") or 1)
            page += 1

        rows = [self._parse_record(r) for r in records]
        return pd.DataFrame(rows, columns=["iso2c", "iso3c", "country", "year", "value"])

    def _get_page(
        self,
        url: str,
        params: Dict[str, Any]
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        if self._session is None:
            self.connect()

        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise UpstreamFetchError(
                f"World Bank API request failed for {url}: {e}",
                self.source_type.value
            ) from e
        except ValueError as e:
            raise UpstreamFetchError(
                f"World Bank API returned invalid JSON for {url}: {e}",
                self.source_type.value
            ) from e

        # Errors come back as [{"message": [{"id": ..., "value": ...}]}]
        if (
            isinstance(payload, list) and payload
            and isinstance(payload[0], dict) and "message" in payload[0]
        ):
            messages = payload[0]["message"] or [{}]
            detail = "; ".join(str(m.get("value", "Unknown error")) for m in messages)
            raise UpstreamFetchError(
                f"World Bank API error for {url}: {detail}",
                self.source_type.value
            )

        if not isinstance(payload, list) or len(payload) < 1 or not isinstance(payload[0], dict):
            raise UpstreamFetchError(
                f"Unexpected World Bank API response for {url}",
                self.source_type.value
            )

        meta = payload[0]
        records = payload[1] if len(payload) > 1 and payload[1] else []
        return meta, records

    @staticmethod
    def _parse_record(record: Dict[str, Any]) -> Dict[str, Any]:
        country = record.get("country") or {}
        iso3c = record.get("countryiso3code") or None
        value = record.get("value")
        return {
            "iso2c": country.get("id"),
            "iso3c": iso3c,
            "country": country.get("value"),
            "year": int(record["date"]),
            "value": float(value) if value is not None else None,
        }
