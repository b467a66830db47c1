#!/usr/bin/env python3
"""
WDI Conversion Example

This script builds a small raw WDI snapshot and a conversion factor table in
a scratch directory, then converts population, urban share and PPP GDP into
ISO alpha-3 coded panels. Replace the sample table with a real download
(WorldBankDataSource.download_snapshot) to convert live data.
"""

from pathlib import Path

import pandas as pd

from wdi_conversion import (
    FactorTableSource,
    SQLiteSnapshotStore,
    WDIConversionConfig,
    WDIConversionError,
    create_pipeline
)
from wdi_conversion.utils.logging import setup_logging

SNAPSHOT_KEY = "WDI_EXAMPLE"


def create_sample_snapshot() -> pd.DataFrame:
    """
    Create a raw table shaped like a World Bank download.

    Kosovo is reported separately, "1W" is the World aggregate and "JG" the
    Channel Islands, which only resolve through an explicit override.
    """
    print("Creating sample WDI table...")

    rows = [
        ("RS", "SRB", "Serbia", 6_899_000, 56.4, 140.2e9),
        ("XK", "XKX", "Kosovo", 1_775_000, None, 23.1e9),
        ("DE", "DEU", "Germany", 83_160_000, 77.5, 4_930.0e9),
        ("NA", "NAM", "Namibia", 2_489_000, 52.0, 25.0e9),
        ("JG", "CHI", "Channel Islands", 173_000, 30.9, None),
        ("1W", "WLD", "World", 7_820_000_000, 56.2, 131_000.0e9),
    ]

    frame = pd.DataFrame(
        [(iso2c, iso3c, country, 2020, pop, urb, gdp) for iso2c, iso3c, country, pop, urb, gdp in rows],
        columns=[
            "iso2c", "iso3c", "country", "year",
            "SP.POP.TOTL", "SP.URB.TOTL.IN.ZS", "NY.GDP.MKTP.PP.KD"
        ]
    )

    print(f"Created {len(frame)} rows for {frame['year'].nunique()} year(s)")
    return frame


def create_sample_factors() -> pd.DataFrame:
    """Deflators, exchange rates and PPP factors for the base years involved."""
    return pd.DataFrame({
        "iso3c": ["SRB", "SRB", "DEU", "DEU", "NAM", "NAM"],
        "year": [2017, 2021, 2017, 2021, 2017, 2021],
        "deflator": [100.0, 115.3, 100.0, 106.6, 100.0, 112.4],
        "mer": [107.8, 100.1, 0.89, 0.85, 13.3, 14.8],
        "ppp": [41.2, 42.6, 0.74, 0.73, 6.9, 7.4],
    })


def prepare_storage(work_dir: Path) -> WDIConversionConfig:
    """Store the sample data and return a configuration pointing at it."""
    snapshot_path = work_dir / "wdi_snapshots.sqlite"
    factor_path = work_dir / "factors.sqlite"

    with SQLiteSnapshotStore(snapshot_path) as store:
        if SNAPSHOT_KEY not in store.list_keys():
            store.store_frame(SNAPSHOT_KEY, create_sample_snapshot())
        print(f"Snapshots available: {', '.join(store.list_keys())}")

    with FactorTableSource(factor_path) as source:
        source.save("wb_wdi", create_sample_factors(), replace=True)

    return WDIConversionConfig(
        snapshot={"database_path": str(snapshot_path), "active_key": SNAPSHOT_KEY},
        conversion={"factor_database_path": str(factor_path)}
    )


def main():
    """
    Main conversion workflow.
    """
    print("=" * 60)
    print("WDI Conversion - Example")
    print("=" * 60)

    work_dir = Path("wdi_example")
    work_dir.mkdir(exist_ok=True)

    try:
        config = prepare_storage(work_dir)
        setup_logging(config.logging)

        pipeline = create_pipeline(config)
        results = pipeline.convert_many(["pop", "urb", "gdp"])

        for tag, result in results.items():
            print(f"\n{tag} -> {result.indicator.code} [{result.indicator.unit}]")
            print(f"  steps: {', '.join(result.steps)}")
            print(f"  dropped regions: {', '.join(result.dropped_regions) or '-'}")
            print(result.panel.to_frame().to_string(index=False))

        print("\n" + "=" * 60)
        print(f"✓ Converted {len(results)} indicators from snapshot '{SNAPSHOT_KEY}'")
        print("=" * 60)

    except WDIConversionError as e:
        print(f"\n✗ Conversion failed: {e}")
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    main()
