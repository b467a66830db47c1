"""
Region code cross-reference.

Maps region identifiers between the World Bank's ISO alpha-2 ids (provider
scheme) and ISO alpha-3 codes (canonical scheme). Lookups never raise: codes
that cannot be resolved, such as World Bank aggregates ("1W", "ZQ", "EU") or
non-ISO territories ("XK"), return None.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Union

import pandas as pd

from .models import RegionScheme


# ISO 3166-1 alpha-2 to alpha-3
ISO_ALPHA2_TO_ALPHA3: Dict[str, str] = {
    "AD": "AND", "AE": "ARE", "AF": "AFG", "AG": "ATG", "AI": "AIA", "AL": "ALB",
    "AM": "ARM", "AO": "AGO", "AQ": "ATA", "AR": "ARG", "AS": "ASM", "AT": "AUT",
    "AU": "AUS", "AW": "ABW", "AX": "ALA", "AZ": "AZE",
    "BA": "BIH", "BB": "BRB", "BD": "BGD", "BE": "BEL", "BF": "BFA", "BG": "BGR",
    "BH": "BHR", "BI": "BDI", "BJ": "BEN", "BL": "BLM", "BM": "BMU", "BN": "BRN",
    "BO": "BOL", "BQ": "BES", "BR": "BRA", "BS": "BHS", "BT": "BTN", "BV": "BVT",
    "BW": "BWA", "BY": "BLR", "BZ": "BLZ",
    "CA": "CAN", "CC": "CCK", "CD": "COD", "CF": "CAF", "CG": "COG", "CH": "CHE",
    "CI": "CIV", "CK": "COK", "CL": "CHL", "CM": "CMR", "CN": "CHN", "CO": "COL",
    "CR": "CRI", "CU": "CUB", "CV": "CPV", "CW": "CUW", "CX": "CXR", "CY": "CYP",
    "CZ": "CZE",
    "DE": "DEU", "DJ": "DJI", "DK": "DNK", "DM": "DMA", "DO": "DOM", "DZ": "DZA",
    "EC": "ECU", "EE": "EST", "EG": "EGY", "EH": "ESH", "ER": "ERI", "ES": "ESP",
    "ET": "ETH",
    "FI": "FIN", "FJ": "FJI", "FK": "FLK", "FM": "FSM", "FO": "FRO", "FR": "FRA",
    "GA": "GAB", "GB": "GBR", "GD": "GRD", "GE": "GEO", "GF": "GUF", "GG": "GGY",
    "GH": "GHA", "GI": "GIB", "GL": "GRL", "GM": "GMB", "GN": "GIN", "GP": "GLP",
    "GQ": "GNQ", "GR": "GRC", "GS": "SGS", "GT": "GTM", "GU": "GUM", "GW": "GNB",
    "GY": "GUY",
    "HK": "HKG", "HM": "HMD", "HN": "HND", "HR": "HRV", "HT": "HTI", "HU": "HUN",
    "ID": "IDN", "IE": "IRL", "IL": "ISR", "IM": "IMN", "IN": "IND", "IO": "IOT",
    "IQ": "IRQ", "IR": "IRN", "IS": "ISL", "IT": "ITA",
    "JE": "JEY", "JM": "JAM", "JO": "JOR", "JP": "JPN",
    "KE": "KEN", "KG": "KGZ", "KH": "KHM", "KI": "KIR", "KM": "COM", "KN": "KNA",
    "KP": "PRK", "KR": "KOR", "KW": "KWT", "KY": "CYM", "KZ": "KAZ",
    "LA": "LAO", "LB": "LBN", "LC": "LCA", "LI": "LIE", "LK": "LKA", "LR": "LBR",
    "LS": "LSO", "LT": "LTU", "LU": "LUX", "LV": "LVA", "LY": "LBY",
    "MA": "MAR", "MC": "MCO", "MD": "MDA", "ME": "MNE", "MF": "MAF", "MG": "MDG",
    "MH": "MHL", "MK": "MKD", "ML": "MLI", "MM": "MMR", "MN": "MNG", "MO": "MAC",
    "MP": "MNP", "MQ": "MTQ", "MR": "MRT", "MS": "MSR", "MT": "MLT", "MU": "MUS",
    "MV": "MDV", "MW": "MWI", "MX": "MEX", "MY": "MYS", "MZ": "MOZ",
    "NA": "NAM", "NC": "NCL", "NE": "NER", "NF": "NFK", "NG": "NGA", "NI": "NIC",
    "NL": "NLD", "NO": "NOR", "NP": "NPL", "NR": "NRU", "NU": "NIU", "NZ": "NZL",
    "OM": "OMN",
    "PA": "PAN", "PE": "PER", "PF": "PYF", "PG": "PNG", "PH": "PHL", "PK": "PAK",
    "PL": "POL", "PM": "SPM", "PN": "PCN", "PR": "PRI", "PS": "PSE", "PT": "PRT",
    "PW": "PLW", "PY": "PRY",
    "QA": "QAT",
    "RE": "REU", "RO": "ROU", "RS": "SRB", "RU": "RUS", "RW": "RWA",
    "SA": "SAU", "SB": "SLB", "SC": "SYC", "SD": "SDN", "SE": "SWE", "SG": "SGP",
    "SH": "SHN", "SI": "SVN", "SJ": "SJM", "SK": "SVK", "SL": "SLE", "SM": "SMR",
    "SN": "SEN", "SO": "SOM", "SR": "SUR", "SS": "SSD", "ST": "STP", "SV": "SLV",
    "SX": "SXM", "SY": "SYR", "SZ": "SWZ",
    "TC": "TCA", "TD": "TCD", "TF": "ATF", "TG": "TGO", "TH": "THA", "TJ": "TJK",
    "TK": "TKL", "TL": "TLS", "TM": "TKM", "TN": "TUN", "TO": "TON", "TR": "TUR",
    "TT": "TTO", "TV": "TUV", "TW": "TWN", "TZ": "TZA",
    "UA": "UKR", "UG": "UGA", "UM": "UMI", "US": "USA", "UY": "URY", "UZ": "UZB",
    "VA": "VAT", "VC": "VCT", "VE": "VEN", "VG": "VGB", "VI": "VIR", "VN": "VNM",
    "VU": "VUT",
    "WF": "WLF", "WS": "WSM",
    "YE": "YEM", "YT": "MYT",
    "ZA": "ZAF", "ZM": "ZMB", "ZW": "ZWE",
}


def is_blank_code(code: object) -> bool:
    """Whether a region label is missing or empty."""
    if code is None:
        return True
    if isinstance(code, str):
        return code.strip() == ""
    return bool(pd.isna(code))


class RegionCrossReference:
    """
    Lookup service between region coding schemes.

    The table is read-only after construction and may be shared between
    concurrent conversions.
    """

    def __init__(self, alpha2_to_alpha3: Optional[Mapping[str, str]] = None):
        """
        Initialize the cross-reference.

        Args:
            alpha2_to_alpha3: Custom alpha-2 to alpha-3 table (defaults to ISO 3166-1)
        """
        table = dict(ISO_ALPHA2_TO_ALPHA3 if alpha2_to_alpha3 is None else alpha2_to_alpha3)
        self._tables: Dict[tuple, Dict[str, str]] = {
            (RegionScheme.ISO2C, RegionScheme.ISO3C): table,
            (RegionScheme.ISO3C, RegionScheme.ISO2C): {v: k for k, v in table.items()},
        }

    def lookup(
        self,
        code: Optional[str],
        from_scheme: Union[RegionScheme, str],
        to_scheme: Union[RegionScheme, str],
        overrides: Optional[Mapping[str, str]] = None
    ) -> Optional[str]:
        """
        Convert a single region code.

        Overrides take precedence over the table. Returns None when the code
        cannot be resolved.
        """
        if is_blank_code(code):
            return None

        from_scheme = RegionScheme(from_scheme)
        to_scheme = RegionScheme(to_scheme)

        if overrides and code in overrides:
            return overrides[code]

        normalized = str(code).strip().upper()

        if overrides and normalized in overrides:
            return overrides[normalized]

        if from_scheme == to_scheme:
            known = self._tables[(RegionScheme.ISO2C, RegionScheme.ISO3C)]
            codes = set(known) if from_scheme == RegionScheme.ISO2C else set(known.values())
            return normalized if normalized in codes else None

        return self._tables[(from_scheme, to_scheme)].get(normalized)

    def lookup_many(
        self,
        codes: Iterable[Optional[str]],
        from_scheme: Union[RegionScheme, str],
        to_scheme: Union[RegionScheme, str],
        overrides: Optional[Mapping[str, str]] = None
    ) -> Dict[str, Optional[str]]:
        """Convert several codes, returning a mapping from input to result."""
        return {
            code: self.lookup(code, from_scheme, to_scheme, overrides)
            for code in codes
        }

    def known_codes(self, scheme: Union[RegionScheme, str]) -> Iterable[str]:
        """All codes of a scheme known to the table."""
        table = self._tables[(RegionScheme.ISO2C, RegionScheme.ISO3C)]
        if RegionScheme(scheme) == RegionScheme.ISO2C:
            return sorted(table)
        return sorted(table.values())
