"""EU member states and the spellings a jurisdiction may take in stored rows."""
from __future__ import annotations

EU_COUNTRIES: dict[str, str] = {
    "AT": "Austria",
    "BE": "Belgium",
    "BG": "Bulgaria",
    "CY": "Cyprus",
    "CZ": "Czech Republic",
    "DE": "Germany",
    "DK": "Denmark",
    "EE": "Estonia",
    "EL": "Greece",
    "ES": "Spain",
    "FI": "Finland",
    "FR": "France",
    "GR": "Greece",
    "HR": "Croatia",
    "HU": "Hungary",
    "IE": "Ireland",
    "IT": "Italy",
    "LT": "Lithuania",
    "LU": "Luxembourg",
    "LV": "Latvia",
    "MT": "Malta",
    "NL": "Netherlands",
    "PL": "Poland",
    "PT": "Portugal",
    "RO": "Romania",
    "SE": "Sweden",
    "SI": "Slovenia",
    "SK": "Slovakia",
}


def country_name(code: str) -> str:
    """Display name for ``code``, or the upper-cased code when it is not an EU member."""
    normalized = code.strip().upper()
    return EU_COUNTRIES.get(normalized, normalized)


def country_variants(code: str) -> list[str]:
    """Every spelling under which ``code`` may be stored.

    Always the code and its lower-case form; for EU members also the display
    name as written, upper-cased and lower-cased. Order is stable and
    duplicates are removed.
    """
    normalized = code.strip().upper()
    variants = [normalized, normalized.lower()]
    name = EU_COUNTRIES.get(normalized)
    if name is not None:
        variants.extend([name, name.upper(), name.lower()])
    return list(dict.fromkeys(variants))


__all__ = ["EU_COUNTRIES", "country_name", "country_variants"]
