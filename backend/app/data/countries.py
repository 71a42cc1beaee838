"""Supported marketplace routes and currencies.

Travelers depart from (and shoppers buy in) Europe and North America; deliveries
land in the supported African destinations.
"""

DEPARTURE_COUNTRIES: dict[str, str] = {
    "US": "United States",
    "GB": "United Kingdom",
    "DE": "Germany",
    "FR": "France",
    "IT": "Italy",
    "ES": "Spain",
    "NL": "Netherlands",
    "CA": "Canada",
    "IE": "Ireland",
    "BE": "Belgium",
    "CH": "Switzerland",
    "AT": "Austria",
    "DK": "Denmark",
    "SE": "Sweden",
    "NO": "Norway",
    "PT": "Portugal",
    "FI": "Finland",
}

ARRIVAL_COUNTRIES: dict[str, str] = {
    "NG": "Nigeria",
    "GH": "Ghana",
    "KE": "Kenya",
    "ZA": "South Africa",
}

SUPPORTED_CURRENCIES: frozenset[str] = frozenset({
    "USD", "GBP", "EUR", "CAD", "CHF", "DKK", "SEK", "NOK",
    "NGN", "GHS", "KES", "ZAR",
})

_NAME_TO_CODE = {
    name.lower(): code
    for code, name in {**DEPARTURE_COUNTRIES, **ARRIVAL_COUNTRIES}.items()
}


def to_country_code(value: str) -> str | None:
    """Canonicalize an ISO alpha-2 code or English country name to its code."""
    if not value:
        return None
    cleaned = value.strip()
    upper = cleaned.upper()
    if upper in DEPARTURE_COUNTRIES or upper in ARRIVAL_COUNTRIES:
        return upper
    return _NAME_TO_CODE.get(cleaned.lower())


def is_departure_country(code: str) -> bool:
    return code in DEPARTURE_COUNTRIES


def is_arrival_country(code: str) -> bool:
    return code in ARRIVAL_COUNTRIES
