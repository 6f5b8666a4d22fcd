"""EU membership lookup."""

EU_COUNTRIES = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR",
    "DE", "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL",
    "PL", "PT", "RO", "SK", "SI", "ES", "SE",
})


def is_eu_country(code: str) -> bool:
    """Check whether an ISO 3166-1 alpha-2 code belongs to an EU member state."""
    return bool(code) and code.upper() in EU_COUNTRIES
