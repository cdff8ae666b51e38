"""Query parameter parsing for the HTTP inspection endpoints."""


def _parse_since_param(params: dict[str, list[str]]) -> float:
    """Parse and validate the 'since' query parameter.

    Args:
        params: Parsed query string parameters (as returned by urllib.parse.parse_qs).

    Returns:
        Timestamp as float, defaulting to 0.0 if invalid or missing.
        Rejects negative, NaN, and infinite values, returning 0.0 for these cases.
    """
    try:
        value = float(params.get("since", ["0"])[0])
    except ValueError:
        return 0.0
    if value < 0 or value != value or value in (float("inf"), float("-inf")):
        return 0.0
    return value


def _parse_tag_param(params: dict[str, list[str]]) -> str | None:
    """Return the 'tag' query parameter, or None when missing or empty."""
    values = params.get("tag")
    if not values or not values[0]:
        return None
    return values[0]
