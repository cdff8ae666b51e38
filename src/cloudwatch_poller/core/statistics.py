"""Translation between statistic tokens and aggregation codes.

GetMetricStatistics takes the long statistic name (Average), while
metric math SELECT expressions take the aggregation function (AVG).
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class Statistic(Enum):
    """CloudWatch statistics with their aggregation codes."""

    SAMPLE_COUNT = ("SampleCount", "COUNT")
    AVERAGE = ("Average", "AVG")
    SUM = ("Sum", "SUM")
    MINIMUM = ("Minimum", "MIN")
    MAXIMUM = ("Maximum", "MAX")

    def __init__(self, token: str, code: str) -> None:
        self.token = token
        self.code = code

    @classmethod
    def lookup(cls, value: str) -> "Statistic | None":
        """Find a statistic by long token or short code."""
        return _BY_TOKEN.get(value) or _BY_CODE.get(value)


_BY_TOKEN = {s.token: s for s in Statistic}
_BY_CODE = {s.code: s for s in Statistic}

STATISTIC_TOKENS = tuple(_BY_TOKEN)
AGGREGATION_CODES = tuple(_BY_CODE)


def to_short_form(token: str) -> str:
    """Return the aggregation code for a statistic token.

    Codes pass through as is. Unknown values are returned unchanged
    with a warning.
    """
    statistic = Statistic.lookup(token)
    if statistic is None:
        logger.warning(
            "statistic %r is not in the set %s", token, list(AGGREGATION_CODES)
        )
        return token
    return statistic.code


def to_long_form(code: str) -> str:
    """Return the statistic token for an aggregation code.

    Tokens pass through as is. Unknown values are returned unchanged
    with a warning.
    """
    statistic = Statistic.lookup(code)
    if statistic is None:
        logger.warning(
            "statistic %r is not in the set %s", code, list(STATISTIC_TOKENS)
        )
        return code
    return statistic.token


def value_key(token: str) -> str:
    """Return the datapoint field name holding a statistic's value."""
    return token.lower()
