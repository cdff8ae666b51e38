"""Dimension filters built from the configured name/value lists."""

import logging

from cloudwatch_poller.core.models import Dimension

logger = logging.getLogger(__name__)


def split_list(csv: str) -> list[str]:
    """Split a comma-separated list, dropping trailing empty entries.

    Inner empty entries are kept so positional pairing stays aligned.
    """
    entries = csv.split(",")
    while entries and not entries[-1]:
        entries.pop()
    return entries


def build_dimensions(
    names_csv: str | None, values_csv: str | None
) -> list[Dimension]:
    """Pair comma-separated dimension names with their values.

    Args:
        names_csv: Comma-separated dimension names (e.g., "InstanceId,Role").
        values_csv: Comma-separated values, in the same order as the names.

    Returns:
        Dimensions in configured order. When the lists differ in length, a
        warning is logged and pairing stops at the shorter list. When only one
        list is given, a single dimension is built with an empty string on the
        missing side. When neither is given, the result is empty.
    """
    if names_csv and values_csv:
        names = split_list(names_csv)
        values = split_list(values_csv)
        if len(names) != len(values):
            logger.warning(
                "dimensions_name has %d entries but dimensions_value has %d; "
                "using the first %d pairs",
                len(names),
                len(values),
                min(len(names), len(values)),
            )
        return [Dimension(name=n, value=v) for n, v in zip(names, values)]
    if names_csv or values_csv:
        return [Dimension(name=names_csv or "", value=values_csv or "")]
    return []
