"""Poller configuration.

Field names match the TOML keys accepted by load_config().
"""

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from functools import cached_property
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from cloudwatch_poller.core.dimensions import build_dimensions
from cloudwatch_poller.core.errors import ConfigError
from cloudwatch_poller.core.models import Dimension, MetricSpec

DEFAULT_STATISTIC = "Average"
DEFAULT_STS_SESSION_NAME = "cloudwatch-poller"
_NUMERIC_FIELDS = ("period", "interval", "open_timeout", "read_timeout", "offset")
_STRING_FIELDS = ("tag", "namespace", "metric_name", "statistics")


def parse_metric_specs(metric_names: str, default_statistic: str) -> list[MetricSpec]:
    """Parse a comma-separated metric list.

    Each entry is ``name`` or ``name:statistic``. Entries without a
    statistic use ``default_statistic``. Empty entries are skipped.
    """
    specs = []
    for entry in metric_names.split(","):
        if not entry.strip():
            continue
        name, _, statistic = entry.partition(":")
        specs.append(MetricSpec(name=name, statistic=statistic or default_statistic))
    return specs


def format_metric_specs(specs: list[MetricSpec]) -> str:
    """Render metric specs back into the comma-separated form."""
    return ",".join(f"{spec.name}:{spec.statistic}" for spec in specs)


def normalize_endpoint(endpoint: str) -> str:
    """Prefix an endpoint with https:// unless it already has an http(s) scheme."""
    if urlparse(endpoint).scheme in ("http", "https"):
        return endpoint
    return f"https://{endpoint}"


def region_from_endpoint(endpoint: str) -> str | None:
    """Derive the region from an endpoint such as monitoring.us-east-1.amazonaws.com."""
    host = urlparse(normalize_endpoint(endpoint)).hostname or ""
    labels = host.split(".")
    if len(labels) < 2:
        return None
    return labels[1]


def _parse_record_attr(value: Any) -> dict[str, Any]:
    """Accept a mapping or a "key:value,key2:value2" string."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str):
        attrs: dict[str, Any] = {}
        for pair in filter(None, value.split(",")):
            key, sep, val = pair.partition(":")
            if not sep:
                raise ConfigError(f"record_attr entry {pair!r} is not key:value")
            attrs[key.strip()] = val.strip()
        return attrs
    raise ConfigError(f"record_attr must be a table or string, got {type(value).__name__}")


@dataclass(frozen=True)
class PollerConfig:
    """Settings for one poller instance.

    Attributes:
        tag: Tag attached to every emitted record.
        aws_key_id: Access key id; the SDK default chain is used when unset.
        aws_sec_key: Secret access key paired with aws_key_id.
        aws_use_sts: Assume aws_sts_role_arn through STS.
        aws_sts_role_arn: Role to assume when aws_use_sts is set.
        aws_sts_session_name: Session name for the assumed role.
        cw_endpoint: CloudWatch endpoint; https:// is added when no scheme.
        region: AWS region; derived from cw_endpoint when unset.
        namespace: Metric namespace (e.g., AWS/EC2).
        metric_name: Comma-separated ``name`` or ``name:statistic`` entries.
        statistics: Default statistic for entries without one.
        dimensions_name: Comma-separated dimension names.
        dimensions_value: Comma-separated dimension values.
        group_by: Comma-separated GROUP BY fields; switches to grouped queries.
        period: Aggregation bucket width in seconds.
        interval: Seconds between polling passes.
        open_timeout: Connect timeout in seconds.
        read_timeout: Read timeout in seconds.
        delayed_start: Sleep a random fraction of interval before the first pass.
        offset: Seconds subtracted from the current time for query windows.
        emit_zero: Emit a zero value when a query returns no data.
        record_attr: Static attributes merged into every record.
    """

    tag: str
    aws_key_id: str | None = field(default=None, repr=False)
    aws_sec_key: str | None = field(default=None, repr=False)
    aws_use_sts: bool = False
    aws_sts_role_arn: str | None = None
    aws_sts_session_name: str = DEFAULT_STS_SESSION_NAME
    cw_endpoint: str | None = None
    region: str | None = None
    namespace: str = ""
    metric_name: str = ""
    statistics: str = DEFAULT_STATISTIC
    dimensions_name: str | None = None
    dimensions_value: str | None = None
    group_by: str | None = None
    period: int = 300
    interval: float = 300
    open_timeout: float = 10
    read_timeout: float = 30
    delayed_start: bool = False
    offset: float = 0
    emit_zero: bool = False
    record_attr: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in _STRING_FIELDS:
            if not isinstance(getattr(self, name), str):
                raise ConfigError(f"{name} must be a string")
        if not self.tag:
            raise ConfigError("tag is required")
        if not self.namespace:
            raise ConfigError("namespace is required")
        if not self.metric_name:
            raise ConfigError("metric_name is required")
        if not parse_metric_specs(self.metric_name, self.statistics):
            raise ConfigError(f"metric_name {self.metric_name!r} names no metrics")
        for name in _NUMERIC_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{name} must be a number, got {value!r}")
        if not isinstance(self.period, int):
            raise ConfigError(
                f"period must be a whole number of seconds, got {self.period!r}"
            )
        if self.period <= 0:
            raise ConfigError(f"period must be positive, got {self.period}")
        if self.interval <= 0:
            raise ConfigError(f"interval must be positive, got {self.interval}")
        if self.open_timeout < 0 or self.read_timeout < 0:
            raise ConfigError("timeouts must not be negative")
        if self.aws_use_sts and not self.aws_sts_role_arn:
            raise ConfigError("aws_sts_role_arn is required when aws_use_sts is set")
        object.__setattr__(self, "record_attr", _parse_record_attr(self.record_attr))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PollerConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @property
    def grouped(self) -> bool:
        """True when metrics are queried with GROUP BY expressions."""
        return bool(self.group_by)

    @property
    def endpoint_url(self) -> str | None:
        if self.cw_endpoint is None:
            return None
        return normalize_endpoint(self.cw_endpoint)

    @property
    def resolved_region(self) -> str | None:
        if self.region:
            return self.region
        if self.cw_endpoint:
            return region_from_endpoint(self.cw_endpoint)
        return None

    @cached_property
    def metric_specs(self) -> list[MetricSpec]:
        return parse_metric_specs(self.metric_name, self.statistics)

    @cached_property
    def dimensions(self) -> list[Dimension]:
        return build_dimensions(self.dimensions_name, self.dimensions_value)

    @property
    def group_by_fields(self) -> list[str]:
        if not self.group_by:
            return []
        return [name.strip() for name in self.group_by.split(",") if name.strip()]


def load_config(path: str | Path) -> PollerConfig:
    """Load a PollerConfig from a TOML file.

    The settings may sit at the top level or under a [poller] table.
    """
    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{path}: invalid TOML: {e}") from e
    if "poller" in data and isinstance(data["poller"], Mapping):
        data = data["poller"]
    return PollerConfig.from_mapping(data)
