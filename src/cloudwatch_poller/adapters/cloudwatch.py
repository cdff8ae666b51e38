"""boto3 implementation of MetricsClientPort."""

import logging
from datetime import datetime, timezone
from typing import Any

import boto3
import botocore.session
from botocore.config import Config
from botocore.credentials import RefreshableCredentials

from cloudwatch_poller.core.config import PollerConfig
from cloudwatch_poller.core.models import (
    AggregateQuery,
    Datapoint,
    GroupedQuery,
    Series,
)
from cloudwatch_poller.core.statistics import STATISTIC_TOKENS, value_key

logger = logging.getLogger(__name__)


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _to_unix(value: datetime | float) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    return float(value)


def _parse_datapoint(raw: dict[str, Any]) -> Datapoint:
    """Convert a GetMetricStatistics datapoint into a Datapoint.

    Standard statistics are keyed by their lower-cased name; extended
    statistics (e.g. p99) are keyed the same way.
    """
    values = {
        value_key(token): float(raw[token]) for token in STATISTIC_TOKENS if token in raw
    }
    for name, value in raw.get("ExtendedStatistics", {}).items():
        values[value_key(name)] = float(value)
    return Datapoint(timestamp=_to_unix(raw["Timestamp"]), values=values)


class CloudWatchClient:
    """Wrapper over the CloudWatch statistics and metric data APIs.

    Args:
        client: A boto3 "cloudwatch" client.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def fetch_aggregate_statistics(self, query: AggregateQuery) -> list[Datapoint]:
        """Call GetMetricStatistics for one metric."""
        request: dict[str, Any] = {
            "Namespace": query.namespace,
            "MetricName": query.metric_name,
            "Dimensions": [d.to_api() for d in query.dimensions],
            "StartTime": _to_datetime(query.start_time),
            "EndTime": _to_datetime(query.end_time),
            "Period": query.period,
        }
        if query.statistic in STATISTIC_TOKENS:
            request["Statistics"] = [query.statistic]
        else:
            request["ExtendedStatistics"] = [query.statistic]
        resp = self._client.get_metric_statistics(**request)
        logger.debug(
            "statistics: %s %s %s %s",
            query.namespace,
            query.metric_name,
            query.statistic,
            request["Dimensions"],
        )
        return [_parse_datapoint(raw) for raw in resp.get("Datapoints", [])]

    def fetch_grouped_series(self, query: GroupedQuery) -> list[Series]:
        """Call GetMetricData for one SELECT expression, following NextToken."""
        kwargs: dict[str, Any] = {
            "MetricDataQueries": [
                {
                    "Id": query.query_id,
                    "Expression": query.expression,
                    "ReturnData": True,
                    "Period": query.period,
                }
            ],
            "StartTime": _to_datetime(query.start_time),
            "EndTime": _to_datetime(query.end_time),
        }
        series: list[Series] = []
        while True:
            resp = self._client.get_metric_data(**kwargs)
            for result in resp.get("MetricDataResults", []):
                series.append(
                    Series(
                        label=result.get("Label", ""),
                        timestamps=[_to_unix(t) for t in result.get("Timestamps", [])],
                        values=[float(v) for v in result.get("Values", [])],
                    )
                )
            next_token = resp.get("NextToken")
            if not next_token:
                break
            kwargs["NextToken"] = next_token
        logger.debug("metricdata: %s (%d series)", query.expression, len(series))
        return series


def assume_role_credentials(
    config: PollerConfig, sts_client: Any | None = None
) -> RefreshableCredentials:
    """Credentials for aws_sts_role_arn that re-assume the role before expiry.

    Args:
        config: Poller settings naming the role and session.
        sts_client: STS client; one is created for the resolved region if omitted.
    """
    sts = sts_client or boto3.client("sts", region_name=config.resolved_region)

    def refresh() -> dict[str, str]:
        assumed = sts.assume_role(
            RoleArn=config.aws_sts_role_arn,
            RoleSessionName=config.aws_sts_session_name,
        )["Credentials"]
        logger.info(
            "assumed role %s until %s", config.aws_sts_role_arn, assumed["Expiration"]
        )
        return {
            "access_key": assumed["AccessKeyId"],
            "secret_key": assumed["SecretAccessKey"],
            "token": assumed["SessionToken"],
            "expiry_time": assumed["Expiration"].isoformat(),
        }

    return RefreshableCredentials.create_from_metadata(
        metadata=refresh(),
        refresh_using=refresh,
        method="sts-assume-role",
    )


def create_session(config: PollerConfig) -> boto3.Session:
    """Build a boto3 session for the configured credential source.

    Assumed-role credentials refresh themselves; static keys are used as
    given; otherwise the SDK default chain applies.
    """
    if config.aws_use_sts:
        core = botocore.session.get_session()
        core._credentials = assume_role_credentials(config)
        return boto3.Session(botocore_session=core, region_name=config.resolved_region)
    if config.aws_key_id and config.aws_sec_key:
        return boto3.Session(
            aws_access_key_id=config.aws_key_id,
            aws_secret_access_key=config.aws_sec_key,
            region_name=config.resolved_region,
        )
    return boto3.Session(region_name=config.resolved_region)


def create_cloudwatch_client(config: PollerConfig) -> CloudWatchClient:
    """Build a CloudWatchClient from poller settings."""
    client = create_session(config).client(
        "cloudwatch",
        endpoint_url=config.endpoint_url,
        config=Config(
            connect_timeout=config.open_timeout,
            read_timeout=config.read_timeout,
        ),
    )
    logger.info(
        "cloudwatch client created (region=%s, endpoint=%s)",
        config.resolved_region,
        config.endpoint_url or "default",
    )
    return CloudWatchClient(client)
