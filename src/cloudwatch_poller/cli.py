"""
cloudwatch-poller command line.

Commands:
- run: Poll CloudWatch and emit records until interrupted
- check: Validate a config file and show the queries it produces
"""

import asyncio
import json
import logging
import signal
from dataclasses import asdict
from pathlib import Path

import typer

from cloudwatch_poller.adapters.logging import SinkLogHandler
from cloudwatch_poller.adapters.sinks import NDJSONStreamSink, SQLiteEventSink
from cloudwatch_poller.core.config import PollerConfig, load_config
from cloudwatch_poller.core.errors import ConfigError
from cloudwatch_poller.core.ports import EventSinkPort
from cloudwatch_poller.core.queries import MetricQueryBuilder
from cloudwatch_poller.service import PollerService

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Poll CloudWatch metrics and emit them as records.",
    no_args_is_help=True,
)


def _load(config_path: Path) -> PollerConfig:
    try:
        return load_config(config_path)
    except (OSError, ConfigError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2) from e


def _build_sink(kind: str, db: Path) -> EventSinkPort:
    if kind == "stdout":
        return NDJSONStreamSink()
    if kind == "sqlite":
        return SQLiteEventSink(str(db))
    typer.echo(f"error: unknown sink {kind!r} (expected stdout or sqlite)", err=True)
    raise typer.Exit(code=2)


async def _serve(service: PollerService) -> None:
    """Run the service until SIGINT or SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    async with service:
        await stop.wait()


@app.command("run")
def run(
    config_path: Path = typer.Argument(..., help="TOML configuration file"),
    sink: str = typer.Option(
        "stdout", "--sink", "-s", help="Record sink: stdout (NDJSON) or sqlite"
    ),
    db: Path = typer.Option(
        Path("records.db"), "--db", help="SQLite database for --sink sqlite"
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Logging level"),
    forward_logs: bool = typer.Option(
        False,
        "--forward-logs",
        help="Also emit warnings and errors as records tagged <tag>.log",
    ),
) -> None:
    """Poll CloudWatch and emit records until interrupted.

    Examples:
        cloudwatch-poller run ec2.toml
        cloudwatch-poller run ec2.toml --sink sqlite --db /var/lib/cw/records.db
    """
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    config = _load(config_path)
    record_sink = _build_sink(sink, db)
    if forward_logs:
        logging.getLogger("cloudwatch_poller").addHandler(
            SinkLogHandler(record_sink, tag=f"{config.tag}.log")
        )
    asyncio.run(_serve(PollerService(config, record_sink)))


@app.command("check")
def check(
    config_path: Path = typer.Argument(..., help="TOML configuration file"),
) -> None:
    """Validate a config file and print the queries of one pass as JSON."""
    config = _load(config_path)
    builder = MetricQueryBuilder(
        namespace=config.namespace,
        period=config.period,
        dimensions=config.dimensions,
        group_by=config.group_by,
        offset=config.offset,
    )
    summary = {
        "tag": config.tag,
        "mode": "grouped" if config.grouped else "aggregate",
        "region": config.resolved_region,
        "endpoint": config.endpoint_url,
        "dimensions": [asdict(d) for d in config.dimensions],
        "queries": [asdict(builder.build(s)) for s in config.metric_specs],
    }
    typer.echo(json.dumps(summary, indent=2))
