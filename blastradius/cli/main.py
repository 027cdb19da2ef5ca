"""``blast-radius RESOURCE``: discover and render a resource's dependencies.

Flags override the BLAST_RADIUS_* environment; the rendered graph goes to
stdout and structured logs to stderr.
"""

from __future__ import annotations

import asyncio

import click

from blastradius import __version__
from blastradius.aws.clients import build_clients
from blastradius.config import load_config, validate_heuristics
from blastradius.discover.discoverer import Discoverer
from blastradius.discover.errors import DiscoveryError
from blastradius.models.config import KNOWN_HEURISTICS, DiscoveryConfig
from blastradius.observability.logging import get_logger, setup_logging
from blastradius.output import FORMATS, render

_log = get_logger("cli")


def _parse_heuristics(ctx: click.Context, param: click.Parameter, value: str | None) -> frozenset[str] | None:
    if value is None:
        return None
    names = [item.strip() for item in value.split(",") if item.strip()]
    try:
        return validate_heuristics(names)
    except ValueError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc


@click.command(name="blast-radius", context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("resource")
@click.option("--profile", default=None, help="AWS profile to use.")
@click.option("--region", default=None, help="AWS region to use.")
@click.option("--depth", type=click.IntRange(min=0), default=None, help="Maximum traversal depth.  [default: 2]")
@click.option(
    "--max-nodes", type=click.IntRange(min=1), default=None, help="Maximum nodes to discover.  [default: 250]"
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(FORMATS),
    default="tree",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--heuristics",
    default=None,
    callback=_parse_heuristics,
    help=f"Comma-separated heuristics to enable ({', '.join(sorted(KNOWN_HEURISTICS))}).",
)
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Parallel expansions per level.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Run timeout in seconds.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, prog_name="blast-radius")
def cli(
    resource: str,
    profile: str | None,
    region: str | None,
    depth: int | None,
    max_nodes: int | None,
    fmt: str,
    heuristics: frozenset[str] | None,
    concurrency: int | None,
    timeout: float | None,
    debug: bool,
) -> None:
    """Discover the blast radius of an AWS RESOURCE (ARN or name)."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(f"invalid configuration: {exc}") from exc

    setup_logging("debug" if debug else config.log.level, json_output=config.log.json_output())

    discovery = config.discovery
    discovery_config = DiscoveryConfig(
        max_depth=depth if depth is not None else discovery.max_depth,
        max_nodes=max_nodes if max_nodes is not None else discovery.max_nodes,
        heuristics=heuristics if heuristics is not None else discovery.heuristics,
        concurrency=concurrency if concurrency is not None else discovery.concurrency,
        timeout_seconds=timeout if timeout is not None else discovery.timeout_seconds,
    )
    if profile:
        config.aws.profile = profile
    if region:
        config.aws.region = region

    try:
        clients = build_clients(config.aws)
        result = asyncio.run(Discoverer(clients, discovery_config).discover(resource))
    except DiscoveryError as exc:
        raise click.ClickException(str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        _log.error("discovery_failed", resource=resource, error=str(exc), error_type=type(exc).__name__)
        raise click.ClickException(f"discovery failed: {exc}") from exc

    if result.truncated:
        click.echo(
            f"warning: stopped at {discovery_config.max_nodes} nodes; output is incomplete",
            err=True,
        )
    click.echo(render(fmt, result.graph, result.root_id, result.levels), nl=False)
