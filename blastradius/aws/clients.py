"""boto3 client bundle.

The engine only ever issues list/describe/get calls. Retries and backoff are
delegated to botocore's retry handler, configured once here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config

from blastradius import __version__
from blastradius.models.config import AWSConfig
from blastradius.observability.logging import get_logger

_log = get_logger("aws")


@dataclass
class AWSClients:
    """One client per AWS service the expanders talk to."""

    elbv2: Any
    ecs: Any
    lambda_: Any
    rds: Any
    route53: Any
    application_autoscaling: Any
    region: str = ""


def build_clients(config: AWSConfig) -> AWSClients:
    """Create every service client from one shared boto3 session."""
    session = boto3.Session(
        profile_name=config.profile or None,
        region_name=config.region or None,
    )
    botocore_config = Config(
        retries={"max_attempts": config.max_attempts, "mode": config.retry_mode},
        user_agent_extra=f"blast-radius/{__version__}",
    )

    def client(service: str) -> Any:
        return session.client(service, config=botocore_config)

    clients = AWSClients(
        elbv2=client("elbv2"),
        ecs=client("ecs"),
        lambda_=client("lambda"),
        rds=client("rds"),
        route53=client("route53"),
        application_autoscaling=client("application-autoscaling"),
        region=session.region_name or "",
    )
    _log.debug("aws_clients_created", region=clients.region, profile=config.profile or "default")
    return clients
