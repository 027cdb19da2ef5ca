"""ARN parsing helpers shared by the identifier and the expanders."""

from __future__ import annotations

import re
from dataclasses import dataclass

ARN_MIN_PARTS = 6

_RESOURCE_SPLIT = re.compile(r"[/:]")


@dataclass(frozen=True)
class ParsedARN:
    """The five fixed fields of an ARN plus the raw resource path."""

    partition: str
    service: str
    region: str
    account: str
    resource: str

    @property
    def resource_segments(self) -> list[str]:
        """Resource path split on both ``/`` and ``:``."""
        return _RESOURCE_SPLIT.split(self.resource)


def split_arn(arn: str) -> ParsedARN | None:
    """Split an ARN into its fields, or return None if it is not one."""
    if not arn.startswith("arn:"):
        return None
    parts = arn.split(":", 5)
    if len(parts) < ARN_MIN_PARTS:
        return None
    return ParsedARN(
        partition=parts[1],
        service=parts[2],
        region=parts[3],
        account=parts[4],
        resource=parts[5],
    )


def region_and_account(arn: str) -> tuple[str, str]:
    parsed = split_arn(arn)
    if parsed is None:
        return "", ""
    return parsed.region, parsed.account


def build_arn(partition: str, service: str, region: str, account: str, resource: str) -> str:
    return f"arn:{partition}:{service}:{region}:{account}:{resource}"


def name_from_arn(arn: str) -> str:
    """Last ``/``- or ``:``-separated segment: queue names, role names, etc."""
    parsed = split_arn(arn)
    if parsed is None:
        return arn
    segments = [s for s in parsed.resource_segments if s]
    return segments[-1] if segments else arn


def role_name_from_arn(arn: str) -> str:
    # arn:aws:iam::123456789012:role/path/role-name
    if "/" in arn:
        return arn.rsplit("/", 1)[-1]
    return arn


def lambda_name_from_arn(arn: str) -> str:
    # arn:aws:lambda:region:account:function:name[:qualifier]
    parsed = split_arn(arn)
    if parsed is None:
        return arn
    segments = parsed.resource_segments
    if len(segments) >= 2 and segments[0] == "function":
        return segments[1]
    return arn


def target_group_name_from_arn(arn: str) -> str:
    # arn:aws:elasticloadbalancing:region:account:targetgroup/name/0123456789abcdef
    parsed = split_arn(arn)
    if parsed is None:
        return arn
    segments = parsed.resource.split("/")
    if len(segments) >= 3 and segments[0] == "targetgroup":
        return segments[1]
    return name_from_arn(arn)
