"""Reverse DNS lookup: which Route 53 alias records point at a DNS name."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from blastradius.discover.base import AWS_ERRORS, error_code, paginate
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Edge, Evidence, Node, Relation, ResourceType
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients

_log = get_logger("discover.route53")

_DUALSTACK_PREFIX = "dualstack."


def normalize_dns_name(name: str) -> str:
    """Lower-case, drop the trailing dot and the ELB ``dualstack.`` prefix."""
    name = name.strip().rstrip(".").lower()
    if name.startswith(_DUALSTACK_PREFIX):
        name = name[len(_DUALSTACK_PREFIX) :]
    return name


def record_to_node(record: dict[str, Any], zone: dict[str, Any], region: str, account: str) -> Node:
    name = record.get("Name", "").rstrip(".")
    record_type = record.get("Type", "")
    zone_id = zone.get("Id", "")
    attributes: dict[str, Any] = {
        "type": record_type,
        "hostedZoneId": zone_id,
        "hostedZoneName": zone.get("Name", "").rstrip("."),
        "privateZone": zone.get("Config", {}).get("PrivateZone", False),
    }
    alias = record.get("AliasTarget")
    if alias:
        attributes["aliasTarget"] = {
            "dnsName": alias.get("DNSName"),
            "hostedZoneId": alias.get("HostedZoneId"),
            "evaluateTargetHealth": alias.get("EvaluateTargetHealth"),
        }
    if record.get("SetIdentifier"):
        attributes["setIdentifier"] = record["SetIdentifier"]

    # Route 53 is global; region/account are borrowed from the aliased
    # resource so the record renders alongside it.
    node_id = f"route53:{zone_id}:{name}:{record_type}"
    if record.get("SetIdentifier"):
        node_id += f":{record['SetIdentifier']}"
    return Node(
        id=node_id,
        type=ResourceType.ROUTE53_RECORD,
        name=name,
        region=region,
        account=account,
        attributes=attributes,
    )


class AliasResolver:
    """Finds alias records across all hosted zones that target a DNS name.

    Used by the load balancer expander; edges run from the record to the
    aliased resource.
    """

    def __init__(self, clients: AWSClients) -> None:
        self._route53 = clients.route53

    def find_aliases(self, dns_name: str, target: Node, graph: DependencyGraph) -> list[str]:
        """Add ``record -aliases-to-> target`` edges and return the record ids.

        Raises botocore errors if the hosted zones themselves cannot be
        listed; a single unreadable zone is skipped.
        """
        wanted = normalize_dns_name(dns_name)
        neighbors: list[str] = []

        zones = paginate(self._route53, "list_hosted_zones", "HostedZones")
        _log.debug("alias_search_started", dns_name=wanted, zones=len(zones))

        for zone in zones:
            zone_id = zone.get("Id")
            if not zone_id:
                continue
            try:
                records = self._alias_records(zone_id, wanted)
            except AWS_ERRORS as exc:
                _log.warning(
                    "hosted_zone_search_failed",
                    zone_id=zone_id,
                    error_code=error_code(exc),
                    error=str(exc),
                )
                continue

            for record in records:
                record_node = record_to_node(record, zone, target.region, target.account)
                if not graph.merge_node(record_node):
                    continue
                graph.add_edge(
                    Edge(
                        source=record_node.id,
                        target=target.id,
                        relation=Relation.ALIASES_TO,
                        evidence=Evidence(
                            api_call="ListResourceRecordSets",
                            fields={
                                "Name": record.get("Name"),
                                "Type": record.get("Type"),
                                "AliasTarget": record.get("AliasTarget"),
                                "HostedZoneId": zone_id,
                                "HostedZoneName": zone.get("Name"),
                            },
                        ),
                    )
                )
                neighbors.append(record_node.id)

        return neighbors

    def _alias_records(self, zone_id: str, wanted: str) -> list[dict[str, Any]]:
        records = paginate(self._route53, "list_resource_record_sets", "ResourceRecordSets", HostedZoneId=zone_id)
        return [
            r
            for r in records
            if r.get("AliasTarget", {}).get("DNSName") and normalize_dns_name(r["AliasTarget"]["DNSName"]) == wanted
        ]
