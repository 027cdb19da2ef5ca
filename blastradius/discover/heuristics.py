"""Best-effort upstream discovery for data stores.

Nothing in the AWS control plane says which compute talks to a database.
When the ``rds-endpoint`` heuristic is enabled, this module scans Lambda
environment variables and ECS container environments for the store's
endpoint hostname. Matches are recorded as ``consumer -connects-to-> store``
edges whose evidence is flagged ``heuristic=True``; this is the only module
that produces such evidence.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from blastradius.discover.base import AWS_ERRORS, error_code, paginate
from blastradius.discover.ecs import cluster_from_service_arn, ecs_service_to_node
from blastradius.discover.lambda_function import lambda_function_to_node
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Edge, Evidence, Node, Relation
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients

_log = get_logger("discover.heuristics")

# describe_services accepts at most 10 services per call.
_DESCRIBE_SERVICES_BATCH = 10


def _chunks(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def matching_variables(variables: dict[str, str] | None, endpoint: str) -> list[str]:
    """Names of the variables whose value contains ``endpoint`` (case-insensitive)."""
    if not variables or not endpoint:
        return []
    needle = endpoint.lower()
    return sorted(name for name, value in variables.items() if value and needle in str(value).lower())


class EndpointHeuristic:
    """Finds Lambda functions and ECS services whose environment references an endpoint."""

    def __init__(self, clients: AWSClients) -> None:
        self._lambda = clients.lambda_
        self._ecs = clients.ecs

    def find_consumers(self, endpoint: str, store: Node, graph: DependencyGraph) -> list[str]:
        """Link every consumer of ``endpoint`` to ``store`` and return the consumer ids.

        API failures are logged and skipped; an empty list is a valid answer.
        """
        if not endpoint:
            return []
        _log.debug("endpoint_scan_started", endpoint=endpoint, store=store.id)

        consumers: list[str] = []
        for label, scan in (("lambda", self._scan_lambda), ("ecs", self._scan_ecs)):
            try:
                consumers.extend(scan(endpoint, store, graph))
            except AWS_ERRORS as exc:
                _log.warning(
                    "heuristic_scan_failed",
                    scan=label,
                    endpoint=endpoint,
                    error_code=error_code(exc),
                    error=str(exc),
                )

        if consumers:
            _log.info("heuristic_consumers_found", endpoint=endpoint, store=store.id, count=len(consumers))
        return consumers

    def _scan_lambda(self, endpoint: str, store: Node, graph: DependencyGraph) -> list[str]:
        consumers: list[str] = []
        for function in paginate(self._lambda, "list_functions", "Functions"):
            variables = (function.get("Environment") or {}).get("Variables")
            matched = matching_variables(variables, endpoint)
            if not matched:
                continue
            consumer = lambda_function_to_node(function)
            if self._connect(graph, consumer, store, "ListFunctions", {"Variables": matched, "Endpoint": endpoint}):
                consumers.append(consumer.id)
        return consumers

    def _scan_ecs(self, endpoint: str, store: Node, graph: DependencyGraph) -> list[str]:
        consumers: list[str] = []
        # A task definition is shared by many services; describe each once.
        td_matches: dict[str, list[str]] = {}
        for cluster_arn in paginate(self._ecs, "list_clusters", "clusterArns"):
            service_arns = paginate(self._ecs, "list_services", "serviceArns", cluster=cluster_arn)
            for batch in _chunks(service_arns, _DESCRIBE_SERVICES_BATCH):
                output = self._ecs.describe_services(cluster=cluster_arn, services=batch, include=["TAGS"])
                for svc in output.get("services", []):
                    td_arn = svc.get("taskDefinition")
                    if not td_arn:
                        continue
                    if td_arn not in td_matches:
                        td_matches[td_arn] = self._task_definition_matches(td_arn, endpoint)
                    matched = td_matches[td_arn]
                    if not matched:
                        continue
                    cluster = cluster_from_service_arn(svc["serviceArn"]) or cluster_arn
                    consumer = ecs_service_to_node(svc, cluster)
                    fields: dict[str, Any] = {"TaskDefinition": td_arn, "Variables": matched, "Endpoint": endpoint}
                    if self._connect(graph, consumer, store, "DescribeTaskDefinition", fields):
                        consumers.append(consumer.id)
        return consumers

    def _task_definition_matches(self, td_arn: str, endpoint: str) -> list[str]:
        td = self._ecs.describe_task_definition(taskDefinition=td_arn)["taskDefinition"]
        matched: list[str] = []
        for container in td.get("containerDefinitions", []):
            variables = {env["name"]: env.get("value", "") for env in container.get("environment", []) if "name" in env}
            matched.extend(f"{container.get('name')}/{name}" for name in matching_variables(variables, endpoint))
        return matched

    def _connect(
        self, graph: DependencyGraph, consumer: Node, store: Node, api_call: str, fields: dict[str, Any]
    ) -> bool:
        if not graph.merge_node(consumer):
            return False
        graph.add_edge(
            Edge(
                source=consumer.id,
                target=store.id,
                relation=Relation.CONNECTS_TO,
                evidence=Evidence(api_call, fields, heuristic=True),
            )
        )
        return True
