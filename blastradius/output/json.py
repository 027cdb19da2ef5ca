"""JSON rendering of the full node and edge collections."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from blastradius.graph.dependency_graph import DependencyGraph


class EvidenceDocument(BaseModel):
    api_call: str
    fields: dict[str, Any] = Field(default_factory=dict)
    heuristic: bool = False


class NodeDocument(BaseModel):
    id: str
    type: str
    name: str = ""
    arn: str = ""
    region: str = ""
    account: str = ""
    tags: dict[str, str] = Field(default_factory=dict)
    attributes: dict[str, Any] = Field(default_factory=dict)


class EdgeDocument(BaseModel):
    source: str
    target: str
    relation: str
    evidence: EvidenceDocument


class GraphDocument(BaseModel):
    """Top-level ``{"nodes": [...], "edges": [...]}`` document."""

    nodes: list[NodeDocument]
    edges: list[EdgeDocument]


def graph_document(graph: DependencyGraph) -> GraphDocument:
    nodes = [
        NodeDocument(
            id=n.id,
            type=str(n.type),
            name=n.name,
            arn=n.arn,
            region=n.region,
            account=n.account,
            tags=n.tags,
            attributes=n.attributes,
        )
        for n in sorted(graph.nodes(), key=lambda n: n.id)
    ]
    edges = [
        EdgeDocument(
            source=e.source,
            target=e.target,
            relation=str(e.relation),
            evidence=EvidenceDocument(
                api_call=e.evidence.api_call,
                fields=e.evidence.fields,
                heuristic=e.evidence.heuristic,
            ),
        )
        for e in graph.edges()
    ]
    return GraphDocument(nodes=nodes, edges=edges)


def render_json(graph: DependencyGraph) -> str:
    return graph_document(graph).model_dump_json(indent=2) + "\n"
