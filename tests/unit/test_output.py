"""Tests for the tree, DOT and JSON renderers."""

from __future__ import annotations

import json

import pytest

from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Edge, Evidence, Node
from blastradius.output import render, render_dot, render_json, render_tree

_LB = "arn:aws:elasticloadbalancing:us-east-1:1:loadbalancer/app/web/abc"
_FN = "arn:aws:lambda:us-east-1:1:function:my-fn"


def _graph() -> DependencyGraph:
    graph = DependencyGraph()
    graph.add_node(
        Node(
            id=_LB,
            type="LoadBalancer",
            name="web",
            arn=_LB,
            region="us-east-1",
            attributes={"scheme": "internet-facing", "dnsName": "web.elb.amazonaws.com"},
        )
    )
    graph.add_node(Node(id="sg-1", type="SecurityGroup", name="sg-1"))
    graph.add_node(Node(id="tg", type="TargetGroup", name="web-tg", arn="arn:aws:elasticloadbalancing:tg"))
    graph.add_node(Node(id="fn", type="Lambda", name="reader"))
    graph.add_edge(Edge(_LB, "sg-1", "uses-security-group", Evidence("DescribeLoadBalancers")))
    graph.add_edge(Edge(_LB, "tg", "forwards-to", Evidence("DescribeListeners")))
    graph.add_edge(Edge("tg", "fn", "routes-to-target", Evidence("DescribeTargetHealth")))
    graph.add_edge(Edge("fn", "sg-1", "connects-to", Evidence("ListFunctions", heuristic=True)))
    return graph


def _event_source_graph() -> DependencyGraph:
    graph = DependencyGraph()
    graph.add_node(Node(id=_FN, type="Lambda", name="my-fn", arn=_FN))
    graph.add_node(Node(id="sqs:jobs", type="SQSQueue", name="jobs"))
    graph.add_edge(Edge("sqs:jobs", _FN, "triggers", Evidence("ListEventSourceMappings")))
    return graph


class TestRenderTree:
    def test_levels_and_summary(self) -> None:
        out = render_tree(_graph(), _LB)

        assert "[Level 0] Root" in out
        assert "[Level 1] Direct Dependencies" in out
        assert "[Level 2] Transitive Dependencies" in out
        assert "└─ LoadBalancer: web\n" in out
        assert "├─ SecurityGroup: sg-1 [uses-security-group]" in out
        assert "└─ TargetGroup: web-tg [forwards-to]" in out
        assert "└─ Lambda: reader [routes-to-target]" in out
        assert out.rstrip().endswith("Summary: 4 nodes, 4 edges")

    def test_arn_shown_only_when_different_from_id(self) -> None:
        out = render_tree(_graph(), _LB)
        assert "   ARN: arn:aws:elasticloadbalancing:tg" in out
        assert f"   ARN: {_LB}" not in out

    def test_attributes_sorted(self) -> None:
        out = render_tree(_graph(), _LB)
        assert out.index("   dnsName: web.elb.amazonaws.com") < out.index("   scheme: internet-facing")

    def test_unknown_root(self) -> None:
        with pytest.raises(ValueError, match="not found"):
            render_tree(_graph(), "missing")

    def test_event_source_pointing_at_root_is_listed(self) -> None:
        graph = _event_source_graph()

        out = render_tree(graph, _FN)

        assert "[Level 1] Direct Dependencies" in out
        assert "└─ SQSQueue: jobs [triggers]" in out
        assert out.rstrip().endswith("Summary: 2 nodes, 1 edges")

    def test_recorded_levels_drive_the_layout(self) -> None:
        graph = _event_source_graph()
        graph.add_node(Node(id="orphan", type="IAMRole", name="orphan"))

        out = render_tree(graph, _FN, levels=[[_FN], ["sqs:jobs", "orphan"]])

        assert "├─ SQSQueue: jobs [triggers]" in out
        assert "└─ IAMRole: orphan\n" in out


class TestRenderDot:
    def test_structure(self) -> None:
        out = render_dot(_graph())
        assert out.startswith("digraph blast_radius {\n  rankdir=LR;")
        assert out.rstrip().endswith("}")
        assert f'"{_LB}" [label="LoadBalancer\\nweb\\n(us-east-1)"];' in out
        assert '"tg" -> "fn" [label="routes-to-target"];' in out

    def test_heuristic_edges_are_dashed(self) -> None:
        out = render_dot(_graph())
        assert '"fn" -> "sg-1" [label="connects-to (heuristic)", style=dashed];' in out
        assert out.count("style=dashed") == 1

    def test_quotes_are_escaped(self) -> None:
        graph = DependencyGraph()
        graph.add_node(Node(id='we"ird', type="Thing", name='na"me'))
        out = render_dot(graph)
        assert '"we\\"ird" [label="Thing\\nna\\"me"];' in out


class TestRenderJson:
    def test_document_shape(self) -> None:
        doc = json.loads(render_json(_graph()))
        assert set(doc) == {"nodes", "edges"}
        assert len(doc["nodes"]) == 4
        assert len(doc["edges"]) == 4
        heuristic = [e for e in doc["edges"] if e["evidence"]["heuristic"]]
        assert heuristic == [
            {
                "source": "fn",
                "target": "sg-1",
                "relation": "connects-to",
                "evidence": {"api_call": "ListFunctions", "fields": {}, "heuristic": True},
            }
        ]
        lb = next(n for n in doc["nodes"] if n["id"] == _LB)
        assert lb["attributes"]["scheme"] == "internet-facing"

    def test_empty_graph(self) -> None:
        assert json.loads(render_json(DependencyGraph())) == {"nodes": [], "edges": []}


class TestRenderDispatch:
    @pytest.mark.parametrize("fmt", ["tree", "dot", "json"])
    def test_known_formats(self, fmt: str) -> None:
        assert render(fmt, _graph(), _LB)

    def test_unknown_format(self) -> None:
        with pytest.raises(ValueError, match="unsupported output format"):
            render("yaml", _graph(), _LB)

    def test_renderers_do_not_mutate(self) -> None:
        graph = _graph()
        for fmt in ("tree", "dot", "json"):
            render(fmt, graph, _LB)
        assert (graph.node_count, graph.edge_count) == (4, 4)
