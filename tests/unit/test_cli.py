"""Tests for the blast-radius click command."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from blastradius.cli import main as cli_main
from blastradius.cli import cli
from blastradius.discover.errors import InvalidIdentifierError
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import DiscoveryResult, Node

_FN_ARN = "arn:aws:lambda:us-east-1:123456789012:function:my-fn"
_ENV_KEYS = (
    "DEPTH",
    "MAX_NODES",
    "HEURISTICS",
    "CONCURRENCY",
    "TIMEOUT",
    "AWS_PROFILE",
    "AWS_REGION",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


def _result(truncated: bool = False) -> DiscoveryResult:
    graph = DependencyGraph()
    graph.add_node(Node(id=_FN_ARN, type="Lambda", name="my-fn", arn=_FN_ARN))
    return DiscoveryResult(graph=graph, root_id=_FN_ARN, levels=[[_FN_ARN]], truncated=truncated)


class _FakeDiscoverer:
    """Records its construction arguments and returns a canned result."""

    instances: list[_FakeDiscoverer] = []

    def __init__(self, clients, config) -> None:
        self.clients = clients
        self.config = config
        self.outcome: DiscoveryResult | Exception = _result()
        _FakeDiscoverer.instances.append(self)

    async def discover(self, resource_id: str) -> DiscoveryResult:
        self.resource_id = resource_id
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def patched(monkeypatch: pytest.MonkeyPatch) -> dict[str, MagicMock]:
    for key in _ENV_KEYS:
        monkeypatch.delenv(f"BLAST_RADIUS_{key}", raising=False)
    _FakeDiscoverer.instances = []
    mocks = {"build_clients": MagicMock(), "setup_logging": MagicMock()}
    monkeypatch.setattr(cli_main, "build_clients", mocks["build_clients"])
    monkeypatch.setattr(cli_main, "setup_logging", mocks["setup_logging"])
    monkeypatch.setattr(cli_main, "Discoverer", _FakeDiscoverer)
    return mocks


class TestCli:
    def test_tree_output_by_default(self, patched) -> None:
        result = CliRunner().invoke(cli, [_FN_ARN])

        assert result.exit_code == 0, result.output
        assert "[Level 0] Root" in result.output
        assert "Lambda: my-fn" in result.output
        discoverer = _FakeDiscoverer.instances[0]
        assert discoverer.resource_id == _FN_ARN
        assert discoverer.config.max_depth == 2
        assert discoverer.config.max_nodes == 250
        patched["setup_logging"].assert_called_once_with("info", json_output=None)

    def test_flags_override_config(self, patched) -> None:
        result = CliRunner().invoke(
            cli,
            [
                _FN_ARN,
                "--profile",
                "audit",
                "--region",
                "eu-west-1",
                "--depth",
                "4",
                "--max-nodes",
                "10",
                "--heuristics",
                "rds-endpoint",
                "--concurrency",
                "3",
                "--timeout",
                "30",
                "--debug",
            ],
        )

        assert result.exit_code == 0, result.output
        config = _FakeDiscoverer.instances[0].config
        assert config.max_depth == 4
        assert config.max_nodes == 10
        assert config.heuristics == frozenset({"rds-endpoint"})
        assert config.concurrency == 3
        assert config.timeout_seconds == 30.0
        aws_config = patched["build_clients"].call_args.args[0]
        assert (aws_config.profile, aws_config.region) == ("audit", "eu-west-1")
        patched["setup_logging"].assert_called_once_with("debug", json_output=None)

    def test_json_format(self, patched) -> None:
        result = CliRunner().invoke(cli, [_FN_ARN, "--format", "json"])
        assert result.exit_code == 0, result.output
        assert '"nodes"' in result.output

    def test_unknown_heuristic_is_usage_error(self, patched) -> None:
        result = CliRunner().invoke(cli, [_FN_ARN, "--heuristics", "psychic"])
        assert result.exit_code == 2
        assert "psychic" in result.output

    def test_invalid_format_is_usage_error(self, patched) -> None:
        result = CliRunner().invoke(cli, [_FN_ARN, "--format", "yaml"])
        assert result.exit_code == 2

    def test_discovery_error_exits_one(self, patched, monkeypatch: pytest.MonkeyPatch) -> None:
        class _Failing(_FakeDiscoverer):
            def __init__(self, clients, config) -> None:
                super().__init__(clients, config)
                self.outcome = InvalidIdentifierError("unsupported service in ARN: s3")

        monkeypatch.setattr(cli_main, "Discoverer", _Failing)

        result = CliRunner().invoke(cli, ["arn:aws:s3:::bucket"])

        assert result.exit_code == 1
        assert "unsupported service in ARN: s3" in result.output

    def test_truncation_warning(self, patched, monkeypatch: pytest.MonkeyPatch) -> None:
        class _Truncated(_FakeDiscoverer):
            def __init__(self, clients, config) -> None:
                super().__init__(clients, config)
                self.outcome = _result(truncated=True)

        monkeypatch.setattr(cli_main, "Discoverer", _Truncated)

        result = CliRunner().invoke(cli, [_FN_ARN])

        assert result.exit_code == 0
        assert "output is incomplete" in result.output
