"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

HEURISTIC_RDS_ENDPOINT = "rds-endpoint"
KNOWN_HEURISTICS = frozenset({HEURISTIC_RDS_ENDPOINT})


@dataclass
class DiscoveryConfig:
    """Traversal bounds and opt-in behaviour for one discovery run."""

    max_depth: int = 2
    max_nodes: int = 250
    heuristics: frozenset[str] = field(default_factory=frozenset)
    concurrency: int = 8
    timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.max_nodes <= 0:
            raise ValueError(f"max_nodes must be > 0, got {self.max_nodes}")
        if self.concurrency <= 0:
            raise ValueError(f"concurrency must be > 0, got {self.concurrency}")
        self.heuristics = frozenset(self.heuristics)

    def heuristic_enabled(self, name: str) -> bool:
        return name in self.heuristics


@dataclass
class AWSConfig:
    """Credentials selection and botocore retry behaviour."""

    profile: str = ""
    region: str = ""
    max_attempts: int = 3
    retry_mode: str = "standard"


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "auto"  # auto | json | console

    def json_output(self) -> bool | None:
        if self.format == "auto":
            return None
        return self.format == "json"


@dataclass
class BlastRadiusConfig:
    """Top-level blast-radius configuration."""

    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    aws: AWSConfig = field(default_factory=AWSConfig)
    log: LogConfig = field(default_factory=LogConfig)
