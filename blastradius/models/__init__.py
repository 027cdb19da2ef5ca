"""Configuration data structures for blast-radius."""

from blastradius.models.config import (
    AWSConfig,
    BlastRadiusConfig,
    DiscoveryConfig,
    LogConfig,
)

__all__ = [
    "AWSConfig",
    "BlastRadiusConfig",
    "DiscoveryConfig",
    "LogConfig",
]
