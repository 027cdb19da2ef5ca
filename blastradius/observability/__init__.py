"""Logging setup shared by the CLI and the discovery engine."""

from blastradius.observability.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
