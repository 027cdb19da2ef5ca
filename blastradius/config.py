"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from blastradius.models.config import (
    KNOWN_HEURISTICS,
    AWSConfig,
    BlastRadiusConfig,
    DiscoveryConfig,
    LogConfig,
)


_PREFIX = "BLAST_RADIUS_"

_LOG_LEVELS = ("debug", "info", "warning", "error")
_LOG_FORMATS = ("auto", "json", "console")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(_PREFIX + key, default)


def _parse(key: str, raw: str, convert: type[int] | type[float], kind: str) -> int | float:
    try:
        return convert(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{key} must be {kind}, got {raw!r}") from None


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    """Integer setting, clamped into ``[min_val, max_val]`` rather than rejected."""
    raw = _env(key, "").strip()
    val = int(_parse(key, raw, int, "an integer")) if raw else default
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float_optional(key: str) -> float | None:
    raw = _env(key, "").strip()
    if not raw:
        return None
    return float(_parse(key, raw, float, "a number"))


def _env_csv(key: str) -> list[str]:
    return [item.strip() for item in _env(key, "").split(",") if item.strip()]


def _env_choice(key: str, default: str, choices: tuple[str, ...], label: str) -> str:
    value = _env(key, default).lower()
    if value not in choices:
        raise ValueError(f"Invalid {label}: {value}. Must be one of {', '.join(choices)}")
    return value


def validate_heuristics(values: list[str] | tuple[str, ...] | frozenset[str]) -> frozenset[str]:
    """Reject heuristic names the engine does not implement."""
    unknown = set(values) - KNOWN_HEURISTICS
    if unknown:
        raise ValueError(
            f"Unknown heuristic(s): {', '.join(sorted(unknown))}. Must be one of {sorted(KNOWN_HEURISTICS)}"
        )
    return frozenset(values)


def load_config() -> BlastRadiusConfig:
    """Load configuration from BLAST_RADIUS_* environment variables."""
    return BlastRadiusConfig(
        discovery=DiscoveryConfig(
            max_depth=_env_int("DEPTH", 2, min_val=0),
            max_nodes=_env_int("MAX_NODES", 250, min_val=1),
            heuristics=validate_heuristics(_env_csv("HEURISTICS")),
            concurrency=_env_int("CONCURRENCY", 8, min_val=1, max_val=64),
            timeout_seconds=_env_float_optional("TIMEOUT"),
        ),
        aws=AWSConfig(
            profile=_env("AWS_PROFILE", ""),
            region=_env("AWS_REGION", ""),
            max_attempts=_env_int("AWS_MAX_ATTEMPTS", 3, min_val=1, max_val=10),
        ),
        log=LogConfig(
            level=_env_choice("LOG_LEVEL", "info", _LOG_LEVELS, "log level"),
            format=_env_choice("LOG_FORMAT", "auto", _LOG_FORMATS, "log format"),
        ),
    )
