"""Entry point for `python -m blastradius`.

Usage:
    python -m blastradius my-load-balancer --depth 3
"""

from __future__ import annotations

from blastradius.cli import cli

cli()
