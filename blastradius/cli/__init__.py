"""blast-radius command-line interface.

Exposes:
    cli -- Click command entry point (registered as ``blast-radius`` script).
"""

from blastradius.cli.main import cli

__all__ = ["cli"]
