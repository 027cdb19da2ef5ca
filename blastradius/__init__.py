"""blast-radius: discover what else breaks when an AWS resource changes."""

__version__ = "0.1.0"
