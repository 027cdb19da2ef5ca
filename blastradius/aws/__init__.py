"""AWS client construction for the discovery engine."""

from blastradius.aws.clients import AWSClients, build_clients

__all__ = ["AWSClients", "build_clients"]
