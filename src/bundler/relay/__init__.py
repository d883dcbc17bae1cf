"""
Relay Integration Layer.

Submits signed transactions to a block-engine relay as atomic bundles.
"""

from bundler.relay.interface import RelayError, RelayInterface, RelayRejected, RelayUnreachable
from bundler.relay.jito import JitoRelay

__all__ = [
    "JitoRelay",
    "RelayError",
    "RelayInterface",
    "RelayRejected",
    "RelayUnreachable",
]
