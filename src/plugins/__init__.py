"""
Provider plugins for the MetaKube Project reconciler.

This package provides the connector/client interfaces used by the managed
reconciler and the MetaKube implementation of them.
"""

from plugins.base import (
    ExternalClient,
    ExternalConnector,
    ExternalCreation,
    ExternalObservation,
    ExternalUpdate,
)

__all__ = [
    "ExternalClient",
    "ExternalConnector",
    "ExternalCreation",
    "ExternalObservation",
    "ExternalUpdate",
]
