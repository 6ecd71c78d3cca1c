"""
MetaKube provider plugin.

Reconciles Project resources against the MetaKube projects API.
"""

from plugins.metakube.client import MetaKubeClient
from plugins.metakube.connector import ProjectConnector
from plugins.metakube.credentials import ClientConfig, ProviderConfigResolver
from plugins.metakube.project import ProjectExternal

__all__ = [
    "ClientConfig",
    "MetaKubeClient",
    "ProjectConnector",
    "ProjectExternal",
    "ProviderConfigResolver",
]
