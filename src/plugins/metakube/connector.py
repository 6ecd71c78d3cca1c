"""
Project connector - builds an authenticated MetaKube client for one pass.

The HTTP session is pooled and supplied by the caller; connecting only
resolves configuration and wraps the session, it never touches a project.
"""

import logging
from typing import Any, Callable

import aiohttp

from errors import ConfigResolutionError, ExternalConnectError, WrongRecordKindError
from plugins.base import ExternalConnector
from plugins.metakube.client import MetaKubeClient
from plugins.metakube.credentials import ProviderConfigResolver
from plugins.metakube.project import ProjectExternal, as_project
from resources import PROJECT_KIND

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., MetaKubeClient]


class ProjectConnector(ExternalConnector):
    """Connects Project resources to MetaKube."""

    def __init__(
        self,
        resolver: ProviderConfigResolver,
        session: aiohttp.ClientSession,
        client_factory: ClientFactory = MetaKubeClient,
        request_timeout: float = 30.0,
    ):
        self.resolver = resolver
        self.session = session
        self.client_factory = client_factory
        self.request_timeout = request_timeout

    @property
    def kind(self) -> str:
        return PROJECT_KIND

    async def connect(self, record: Any) -> ProjectExternal:
        """
        Obtain a ProjectExternal for the record.

        Raises:
            ExternalConnectError: If the record is not a Project.
            ConfigResolutionError: If endpoint or credentials cannot be resolved.
        """
        try:
            cr = as_project(record)
        except WrongRecordKindError as e:
            raise ExternalConnectError(cause=e) from e

        try:
            cfg = self.resolver.resolve(cr)
        except ConfigResolutionError:
            raise
        except Exception as e:
            raise ConfigResolutionError(cause=e) from e

        client = self.client_factory(
            self.session, cfg.endpoint, cfg.token, timeout=self.request_timeout
        )
        logger.debug(f"Connected {cr.name} to {cfg.endpoint}")
        return ProjectExternal(client)
