"""
Provider configuration and credential resolution.

A Project references a ProviderConfig by name. The ProviderConfig names the
MetaKube endpoint and where the API token comes from: a Secret, an
environment variable or a file.
"""

import base64
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import yaml

from config import DEFAULT_METAKUBE_ENDPOINT
from errors import ConfigResolutionError
from manifests import load_all
from resources import ProjectResource
from validation import validate_manifest

logger = logging.getLogger(__name__)


@dataclass
class ClientConfig:
    """Endpoint and credentials for a MetaKube client."""

    endpoint: str
    token: str = field(default="", repr=False)  # Never log the token


class ProviderConfigResolver:
    """Resolves a Project's ProviderConfig into a ClientConfig."""

    def __init__(
        self,
        provider_configs: Optional[Iterable[Dict[str, Any]]] = None,
        secrets: Optional[Iterable[Dict[str, Any]]] = None,
        default_endpoint: str = DEFAULT_METAKUBE_ENDPOINT,
    ):
        self.default_endpoint = default_endpoint
        self._provider_configs: Dict[str, Dict[str, Any]] = {}
        self._secrets: Dict[str, Dict[str, str]] = {}

        for manifest in provider_configs or []:
            self.add_provider_config(manifest)
        for manifest in secrets or []:
            self.add_secret(manifest)

    @classmethod
    def from_documents(
        cls,
        documents: Iterable[Dict[str, Any]],
        default_endpoint: str = DEFAULT_METAKUBE_ENDPOINT,
    ) -> "ProviderConfigResolver":
        """Build a resolver from mixed documents, ignoring other kinds."""
        docs: List[Dict[str, Any]] = list(documents)
        return cls(
            provider_configs=[d for d in docs if d.get("kind") == "ProviderConfig"],
            secrets=[d for d in docs if d.get("kind") == "Secret"],
            default_endpoint=default_endpoint,
        )

    @classmethod
    def from_paths(
        cls, paths: Iterable[str], default_endpoint: str = DEFAULT_METAKUBE_ENDPOINT
    ) -> "ProviderConfigResolver":
        try:
            documents = load_all(paths)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigResolutionError(cause=e) from e
        return cls.from_documents(documents, default_endpoint)

    def add_provider_config(self, manifest: Dict[str, Any]) -> None:
        is_valid, error = validate_manifest(manifest)
        if not is_valid:
            raise ConfigResolutionError(f"invalid ProviderConfig: {error}")

        name = manifest["metadata"]["name"]
        self._provider_configs[name] = manifest
        logger.debug(f"Registered ProviderConfig {name}")

    def add_secret(self, manifest: Dict[str, Any]) -> None:
        is_valid, error = validate_manifest(manifest)
        if not is_valid:
            raise ConfigResolutionError(f"invalid Secret: {error}")

        name = manifest["metadata"]["name"]
        values: Dict[str, str] = {}
        for key, encoded in (manifest.get("data") or {}).items():
            try:
                values[key] = base64.b64decode(encoded, validate=True).decode("utf-8")
            except ValueError as e:
                raise ConfigResolutionError(
                    f"Secret {name} key {key} is not valid base64", cause=e
                ) from e
        # stringData wins over data, as in Kubernetes
        values.update(manifest.get("stringData") or {})
        self._secrets[name] = values

    def has_provider_config(self, name: str) -> bool:
        return name in self._provider_configs

    def resolve(self, record: ProjectResource) -> ClientConfig:
        """
        Resolve endpoint and token for a Project.

        Raises:
            ConfigResolutionError: If the ProviderConfig or its credentials
                cannot be found or are empty.
        """
        name = record.spec.provider_config_ref
        provider_config = self._provider_configs.get(name)
        if provider_config is None:
            raise ConfigResolutionError(f"ProviderConfig {name!r} not found")

        spec = provider_config["spec"]
        endpoint = (spec.get("host") or self.default_endpoint).rstrip("/")
        token = self._extract_credentials(name, spec["credentials"]).strip()
        if not token:
            raise ConfigResolutionError(f"ProviderConfig {name!r} has empty credentials")

        return ClientConfig(endpoint=endpoint, token=token)

    def _extract_credentials(self, name: str, credentials: Dict[str, Any]) -> str:
        source = credentials["source"]

        if source == "Secret":
            ref = credentials.get("secretRef")
            if not ref:
                raise ConfigResolutionError(
                    f"ProviderConfig {name!r}: secretRef is required for source Secret"
                )
            secret = self._secrets.get(ref["name"])
            if secret is None:
                raise ConfigResolutionError(f"Secret {ref['name']!r} not found")
            if ref["key"] not in secret:
                raise ConfigResolutionError(
                    f"Secret {ref['name']!r} has no key {ref['key']!r}"
                )
            return secret[ref["key"]]

        if source == "Environment":
            env = credentials.get("env")
            if not env:
                raise ConfigResolutionError(
                    f"ProviderConfig {name!r}: env is required for source Environment"
                )
            value = os.getenv(env["name"])
            if value is None:
                raise ConfigResolutionError(
                    f"environment variable {env['name']} is not set"
                )
            return value

        if source == "Filesystem":
            fs = credentials.get("fs")
            if not fs:
                raise ConfigResolutionError(
                    f"ProviderConfig {name!r}: fs is required for source Filesystem"
                )
            try:
                with open(fs["path"], "r") as f:
                    return f.read()
            except OSError as e:
                raise ConfigResolutionError(
                    f"cannot read credentials file {fs['path']}", cause=e
                ) from e

        raise ConfigResolutionError(f"unsupported credentials source {source!r}")
