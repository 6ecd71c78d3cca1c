"""Unit tests for ProviderConfig and credential resolution."""

import base64
import copy

import pytest
import yaml

from errors import ConfigResolutionError
from plugins.metakube.credentials import ClientConfig, ProviderConfigResolver
from resources import ProjectResource


def provider_config(name="default", host=None, **credentials):
    spec = {"credentials": credentials}
    if host is not None:
        spec["host"] = host
    return {
        "apiVersion": "metakube.syseleven.de/v1alpha1",
        "kind": "ProviderConfig",
        "metadata": {"name": name},
        "spec": spec,
    }


class TestClientConfig:
    def test_token_not_in_repr(self):
        cfg = ClientConfig(endpoint="https://metakube.example.com", token="s3cret")
        assert "s3cret" not in repr(cfg)
        assert "metakube.example.com" in repr(cfg)


class TestSecretSource:
    """Credentials read from a Secret."""

    def test_resolve(self, project, provider_config_manifest, secret_manifest):
        resolver = ProviderConfigResolver(
            provider_configs=[provider_config_manifest], secrets=[secret_manifest]
        )

        cfg = resolver.resolve(project)

        assert cfg.endpoint == "https://metakube.example.com"
        assert cfg.token == "test-token"

    def test_base64_data(self, project, provider_config_manifest):
        secret = {
            "kind": "Secret",
            "metadata": {"name": "metakube-creds"},
            "data": {"token": base64.b64encode(b"encoded-token").decode()},
        }
        resolver = ProviderConfigResolver(
            provider_configs=[provider_config_manifest], secrets=[secret]
        )

        assert resolver.resolve(project).token == "encoded-token"

    def test_string_data_wins(self, project, provider_config_manifest):
        secret = {
            "kind": "Secret",
            "metadata": {"name": "metakube-creds"},
            "data": {"token": base64.b64encode(b"old").decode()},
            "stringData": {"token": "new"},
        }
        resolver = ProviderConfigResolver(
            provider_configs=[provider_config_manifest], secrets=[secret]
        )

        assert resolver.resolve(project).token == "new"

    def test_invalid_base64(self):
        secret = {
            "kind": "Secret",
            "metadata": {"name": "metakube-creds"},
            "data": {"token": "!!not base64!!"},
        }
        with pytest.raises(ConfigResolutionError, match="not valid base64"):
            ProviderConfigResolver(secrets=[secret])

    def test_missing_secret(self, project, provider_config_manifest):
        resolver = ProviderConfigResolver(provider_configs=[provider_config_manifest])

        with pytest.raises(ConfigResolutionError, match="Secret 'metakube-creds' not found"):
            resolver.resolve(project)

    def test_missing_key(self, project, provider_config_manifest):
        secret = {
            "kind": "Secret",
            "metadata": {"name": "metakube-creds"},
            "stringData": {"other": "x"},
        }
        resolver = ProviderConfigResolver(
            provider_configs=[provider_config_manifest], secrets=[secret]
        )

        with pytest.raises(ConfigResolutionError, match="has no key 'token'"):
            resolver.resolve(project)

    def test_missing_secret_ref(self, project):
        resolver = ProviderConfigResolver(
            provider_configs=[provider_config(source="Secret")]
        )

        with pytest.raises(ConfigResolutionError, match="secretRef is required"):
            resolver.resolve(project)

    def test_empty_token(self, project, provider_config_manifest):
        secret = {
            "kind": "Secret",
            "metadata": {"name": "metakube-creds"},
            "stringData": {"token": "  \n"},
        }
        resolver = ProviderConfigResolver(
            provider_configs=[provider_config_manifest], secrets=[secret]
        )

        with pytest.raises(ConfigResolutionError, match="empty credentials"):
            resolver.resolve(project)


class TestEnvironmentSource:
    def test_resolve(self, project, monkeypatch):
        monkeypatch.setenv("METAKUBE_TOKEN", "env-token\n")
        resolver = ProviderConfigResolver(
            provider_configs=[
                provider_config(source="Environment", env={"name": "METAKUBE_TOKEN"})
            ]
        )

        assert resolver.resolve(project).token == "env-token"

    def test_unset_variable(self, project, monkeypatch):
        monkeypatch.delenv("METAKUBE_TOKEN", raising=False)
        resolver = ProviderConfigResolver(
            provider_configs=[
                provider_config(source="Environment", env={"name": "METAKUBE_TOKEN"})
            ]
        )

        with pytest.raises(ConfigResolutionError, match="METAKUBE_TOKEN is not set"):
            resolver.resolve(project)


class TestFilesystemSource:
    def test_resolve(self, project, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("file-token\n")
        resolver = ProviderConfigResolver(
            provider_configs=[
                provider_config(source="Filesystem", fs={"path": str(token_file)})
            ]
        )

        assert resolver.resolve(project).token == "file-token"

    def test_missing_file(self, project, tmp_path):
        resolver = ProviderConfigResolver(
            provider_configs=[
                provider_config(
                    source="Filesystem", fs={"path": str(tmp_path / "missing")}
                )
            ]
        )

        with pytest.raises(ConfigResolutionError, match="cannot read credentials file") as exc_info:
            resolver.resolve(project)
        assert isinstance(exc_info.value.cause, OSError)


class TestProviderConfigResolver:
    def test_unknown_provider_config(self, project):
        resolver = ProviderConfigResolver()

        with pytest.raises(ConfigResolutionError, match="ProviderConfig 'default' not found"):
            resolver.resolve(project)

    def test_uses_referenced_provider_config(self, project_manifest, secret_manifest):
        manifest = copy.deepcopy(project_manifest)
        manifest["spec"]["providerConfigRef"] = {"name": "staging"}
        staging = provider_config(
            name="staging",
            host="https://staging.example.com/",
            source="Secret",
            secretRef={"name": "metakube-creds", "key": "token"},
        )
        resolver = ProviderConfigResolver(
            provider_configs=[staging], secrets=[secret_manifest]
        )

        cfg = resolver.resolve(ProjectResource.from_manifest(manifest))

        assert cfg.endpoint == "https://staging.example.com"

    def test_default_endpoint(self, project, secret_manifest):
        resolver = ProviderConfigResolver(
            provider_configs=[
                provider_config(
                    source="Secret",
                    secretRef={"name": "metakube-creds", "key": "token"},
                )
            ],
            secrets=[secret_manifest],
            default_endpoint="https://fallback.example.com",
        )

        assert resolver.resolve(project).endpoint == "https://fallback.example.com"

    def test_invalid_provider_config(self):
        with pytest.raises(ConfigResolutionError, match="invalid ProviderConfig"):
            ProviderConfigResolver(provider_configs=[provider_config(source="Vault")])

    def test_from_documents_ignores_other_kinds(
        self, project_manifest, provider_config_manifest, secret_manifest
    ):
        resolver = ProviderConfigResolver.from_documents(
            [project_manifest, provider_config_manifest, secret_manifest]
        )

        assert resolver.has_provider_config("default")
        assert not resolver.has_provider_config("proj-a")

    def test_from_paths(self, tmp_path, project, provider_config_manifest, secret_manifest):
        path = tmp_path / "providerconfig.yaml"
        path.write_text(yaml.safe_dump_all([provider_config_manifest, secret_manifest]))

        resolver = ProviderConfigResolver.from_paths([str(path)])

        assert resolver.resolve(project).token == "test-token"

    def test_from_paths_missing_file(self, tmp_path):
        with pytest.raises(ConfigResolutionError):
            ProviderConfigResolver.from_paths([str(tmp_path / "nope.yaml")])

    def test_from_paths_bad_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("kind: [unclosed\n")

        with pytest.raises(ConfigResolutionError):
            ProviderConfigResolver.from_paths([str(path)])
