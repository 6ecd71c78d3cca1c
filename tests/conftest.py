"""Pytest configuration and fixtures."""

import json
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from plugins.metakube.client import MetaKubeClient
from plugins.metakube.credentials import ProviderConfigResolver
from resources import ProjectResource

CREATION_TIMESTAMP = "2024-01-15T10:30:00.000Z"


class FakeMetaKube:
    """In-memory stand-in for the MetaKube projects API."""

    def __init__(self):
        self.projects: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.auth_headers: List[Optional[str]] = []
        self.failures: Dict[str, Tuple[int, str]] = {}
        self.next_id = 123
        self.endpoint = ""

    def fail(self, method: str, status: int, message: str = "internal error") -> None:
        """Make the next request with this method fail."""
        self.failures[method] = (status, message)

    def add_project(self, project_id: str, **fields) -> Dict[str, Any]:
        project = {
            "id": project_id,
            "name": fields.pop("name", project_id),
            "creationTimestamp": CREATION_TIMESTAMP,
            "status": "Active",
            **fields,
        }
        self.projects[project_id] = project
        return project

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self._record])
        app.router.add_get("/api/v1/projects/{project_id}", self._get)
        app.router.add_post("/api/v1/projects", self._create)
        app.router.add_put("/api/v1/projects/{project_id}", self._update)
        app.router.add_delete("/api/v1/projects/{project_id}", self._delete)
        return app

    @web.middleware
    async def _record(self, request, handler):
        self.calls.append((request.method, request.path))
        self.auth_headers.append(request.headers.get("Authorization"))
        failure = self.failures.pop(request.method, None)
        if failure:
            status, message = failure
            return web.json_response(
                {"error": {"code": status, "message": message}}, status=status
            )
        return await handler(request)

    def _not_found(self, project_id: str) -> web.Response:
        return web.json_response(
            {"error": {"code": 404, "message": f"project {project_id} not found"}},
            status=404,
        )

    async def _get(self, request):
        project_id = request.match_info["project_id"]
        if project_id not in self.projects:
            return self._not_found(project_id)
        return web.json_response(self.projects[project_id])

    async def _create(self, request):
        body = await request.json()
        project_id = f"p-{self.next_id}"
        self.next_id += 1
        project = self.add_project(
            project_id,
            name=body["name"],
            labels=body.get("labels"),
            owners=[{"email": user} for user in body.get("users") or []],
        )
        return web.json_response(project, status=201)

    async def _update(self, request):
        project_id = request.match_info["project_id"]
        if project_id not in self.projects:
            return self._not_found(project_id)
        body = await request.json()
        project = self.projects[project_id]
        for key in ("name", "labels", "annotations"):
            if key in body:
                project[key] = body[key]
        return web.json_response(project)

    async def _delete(self, request):
        project_id = request.match_info["project_id"]
        if self.projects.pop(project_id, None) is None:
            return self._not_found(project_id)
        return web.Response(status=200)


@pytest_asyncio.fixture
async def metakube():
    """A running fake MetaKube API."""
    fake = FakeMetaKube()
    server = TestServer(fake.app())
    await server.start_server()
    fake.endpoint = str(server.make_url("")).rstrip("/")
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def http_session():
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture
def metakube_client(metakube, http_session):
    return MetaKubeClient(http_session, metakube.endpoint, "test-token", timeout=5)


@pytest.fixture
def project_manifest():
    """Sample Project manifest as loaded from YAML."""
    return {
        "apiVersion": "project.metakube.syseleven.de/v1alpha1",
        "kind": "Project",
        "metadata": {"name": "proj-a"},
        "spec": {
            "forProvider": {
                "name": "proj-a",
                "labels": {"env": "prod"},
                "users": ["alice@example.com"],
            },
            "providerConfigRef": {"name": "default"},
        },
    }


@pytest.fixture
def project(project_manifest):
    return ProjectResource.from_manifest(project_manifest)


@pytest.fixture
def provider_config_manifest():
    return {
        "apiVersion": "metakube.syseleven.de/v1alpha1",
        "kind": "ProviderConfig",
        "metadata": {"name": "default"},
        "spec": {
            "host": "https://metakube.example.com",
            "credentials": {
                "source": "Secret",
                "secretRef": {"name": "metakube-creds", "key": "token"},
            },
        },
    }


@pytest.fixture
def secret_manifest():
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": "metakube-creds"},
        "stringData": {"token": "test-token"},
    }


@pytest.fixture
def resolver(metakube, provider_config_manifest, secret_manifest):
    """Resolver pointing the default ProviderConfig at the fake API."""
    provider_config = json.loads(json.dumps(provider_config_manifest))
    provider_config["spec"]["host"] = metakube.endpoint
    return ProviderConfigResolver(
        provider_configs=[provider_config], secrets=[secret_manifest]
    )
