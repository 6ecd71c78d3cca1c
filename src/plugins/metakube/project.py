"""
Project external client - observe, create, update and delete MetaKube
projects for a Project managed resource.

Each method performs at most one MetaKube call. Failures are wrapped in a
stage-specific error and nothing is retried here; the caller re-runs the
whole pass later. A missing project is not an error when observing.
"""

import copy
import logging
from typing import Any

from errors import (
    ERR_NO_EXTERNAL_NAME,
    CreateError,
    DeleteError,
    DescribeError,
    ExternalAPIError,
    NotFoundError,
    UpdateError,
    WrongRecordKindError,
)
from plugins.base import (
    ExternalClient,
    ExternalCreation,
    ExternalObservation,
    ExternalUpdate,
)
from plugins.metakube.client import MetaKubeClient
from plugins.metakube.comparison import is_up_to_date
from plugins.metakube.models import Project, ProjectCreateBody
from plugins.metakube.observation import generate_observation, late_initialize
from resources import (
    EXTERNAL_NAME_ANNOTATION,
    ProjectObservation,
    ProjectResource,
    available,
    get_external_name,
    set_external_name,
)

logger = logging.getLogger(__name__)


def as_project(record: Any) -> ProjectResource:
    """Return the record as a ProjectResource or raise WrongRecordKindError."""
    if not isinstance(record, ProjectResource):
        raise WrongRecordKindError(
            cause=TypeError(f"got {type(record).__name__}")
        )
    return record


class ProjectExternal(ExternalClient):
    """Per-pass handle to MetaKube for Project resources."""

    def __init__(self, client: MetaKubeClient):
        self.client = client

    async def observe(self, record: Any) -> ExternalObservation:
        cr = as_project(record)

        external_name = get_external_name(cr)
        if not external_name:
            # Never created, so there is nothing to look up
            return ExternalObservation(
                resource_exists=False, resource_up_to_date=False
            )

        try:
            project = await self.client.get_project(external_name)
        except NotFoundError:
            logger.debug(f"Project {external_name} for {cr.name} not found")
            return ExternalObservation(resource_exists=False)
        except ExternalAPIError as e:
            raise DescribeError(cause=e) from e

        cr.status.at_provider = generate_observation(project)

        current_spec = copy.deepcopy(cr.spec.for_provider)
        late_initialize(cr.spec.for_provider, project)

        cr.status.set_conditions(available())

        return ExternalObservation(
            resource_exists=True,
            resource_up_to_date=is_up_to_date(cr.spec.for_provider, project),
            resource_late_initialized=cr.spec.for_provider != current_spec,
        )

    async def create(self, record: Any) -> ExternalCreation:
        cr = as_project(record)

        existing = get_external_name(cr)
        if existing:
            raise CreateError(
                f"Project {cr.name} already has external name {existing}; "
                "refusing to create another project. Remove the "
                f"{EXTERNAL_NAME_ANNOTATION} annotation to create a new one"
            )

        params = cr.spec.for_provider
        body = ProjectCreateBody(
            name=params.name,
            labels=params.labels,
            users=params.users or None,
        )

        try:
            project = await self.client.create_project(body)
        except ExternalAPIError as e:
            raise CreateError(cause=e) from e

        if not project.id:
            raise CreateError(
                cause=ExternalAPIError("MetaKube returned a project without an ID")
            )

        set_external_name(cr, project.id)
        logger.info(f"Created MetaKube project {project.id} for {cr.name}")

        return ExternalCreation(external_name_assigned=True, external_name=project.id)

    async def update(self, record: Any) -> ExternalUpdate:
        cr = as_project(record)

        external_name = get_external_name(cr)
        if not external_name:
            raise UpdateError(ERR_NO_EXTERNAL_NAME)

        params = cr.spec.for_provider
        body = Project(
            id=external_name,
            name=params.name,
            labels=params.labels,
            annotations=params.annotations,
        )

        try:
            await self.client.update_project(external_name, body)
        except ExternalAPIError as e:
            raise UpdateError(cause=e) from e

        logger.info(f"Updated MetaKube project {external_name} for {cr.name}")
        return ExternalUpdate()

    async def delete(self, record: Any) -> None:
        cr = as_project(record)

        # Deleting without an external name means we lost track of the project
        external_name = get_external_name(cr)
        if not external_name:
            raise DeleteError(ERR_NO_EXTERNAL_NAME)

        try:
            await self.client.delete_project(external_name)
        except ExternalAPIError as e:
            raise DeleteError(cause=e) from e

        cr.status.at_provider = ProjectObservation()
        logger.info(f"Deleted MetaKube project {external_name} for {cr.name}")
