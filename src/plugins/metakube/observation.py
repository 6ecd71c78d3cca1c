"""Conversion of MetaKube projects into observed state."""

from plugins.metakube.models import Project
from resources import ProjectObservation, ProjectParameters


def generate_observation(project: Project) -> ProjectObservation:
    """
    Build the observed state from a project returned by MetaKube.

    Values are copied verbatim; fields missing from the response become
    empty values.
    """
    return ProjectObservation(
        id=project.id or "",
        name=project.name or "",
        labels=dict(project.labels or {}),
        creation_time=project.creation_timestamp or "",
        status=project.status or "",
    )


def late_initialize(params: ProjectParameters, project: Project) -> None:
    """
    Fill optional desired fields the user left unset from the observed project.

    Only fields that are None are touched; anything the user declared, even
    an empty mapping, is kept.
    """
    if params.labels is None and project.labels:
        params.labels = dict(project.labels)
    if params.annotations is None and project.annotations:
        params.annotations = dict(project.annotations)
