"""Drift detection between desired parameters and a MetaKube project."""

from typing import Dict, Optional

from plugins.metakube.models import Project
from resources import ProjectParameters


def string_to_ptr(value: Optional[str]) -> Optional[str]:
    """Normalize a string so that "" and None are the same (absent) value."""
    if value is None or value == "":
        return None
    return value


def is_equal_string(a: Optional[str], b: Optional[str]) -> bool:
    return string_to_ptr(a) == string_to_ptr(b)


def is_equal_labels(
    a: Optional[Dict[str, str]], b: Optional[Dict[str, str]]
) -> bool:
    """Structural map equality, with None and {} treated as equal."""
    return (a or {}) == (b or {})


def is_up_to_date(params: ProjectParameters, project: Project) -> bool:
    """
    Check whether any of the modifiable fields differ.

    Only name and labels can be changed by the user; the ID, creation time,
    status and owners are assigned by MetaKube and never count as drift.
    """
    if not is_equal_string(params.name, project.name):
        return False

    if not is_equal_labels(params.labels, project.labels):
        return False

    return True
