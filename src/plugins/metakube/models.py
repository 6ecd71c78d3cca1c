"""
MetaKube API wire models.

Responses are parsed leniently: unknown fields are ignored and every field is
optional, so a sparse response never fails to parse.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ProjectOwner(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: Optional[str] = None
    email: Optional[str] = None


class Project(BaseModel):
    """A project as returned by ``/api/v1/projects``."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: Optional[str] = None
    name: Optional[str] = None
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None
    # Kept as the raw string the API sent
    creation_timestamp: Optional[str] = Field(None, alias="creationTimestamp")
    deletion_timestamp: Optional[str] = Field(None, alias="deletionTimestamp")
    status: Optional[str] = None
    owners: Optional[List[ProjectOwner]] = None
    clusters_number: Optional[int] = Field(None, alias="clustersNumber")

    def to_body(self) -> Dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProjectCreateBody(BaseModel):
    """Request body for creating a project."""

    name: str
    labels: Optional[Dict[str, str]] = None
    users: Optional[List[str]] = None

    def to_body(self) -> Dict:
        return self.model_dump(exclude_none=True)
