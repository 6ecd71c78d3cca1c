"""
Managed resource types - the Project record reconciled against MetaKube.

A ProjectResource mirrors a Kubernetes-style manifest: metadata (including the
external-name annotation), spec.forProvider (desired state) and
status.atProvider (observed state) plus status conditions.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

API_VERSION = "project.metakube.syseleven.de/v1alpha1"
PROJECT_KIND = "Project"
EXTERNAL_NAME_ANNOTATION = "crossplane.io/external-name"
DEFAULT_PROVIDER_CONFIG = "default"


class DeletionPolicy(Enum):
    """What happens to the external resource when the record is deleted."""

    DELETE = "Delete"
    ORPHAN = "Orphan"


@dataclass
class ProjectParameters:
    """Desired state of a MetaKube project (spec.forProvider)."""

    name: str = ""
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None
    users: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectParameters":
        labels = data.get("labels")
        annotations = data.get("annotations")
        return cls(
            name=data.get("name") or "",
            labels=dict(labels) if labels is not None else None,
            annotations=dict(annotations) if annotations is not None else None,
            users=list(data.get("users") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.labels is not None:
            data["labels"] = dict(self.labels)
        if self.annotations is not None:
            data["annotations"] = dict(self.annotations)
        if self.users:
            data["users"] = list(self.users)
        return data


@dataclass
class ProjectObservation:
    """Observed state of a MetaKube project (status.atProvider)."""

    id: str = ""
    name: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    creation_time: str = ""
    status: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectObservation":
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            labels=dict(data.get("labels") or {}),
            creation_time=data.get("creationTime") or "",
            status=data.get("status") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "labels": dict(self.labels),
            "creationTime": self.creation_time,
            "status": self.status,
        }


@dataclass
class Condition:
    """A status condition, e.g. Ready=True (Available)."""

    type: str
    status: str
    reason: str
    message: str = ""
    last_transition_time: str = ""

    def equal(self, other: "Condition") -> bool:
        """Equal ignoring the transition time."""
        return (
            self.type == other.type
            and self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "status": self.status,
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": self.last_transition_time,
        }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def available() -> Condition:
    return Condition("Ready", "True", "Available", last_transition_time=_now())


def unavailable() -> Condition:
    return Condition("Ready", "False", "Unavailable", last_transition_time=_now())


def creating() -> Condition:
    return Condition("Ready", "False", "Creating", last_transition_time=_now())


def deleting() -> Condition:
    return Condition("Ready", "False", "Deleting", last_transition_time=_now())


def reconcile_success() -> Condition:
    return Condition("Synced", "True", "ReconcileSuccess", last_transition_time=_now())


def reconcile_error(err: BaseException) -> Condition:
    return Condition(
        "Synced",
        "False",
        "ReconcileError",
        message=str(err),
        last_transition_time=_now(),
    )


@dataclass
class ProjectStatus:
    at_provider: ProjectObservation = field(default_factory=ProjectObservation)
    conditions: List[Condition] = field(default_factory=list)
    retry_count: int = 0

    def get_condition(self, condition_type: str) -> Optional[Condition]:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def set_conditions(self, *conditions: Condition) -> None:
        """
        Set conditions by type, replacing any existing condition of that type.

        An existing condition that only differs in transition time is kept as
        is, so the transition time reflects the last real change.
        """
        for new in conditions:
            existing = self.get_condition(new.type)
            if existing is None:
                self.conditions.append(new)
            elif not existing.equal(new):
                self.conditions[self.conditions.index(existing)] = new


@dataclass
class ProjectSpec:
    for_provider: ProjectParameters = field(default_factory=ProjectParameters)
    provider_config_ref: str = DEFAULT_PROVIDER_CONFIG
    deletion_policy: DeletionPolicy = DeletionPolicy.DELETE


@dataclass
class ObjectMeta:
    name: str
    annotations: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    deletion_timestamp: Optional[str] = None


@dataclass
class ProjectResource:
    """A Project managed resource."""

    metadata: ObjectMeta
    spec: ProjectSpec = field(default_factory=ProjectSpec)
    status: ProjectStatus = field(default_factory=ProjectStatus)

    kind = PROJECT_KIND

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def deletion_requested(self) -> bool:
        return bool(self.metadata.deletion_timestamp)

    @classmethod
    def from_manifest(cls, manifest: Dict[str, Any]) -> "ProjectResource":
        """
        Build a record from a manifest dict (as loaded from YAML).

        The manifest is expected to have been validated against
        PROJECT_SCHEMA beforehand.
        """
        metadata = manifest.get("metadata") or {}
        spec = manifest.get("spec") or {}
        status = manifest.get("status") or {}
        ref = spec.get("providerConfigRef") or {}

        return cls(
            metadata=ObjectMeta(
                name=metadata["name"],
                annotations=dict(metadata.get("annotations") or {}),
                labels=dict(metadata.get("labels") or {}),
                deletion_timestamp=metadata.get("deletionTimestamp"),
            ),
            spec=ProjectSpec(
                for_provider=ProjectParameters.from_dict(spec.get("forProvider") or {}),
                provider_config_ref=ref.get("name") or DEFAULT_PROVIDER_CONFIG,
                deletion_policy=DeletionPolicy(spec.get("deletionPolicy", "Delete")),
            ),
            status=ProjectStatus(
                at_provider=ProjectObservation.from_dict(
                    status.get("atProvider") or {}
                ),
                conditions=[
                    Condition(
                        type=c["type"],
                        status=c["status"],
                        reason=c.get("reason", ""),
                        message=c.get("message", ""),
                        last_transition_time=c.get("lastTransitionTime", ""),
                    )
                    for c in status.get("conditions") or []
                ],
                retry_count=int(status.get("retryCount") or 0),
            ),
        )

    def to_manifest(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"name": self.metadata.name}
        if self.metadata.annotations:
            metadata["annotations"] = dict(self.metadata.annotations)
        if self.metadata.labels:
            metadata["labels"] = dict(self.metadata.labels)
        if self.metadata.deletion_timestamp:
            metadata["deletionTimestamp"] = self.metadata.deletion_timestamp

        return {
            "apiVersion": API_VERSION,
            "kind": PROJECT_KIND,
            "metadata": metadata,
            "spec": {
                "forProvider": self.spec.for_provider.to_dict(),
                "providerConfigRef": {"name": self.spec.provider_config_ref},
                "deletionPolicy": self.spec.deletion_policy.value,
            },
            "status": {
                "atProvider": self.status.at_provider.to_dict(),
                "conditions": [c.to_dict() for c in self.status.conditions],
                "retryCount": self.status.retry_count,
            },
        }

    def deep_copy(self) -> "ProjectResource":
        return copy.deepcopy(self)


def get_external_name(resource: ProjectResource) -> str:
    """Return the external name annotation, or "" if it was never set."""
    return resource.metadata.annotations.get(EXTERNAL_NAME_ANNOTATION, "")


def set_external_name(resource: ProjectResource, name: str) -> None:
    """
    Set the external name annotation.

    The external name is assigned once per lifecycle. Setting the value it
    already holds is a no-op; replacing it with a different value raises
    ValueError.
    """
    if not name:
        raise ValueError("external name must not be empty")

    current = get_external_name(resource)
    if current == name:
        return
    if current:
        raise ValueError(
            f"external name of {resource.name} is already set to {current!r}, "
            f"refusing to replace it with {name!r}"
        )

    resource.metadata.annotations[EXTERNAL_NAME_ANNOTATION] = name
    logger.debug(f"Assigned external name {name} to {resource.name}")
