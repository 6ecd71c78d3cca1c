"""
External Plugin Base - Abstract interface for external resource providers.

A provider plugin supplies two things: an ExternalConnector that produces an
authenticated ExternalClient for a single reconciliation pass, and the
ExternalClient itself, which observes, creates, updates and deletes the
external resource that backs a managed record.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ExternalObservation:
    """Result of observing an external resource."""

    resource_exists: bool = False
    resource_up_to_date: bool = False
    resource_late_initialized: bool = False


@dataclass
class ExternalCreation:
    """Result of creating an external resource."""

    external_name_assigned: bool = False
    external_name: str = ""


@dataclass
class ExternalUpdate:
    """Result of updating an external resource."""


class ExternalClient(ABC):
    """
    Abstract base class for the per-pass handle to an external system.

    Instances are created by an ExternalConnector for exactly one
    reconciliation pass and are never shared between passes.
    """

    @abstractmethod
    async def observe(self, record: Any) -> ExternalObservation:
        """
        Observe the external resource backing the record.

        Args:
            record: The managed record

        Returns:
            ExternalObservation describing existence and drift.
        """
        pass

    @abstractmethod
    async def create(self, record: Any) -> ExternalCreation:
        """
        Create the external resource from the record's desired state.

        Args:
            record: The managed record

        Returns:
            ExternalCreation telling whether an external name was assigned.
        """
        pass

    @abstractmethod
    async def update(self, record: Any) -> ExternalUpdate:
        """
        Update the external resource to match the record's desired state.

        Args:
            record: The managed record
        """
        pass

    @abstractmethod
    async def delete(self, record: Any) -> None:
        """
        Delete the external resource backing the record.

        Args:
            record: The managed record
        """
        pass


class ExternalConnector(ABC):
    """Produces an ExternalClient for a reconciliation pass."""

    @property
    @abstractmethod
    def kind(self) -> str:
        """The managed record kind this connector handles."""
        pass

    @abstractmethod
    async def connect(self, record: Any) -> ExternalClient:
        """
        Obtain an authenticated client for the record.

        Args:
            record: The managed record

        Returns:
            A ready-to-use ExternalClient.
        """
        pass
