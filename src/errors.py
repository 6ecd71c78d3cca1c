"""
Reconciliation errors.

Every failure of an external call is wrapped with a stage-specific error so
callers can tell which step of a pass failed. The underlying error is kept as
``cause`` (and as ``__cause__`` when raised with ``from``).
"""

from typing import Optional

ERR_NOT_PROJECT = "managed resource is not a Project custom resource"
ERR_CONNECT_FAILED = "cannot connect to MetaKube"
ERR_CONFIG_FAILED = "cannot resolve provider configuration"
ERR_DESCRIBE_FAILED = "cannot describe Project"
ERR_CREATE_FAILED = "cannot create Project"
ERR_UPDATE_FAILED = "cannot update Project"
ERR_DELETE_FAILED = "cannot delete Project"
ERR_NO_EXTERNAL_NAME = "Project has no external name"


class ExternalAPIError(Exception):
    """Raised by the MetaKube client when a request fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.message = message
        self.status = status
        super().__init__(message)


class NotFoundError(ExternalAPIError):
    """The requested object does not exist in MetaKube (HTTP 404)."""


def is_not_found(err: BaseException) -> bool:
    """Return whether the error reports a missing external object."""
    return isinstance(err, NotFoundError)


class ReconcileError(Exception):
    """Base class for errors surfaced by a reconciliation stage."""

    stage = "reconcile"
    default_message = "reconciliation failed"

    def __init__(
        self, message: Optional[str] = None, cause: Optional[BaseException] = None
    ):
        self.message = message or self.default_message
        self.cause = cause
        text = f"{self.message}: {cause}" if cause is not None else self.message
        super().__init__(text)


class WrongRecordKindError(ReconcileError, TypeError):
    stage = "connect"
    default_message = ERR_NOT_PROJECT


class ExternalConnectError(ReconcileError):
    stage = "connect"
    default_message = ERR_CONNECT_FAILED


class ConfigResolutionError(ExternalConnectError):
    default_message = ERR_CONFIG_FAILED


class DescribeError(ReconcileError):
    stage = "observe"
    default_message = ERR_DESCRIBE_FAILED


class CreateError(ReconcileError):
    stage = "create"
    default_message = ERR_CREATE_FAILED


class UpdateError(ReconcileError):
    stage = "update"
    default_message = ERR_UPDATE_FAILED


class DeleteError(ReconcileError):
    stage = "delete"
    default_message = ERR_DELETE_FAILED


class ReconcilePassTimeout(ReconcileError):
    """A reconciliation pass did not finish before its deadline."""

    stage = "timeout"
    default_message = "reconciliation pass timed out"
