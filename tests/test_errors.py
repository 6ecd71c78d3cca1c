"""Unit tests for reconciliation errors."""

import pytest

from errors import (
    ConfigResolutionError,
    CreateError,
    DeleteError,
    DescribeError,
    ExternalAPIError,
    ExternalConnectError,
    NotFoundError,
    ReconcileError,
    UpdateError,
    WrongRecordKindError,
    is_not_found,
)


class TestExternalAPIError:
    def test_status(self):
        err = ExternalAPIError("forbidden", status=403)
        assert err.status == 403
        assert str(err) == "forbidden"

    def test_is_not_found(self):
        assert is_not_found(NotFoundError("gone", status=404))
        assert not is_not_found(ExternalAPIError("boom", status=500))
        assert not is_not_found(ValueError("x"))


class TestReconcileError:
    @pytest.mark.parametrize(
        "cls,stage,prefix",
        [
            (ExternalConnectError, "connect", "cannot connect to MetaKube"),
            (DescribeError, "observe", "cannot describe Project"),
            (CreateError, "create", "cannot create Project"),
            (UpdateError, "update", "cannot update Project"),
            (DeleteError, "delete", "cannot delete Project"),
        ],
    )
    def test_stage_messages(self, cls, stage, prefix):
        err = cls(cause=ExternalAPIError("boom"))
        assert err.stage == stage
        assert str(err) == f"{prefix}: boom"

    def test_custom_message_without_cause(self):
        err = DeleteError("Project has no external name")
        assert str(err) == "Project has no external name"
        assert err.cause is None

    def test_config_error_is_connect_error(self):
        assert issubclass(ConfigResolutionError, ExternalConnectError)

    def test_wrong_kind_is_type_error(self):
        err = WrongRecordKindError()
        assert isinstance(err, TypeError)
        assert isinstance(err, ReconcileError)
        assert "not a Project" in str(err)
