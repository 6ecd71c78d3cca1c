"""Unit tests for drift detection and observation mapping."""

import copy

import pytest

from plugins.metakube.comparison import (
    is_equal_labels,
    is_equal_string,
    is_up_to_date,
    string_to_ptr,
)
from plugins.metakube.models import Project
from plugins.metakube.observation import generate_observation, late_initialize
from resources import ProjectObservation, ProjectParameters


class TestStringHelpers:
    def test_empty_string_is_absent(self):
        assert string_to_ptr("") is None
        assert string_to_ptr(None) is None
        assert string_to_ptr("x") == "x"

    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("proj-a", "proj-a", True),
            ("proj-a", "proj-b", False),
            ("", None, True),
            (None, None, True),
            ("proj-a", None, False),
            ("Proj-A", "proj-a", False),
        ],
    )
    def test_is_equal_string(self, a, b, expected):
        assert is_equal_string(a, b) is expected

    def test_is_equal_labels(self):
        assert is_equal_labels({"a": "1", "b": "2"}, {"b": "2", "a": "1"})
        assert is_equal_labels(None, {})
        assert not is_equal_labels({"a": "1"}, {"a": "2"})
        assert not is_equal_labels({"a": "1"}, {"a": "1", "b": "2"})
        assert not is_equal_labels({"a": "1"}, None)


class TestIsUpToDate:
    @pytest.fixture
    def params(self):
        return ProjectParameters(name="proj-a", labels={"env": "prod"})

    @pytest.fixture
    def remote(self):
        return Project(
            id="p-123",
            name="proj-a",
            labels={"env": "prod"},
            creationTimestamp="2024-01-15T10:30:00.000Z",
            status="Active",
        )

    def test_matching(self, params, remote):
        assert is_up_to_date(params, remote) is True

    def test_name_changed(self, params, remote):
        params.name = "proj-b"
        assert is_up_to_date(params, remote) is False

    def test_label_value_changed(self, params, remote):
        params.labels = {"env": "stage"}
        assert is_up_to_date(params, remote) is False

    def test_label_added(self, params, remote):
        params.labels = {"env": "prod", "team": "core"}
        assert is_up_to_date(params, remote) is False

    def test_label_order_irrelevant(self, remote):
        remote.labels = {"env": "prod", "team": "core"}
        params = ProjectParameters(name="proj-a", labels={"team": "core", "env": "prod"})
        assert is_up_to_date(params, remote) is True

    def test_read_only_fields_never_cause_drift(self, params, remote):
        remote.id = "p-999"
        remote.creation_timestamp = "2030-01-01T00:00:00.000Z"
        remote.status = "Terminating"
        remote.annotations = {"note": "changed"}
        remote.clusters_number = 7
        assert is_up_to_date(params, remote) is True

    def test_users_and_annotations_not_compared(self, params, remote):
        params.users = ["alice@example.com"]
        params.annotations = {"note": "x"}
        assert is_up_to_date(params, remote) is True

    def test_does_not_mutate_inputs(self, params, remote):
        before_params = copy.deepcopy(params)
        before_remote = remote.model_copy(deep=True)

        is_up_to_date(params, remote)

        assert params == before_params
        assert remote == before_remote


class TestGenerateObservation:
    def test_copies_fields_verbatim(self):
        remote = Project(
            id="p-123",
            name="proj-a",
            labels={"env": "prod"},
            creationTimestamp="2024-01-15T10:30:00.000Z",
            status="Active",
        )

        observation = generate_observation(remote)

        assert observation == ProjectObservation(
            id="p-123",
            name="proj-a",
            labels={"env": "prod"},
            creation_time="2024-01-15T10:30:00.000Z",
            status="Active",
        )

    def test_missing_fields_become_empty(self):
        observation = generate_observation(Project())
        assert observation == ProjectObservation()

    def test_labels_are_copied(self):
        remote = Project(id="p-1", labels={"env": "prod"})
        observation = generate_observation(remote)
        observation.labels["env"] = "stage"
        assert remote.labels == {"env": "prod"}


class TestLateInitialize:
    def test_fills_unset_fields(self):
        params = ProjectParameters(name="proj-a")
        remote = Project(labels={"env": "prod"}, annotations={"note": "x"})

        late_initialize(params, remote)

        assert params.labels == {"env": "prod"}
        assert params.annotations == {"note": "x"}

    def test_keeps_declared_fields(self):
        params = ProjectParameters(name="proj-a", labels={}, annotations={"a": "b"})
        remote = Project(labels={"env": "prod"}, annotations={"note": "x"})

        late_initialize(params, remote)

        assert params.labels == {}
        assert params.annotations == {"a": "b"}

    def test_nothing_to_fill(self):
        params = ProjectParameters(name="proj-a")
        late_initialize(params, Project())
        assert params.labels is None
        assert params.annotations is None
