"""Shared test fixtures."""

import pytest

from planebot.models import Label, ProjectIdentity, RawIssue, WorkflowState
from planebot.settings import PlaneSettings

BASE_URL = "https://api.plane.so/api/v1"
WORKSPACE_URL = f"{BASE_URL}/workspaces/acme"
PROJECT_URL = f"{WORKSPACE_URL}/projects/proj-1"
STORAGE_URL = "https://uploads.example-bucket.s3.amazonaws.com/"

STATE_NODES = [
    {
        "id": "state-todo",
        "name": "Todo",
        "color": "#3a3a3a",
        "group": "unstarted",
        "sequence": 15000,
        "default": True,
        "description": "",
    },
    {
        "id": "state-doing",
        "name": "In Progress",
        "color": "#f59e0b",
        "group": "started",
        "sequence": 25000,
        "default": False,
        "description": "",
    },
]

LABEL_NODES = [
    {"id": "label-bug", "name": "bug", "color": "#dc2626"},
    {"id": "label-ui", "name": "ui", "color": "#2563eb"},
]

PROJECT_NODE = {"id": "proj-1", "identifier": "PROJ", "name": "Project One"}

ISSUE_NODE = {
    "id": "issue-1",
    "name": "Login button does nothing",
    "description_html": "<p>Clicking login has no effect.</p>",
    "description_stripped": "Clicking login has no effect.",
    "priority": "high",
    "state": "state-todo",
    "labels": ["label-bug", "label-ui"],
    "created_at": "2024-05-01T10:00:00Z",
    "updated_at": "2024-05-02T10:00:00Z",
    "sequence_id": 42,
}


def make_settings(**kwargs) -> PlaneSettings:
    defaults = {
        "api_key": "plane_api_test",
        "workspace_slug": "acme",
        "project_id": "proj-1",
        "base_url": BASE_URL,
    }
    defaults.update(kwargs)
    return PlaneSettings(**defaults)  # type: ignore[arg-type]


@pytest.fixture
def settings() -> PlaneSettings:
    return make_settings()


@pytest.fixture
def project() -> ProjectIdentity:
    return ProjectIdentity.model_validate(PROJECT_NODE)


@pytest.fixture
def states() -> dict[str, WorkflowState]:
    return {node["id"]: WorkflowState.model_validate(node) for node in STATE_NODES}


@pytest.fixture
def labels() -> dict[str, Label]:
    return {node["id"]: Label.model_validate(node) for node in LABEL_NODES}


@pytest.fixture
def raw_issue() -> RawIssue:
    return RawIssue.model_validate(ISSUE_NODE)
