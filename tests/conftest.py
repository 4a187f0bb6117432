"""Shared pytest fixtures and configuration."""

import copy
import logging
import os
import sys

import pytest

SAMPLE_ISSUE = {
    "key": "ISSUE-123",
    "fields": {
        "summary": "Fix the login button in Safari",
        "status": {"name": "In Progress"},
        "issuetype": {"name": "Bug"},
        "priority": {"name": "High"},
        "assignee": {"displayName": "Jane Doe"},
        "reporter": {"displayName": "John Roe"},
        "created": "2024-03-01T09:15:00.000+0000",
        "updated": "2024-03-04T17:42:10.123+0000",
        "duedate": None,
        "customfield_10020": [
            {"id": 11, "name": "Sprint 11", "state": "closed", "boardId": 3},
            {"id": 12, "name": "Sprint 12", "state": "active", "boardId": 3},
        ],
        "description": {
            "type": "doc",
            "version": 1,
            "content": [
                {
                    "type": "paragraph",
                    "content": [{"type": "text", "text": "Clicking the button does nothing."}],
                }
            ],
        },
    },
}


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run each test with an empty home, cwd and Jira environment."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("JIT_LOG_FILE", str(tmp_path / "jit.log"))
    for key in ("JIRA_BASE_URL", "JIRA_API_TOKEN", "JIRA_USER_EMAIL", "JIRA_SPRINT_FIELD"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(work)
    yield
    log = logging.getLogger(os.path.basename(sys.argv[0]))
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()


@pytest.fixture
def sample_issue() -> dict:
    """Raw issue payload as returned by /rest/api/3/issue/ISSUE-123."""
    return copy.deepcopy(SAMPLE_ISSUE)
