"""Unit tests for output formatting."""

import json
import re

import pytest

from views.formatters import (
    _get_status_style,
    format_detail,
    format_table,
    render,
    truncate_with_ellipsis,
)
from views.models import IssueRecord, OutputMode, SprintTicketRow, SprintView, map_issue

SAMPLE = IssueRecord(key="ISSUE-123", summary="Fix the login button in Safari")

FULL = IssueRecord(
    key="ISSUE-123",
    summary="Fix the login button in Safari",
    status="In Progress",
    issue_type="Bug",
    priority="High",
    assignee="Jane Doe",
    reporter="John Roe",
    sprint="Sprint 12",
    created="2024-03-01",
    updated="2024-03-04",
    due=None,
    description="Clicking the button does nothing.",
)

SPRINT = SprintView(
    sprint_name="Sprint 12",
    rows=[
        SprintTicketRow("PROJ-123", "Implement new login page", "In Review", "2024-03-04"),
        SprintTicketRow("PROJ-124", "Fix responsiveness on dashboard", "In Progress", "2024-03-02"),
    ],
)

ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def _strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


@pytest.mark.unit
class TestSingleTicketModes:
    """Tests for STANDARD, TEXT and JSON output of one ticket."""

    def test_standard(self) -> None:
        """Two fixed-width labelled lines."""
        assert render(OutputMode.STANDARD, record=SAMPLE) == (
            "Ticket:   ISSUE-123\nSummary:  Fix the login button in Safari"
        )

    def test_text(self) -> None:
        """Single KEY: Summary line."""
        assert render(OutputMode.TEXT, record=SAMPLE) == "ISSUE-123: Fix the login button in Safari"

    def test_json(self) -> None:
        """Compact JSON with ticket then summary."""
        assert render(OutputMode.JSON, record=SAMPLE) == (
            '{"ticket":"ISSUE-123","summary":"Fix the login button in Safari"}'
        )

    def test_json_keeps_unicode(self) -> None:
        """Non-ASCII summaries are not escaped."""
        record = IssueRecord(key="P-1", summary="Café crash")
        assert render(OutputMode.JSON, record=record) == '{"ticket":"P-1","summary":"Café crash"}'

    def test_detailed_json(self) -> None:
        """--show --json adds every metadata field in a fixed order, null when unset."""
        text = render(OutputMode.JSON, record=FULL, detailed=True)
        assert "\n" not in text
        data = json.loads(text)
        assert list(data) == [
            "ticket", "summary", "status", "type", "priority", "assignee",
            "reporter", "sprint", "created", "updated", "due", "description",
        ]
        assert data["sprint"] == "Sprint 12"
        assert data["due"] is None

    def test_sample_payload_end_to_end(self, sample_issue: dict) -> None:
        """The sample issue JSON renders the documented lines."""
        record = map_issue(sample_issue)
        assert render(OutputMode.TEXT, record=record) == "ISSUE-123: Fix the login button in Safari"


@pytest.mark.unit
class TestDetail:
    """Tests for the DETAIL block."""

    def test_detail_layout(self) -> None:
        """Header, grid and description sections with fixed widths."""
        assert format_detail(FULL).split("\n") == [
            "TICKET DETAILS",
            "",
            "ISSUE-123: Fix the login button in Safari",
            "",
            "Type:        Bug                Priority:    High",
            "Status:      In Progress        Sprint:      Sprint 12",
            "Assignee:    Jane Doe           Reporter:    John Roe",
            "Created:     2024-03-01         Updated:     2024-03-04",
            "Due Date:    N/A",
            "",
            "DESCRIPTION",
            "",
            "Clicking the button does nothing.",
        ]

    def test_unset_fields_render_placeholder(self) -> None:
        """A record with only key and summary still renders."""
        lines = render(OutputMode.DETAIL, record=SAMPLE).split("\n")
        assert "Type:        N/A                Priority:    N/A" in lines
        assert "Due Date:    N/A" in lines
        assert lines[-1] == "No description provided."

    def test_no_trailing_whitespace(self) -> None:
        """Grid lines are right-trimmed."""
        for line in format_detail(SAMPLE).split("\n"):
            assert line == line.rstrip()


@pytest.mark.unit
class TestTable:
    """Tests for the sprint TABLE."""

    def test_table_layout(self) -> None:
        """Columns are sized to the longest entry and rows are separated."""
        assert format_table(SPRINT).split("\n") == [
            "Current Sprint: Sprint 12",
            "",
            "┌──────────┬─────────────────────────────────┬─────────────┬────────────┐",
            "│ Key      │ Summary                         │ Status      │ Updated    │",
            "├──────────┼─────────────────────────────────┼─────────────┼────────────┤",
            "│ PROJ-123 │ Implement new login page        │ In Review   │ 2024-03-04 │",
            "├──────────┼─────────────────────────────────┼─────────────┼────────────┤",
            "│ PROJ-124 │ Fix responsiveness on dashboard │ In Progress │ 2024-03-02 │",
            "└──────────┴─────────────────────────────────┴─────────────┴────────────┘",
        ]

    def test_all_lines_same_width(self) -> None:
        """Borders and rows line up."""
        lines = format_table(SPRINT).split("\n")[2:]
        assert len({len(line) for line in lines}) == 1

    def test_unknown_sprint_and_unset_cells(self) -> None:
        """Missing sprint name and missing cells use placeholders."""
        view = SprintView(rows=[SprintTicketRow("P-1", "Something")])
        lines = format_table(view).split("\n")
        assert lines[0] == "Current Sprint: Unknown Sprint"
        assert "│ P-1 │ Something │ N/A    │ N/A     │" in lines

    def test_long_summary_truncated(self) -> None:
        """Summaries over 58 characters are cut with an ellipsis."""
        view = SprintView(sprint_name="S", rows=[SprintTicketRow("P-1", "x" * 80, "Open", "2024-01-01")])
        assert ("x" * 55 + "...") in format_table(view)
        assert "x" * 56 not in format_table(view)

    def test_empty_sprint(self) -> None:
        """No rows gives a friendly message."""
        assert render(OutputMode.TABLE, sprint=SprintView()) == "No tickets found in the current sprint."

    def test_sprint_json(self) -> None:
        """--my-tickets --json renders a compact array."""
        text = render(OutputMode.JSON, sprint=SPRINT)
        assert text.startswith('[{"ticket":"PROJ-123","summary":"Implement new login page",')
        data = json.loads(text)
        assert [row["ticket"] for row in data] == ["PROJ-123", "PROJ-124"]
        assert data[1] == {
            "ticket": "PROJ-124",
            "summary": "Fix responsiveness on dashboard",
            "status": "In Progress",
            "updated": "2024-03-02",
            "sprint": "Sprint 12",
        }


@pytest.mark.unit
class TestColor:
    """Tests for terminal styling of the DETAIL and TABLE views."""

    @pytest.fixture(autouse=True)
    def _colors_allowed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)

    @pytest.mark.parametrize(
        "status,style",
        [
            ("Done", "bold bright_green"),
            ("Resolved", "bold bright_green"),
            ("In Progress", "bold bright_yellow"),
            ("In Review", "bold yellow"),
            ("Testing", "bold bright_yellow"),
            ("To Do", "white"),
            ("TODO", "bright_blue"),
            ("Backlog", "blue"),
            ("Selected for Development", "cyan"),
            ("Reopened", "bright_blue"),
            ("Blocked", "bold bright_red"),
            ("Won't Do", "bold red"),
            ("Triage", "white"),
            (None, "white"),
        ],
    )
    def test_status_categories(self, status, style) -> None:
        """Statuses are styled by the keyword they contain."""
        assert _get_status_style(status) == style

    def test_plain_by_default(self) -> None:
        """Without color no escape codes are emitted."""
        assert "\x1b[" not in render(OutputMode.TABLE, sprint=SPRINT)
        assert "\x1b[" not in render(OutputMode.DETAIL, record=FULL)

    def test_table_status_styled(self) -> None:
        """Status cells carry ANSI styles and the layout is unchanged."""
        text = render(OutputMode.TABLE, sprint=SPRINT, color=True)
        assert "\x1b[1;33mIn Review\x1b[0m" in text
        assert _strip_ansi(text) == format_table(SPRINT)

    def test_table_widths_measured_on_plain_text(self) -> None:
        """Escape codes do not widen the status column."""
        lines = _strip_ansi(format_table(SPRINT, color=True)).split("\n")[2:]
        assert len({len(line) for line in lines}) == 1

    def test_detail_headings_bold(self) -> None:
        """Headings and labels are bold and the status is styled."""
        text = format_detail(FULL, color=True)
        lines = text.split("\n")
        assert lines[0] == "\x1b[1mTICKET DETAILS\x1b[0m"
        assert "\x1b[1mDESCRIPTION\x1b[0m" in lines
        assert "\x1b[1;93mIn Progress\x1b[0m" in text
        assert _strip_ansi(text) == format_detail(FULL)

    def test_json_never_styled(self) -> None:
        """JSON output is unaffected by color."""
        assert render(OutputMode.JSON, record=FULL, color=True) == render(OutputMode.JSON, record=FULL)


@pytest.mark.unit
class TestTruncate:
    """Tests for truncate_with_ellipsis."""

    def test_short_text_unchanged(self) -> None:
        """Text within the limit is returned as is."""
        assert truncate_with_ellipsis("short", 10) == "short"

    def test_exact_length_unchanged(self) -> None:
        """Text exactly at the limit is not cut."""
        assert truncate_with_ellipsis("x" * 10, 10) == "x" * 10

    def test_long_text_cut(self) -> None:
        """Over-long text keeps max_len characters including the ellipsis."""
        assert truncate_with_ellipsis("abcdefghijkl", 8) == "abcde..."
