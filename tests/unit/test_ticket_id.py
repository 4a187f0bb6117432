"""Unit tests for ticket reference parsing."""

import pytest

from jira_utils import InvalidTicketReference, extract_ticket_id


@pytest.mark.unit
class TestBareKeys:
    """Tests for plain PROJECT-NUMBER input."""

    @pytest.mark.parametrize("key", ["P-1", "PROJ-123", "RW-1931", "AB2-7", "MY_PROJ-42"])
    def test_valid_key_returned_unchanged(self, key: str) -> None:
        """Upper-case keys come back exactly as given."""
        assert extract_ticket_id(key) == key

    def test_lower_case_project_is_upper_cased(self) -> None:
        """Project segment is normalized to upper case."""
        assert extract_ticket_id("proj-123") == "PROJ-123"

    def test_surrounding_whitespace_ignored(self) -> None:
        """Leading and trailing whitespace is stripped."""
        assert extract_ticket_id("  PROJ-5 \n") == "PROJ-5"


@pytest.mark.unit
class TestUrls:
    """Tests for browse and board URLs."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://company.atlassian.net/browse/P-123",
            "https://company.atlassian.net/browse/P-123/",
            "https://company.atlassian.net/browse/P-123?focusedCommentId=99",
            "https://company.atlassian.net/browse/P-123#comment",
            "http://jira.example.com/jira/browse/P-123/worklog",
        ],
    )
    def test_browse_url(self, url: str) -> None:
        """The key after /browse/ is extracted."""
        assert extract_ticket_id(url) == "P-123"

    def test_selected_issue_query(self) -> None:
        """Board URLs carrying selectedIssue are accepted."""
        url = "https://company.atlassian.net/jira/software/projects/P/boards/1?selectedIssue=P-77"
        assert extract_ticket_id(url) == "P-77"

    def test_url_without_key(self) -> None:
        """A URL with no ticket key is rejected."""
        with pytest.raises(InvalidTicketReference):
            extract_ticket_id("https://company.atlassian.net/jira/your-work")


@pytest.mark.unit
class TestMalformed:
    """Tests for input that is not a ticket reference."""

    @pytest.mark.parametrize("value", ["", "   ", "PROJ", "PROJ123", "PROJ-", "PROJ-abc", "-123", "123-456"])
    def test_malformed_input_raises(self, value: str) -> None:
        """Missing hyphen, non-numeric suffix and empty input all fail."""
        with pytest.raises(InvalidTicketReference) as exc_info:
            extract_ticket_id(value)
        assert "Invalid ticket reference" in exc_info.value.message

    def test_none_raises(self) -> None:
        """None is treated like empty input."""
        with pytest.raises(InvalidTicketReference):
            extract_ticket_id(None)
