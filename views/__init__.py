##########################################################################################
#
# Module: views
#
# Description: Display records and output formatting for jit.
#
# Author: jit maintainers
#
##########################################################################################

from views.formatters import render
from views.models import (
    IssueRecord,
    OutputMode,
    SprintTicketRow,
    SprintView,
    map_issue,
    map_sprint_issues,
)

__all__ = [
    'IssueRecord',
    'OutputMode',
    'SprintTicketRow',
    'SprintView',
    'map_issue',
    'map_sprint_issues',
    'render',
]
