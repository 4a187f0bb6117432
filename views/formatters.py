##########################################################################################
#
# Module: views/formatters.py
#
# Description: Text renderings of IssueRecord and SprintView for each OutputMode.
#              With color enabled, the detail and table views style status values
#              and headings with rich; layout is always measured on the plain text.
#
# Author: jit maintainers
#
##########################################################################################

import json
import logging
import os
import sys
from io import StringIO
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.text import Text

from views.models import UNSET, IssueRecord, OutputMode, SprintView

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

DETAIL_LABEL_WIDTH = 12
DETAIL_VALUE_WIDTH = 18
SUMMARY_MAX_LEN = 58

TABLE_HEADERS = ['Key', 'Summary', 'Status', 'Updated']

# Matched in order against the lower-cased status name
STATUS_STYLES = [
    (('done', 'complete', 'resolved'), 'bold bright_green'),
    (('progress',), 'bold bright_yellow'),
    (('review',), 'bold yellow'),
    (('implement', 'testing'), 'bold bright_yellow'),
    (('todo',), 'bright_blue'),
    (('backlog',), 'blue'),
    (('selected',), 'cyan'),
    (('open',), 'bright_blue'),
    (('block', 'impediment'), 'bold bright_red'),
    (('cancel', "won't", 'wont'), 'bold red'),
]
DEFAULT_STATUS_STYLE = 'white'
HEADING_STYLE = 'bold'


def _show(value: Optional[str]) -> str:
    return value if value else UNSET


def _get_status_style(status_name: Optional[str]) -> str:
    if not status_name:
        return DEFAULT_STATUS_STYLE
    lowered = status_name.lower()
    for keywords, style in STATUS_STYLES:
        if any(keyword in lowered for keyword in keywords):
            return style
    return DEFAULT_STATUS_STYLE


def _render_to_string(text: str, style: str) -> str:
    '''Render text in a rich style to an ANSI string.'''
    console = Console(file=StringIO(), force_terminal=True, color_system='standard')
    console.print(Text(text, style=style), end='', soft_wrap=True)
    return console.file.getvalue()


def _style(text: str, style: Optional[str]) -> str:
    return _render_to_string(text, style) if style else text


def _pad(text: str, width: int, style: Optional[str] = None) -> str:
    '''Left-align text in width columns, padding by its plain length before styling.'''
    return _style(text, style) + ' ' * (width - len(text))


def truncate_with_ellipsis(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + '...'


# ****************************************************************************************
# Single ticket
# ****************************************************************************************

def format_standard(record: IssueRecord) -> str:
    return f'Ticket:   {record.key}\nSummary:  {record.summary}'


def format_text(record: IssueRecord) -> str:
    return f'{record.key}: {record.summary}'


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


def issue_to_dict(record: IssueRecord, detailed: bool = False) -> Dict[str, Any]:
    '''
    JSON shape of a ticket. Keys are emitted in a fixed order; unset values are null.
    '''
    data = {'ticket': record.key, 'summary': record.summary}
    if detailed:
        data.update({
            'status': record.status,
            'type': record.issue_type,
            'priority': record.priority,
            'assignee': record.assignee,
            'reporter': record.reporter,
            'sprint': record.sprint,
            'created': record.created,
            'updated': record.updated,
            'due': record.due,
            'description': record.description,
        })
    return data


def _grid_row(*pairs, color: bool = False) -> str:
    cells = []
    for label, value, *value_style in pairs:
        label_style = HEADING_STYLE if color else None
        style = value_style[0] if color and value_style else None
        cells.append(f'{_pad(label, DETAIL_LABEL_WIDTH, label_style)} '
                     f'{_pad(_show(value), DETAIL_VALUE_WIDTH, style)}')
    return ' '.join(cells).rstrip()


def format_detail(record: IssueRecord, color: bool = False) -> str:
    '''
    Multi-section block: header, key/summary, metadata grid, description.

    With color, headings and labels are bold and the status is styled by
    category; stripped of escape codes the text is identical to the plain view.

    Example:
        TICKET DETAILS

        PROJ-1: Fix the login button

        Type:        Bug                Priority:    High
        Status:      In Progress        Sprint:      Sprint 12
        Assignee:    Jane Doe           Reporter:    John Roe
        Created:     2024-03-01         Updated:     2024-03-04
        Due Date:    N/A

        DESCRIPTION

        Clicking the button does nothing in Safari.
    '''
    heading_style = HEADING_STYLE if color else None
    status_style = _get_status_style(record.status)
    lines = [
        _style('TICKET DETAILS', heading_style),
        '',
        _style(f'{record.key}: {record.summary}', heading_style),
        '',
        _grid_row(('Type:', record.issue_type), ('Priority:', record.priority), color=color),
        _grid_row(('Status:', record.status, status_style), ('Sprint:', record.sprint), color=color),
        _grid_row(('Assignee:', record.assignee), ('Reporter:', record.reporter), color=color),
        _grid_row(('Created:', record.created), ('Updated:', record.updated), color=color),
        _grid_row(('Due Date:', record.due), color=color),
        '',
        _style('DESCRIPTION', heading_style),
        '',
        record.description or 'No description provided.',
    ]
    return '\n'.join(lines)


# ****************************************************************************************
# Sprint list
# ****************************************************************************************

def _border(widths: List[int], left: str, mid: str, right: str) -> str:
    return left + mid.join('─' * w for w in widths) + right


def _table_row(cells: List[str], widths: List[int], styles: Optional[List[Optional[str]]] = None) -> str:
    styles = styles or [None] * len(cells)
    return '│' + '│'.join(
        f' {_pad(cell, w - 1, style)}' for cell, w, style in zip(cells, widths, styles)
    ) + '│'


def format_table(sprint: SprintView, color: bool = False) -> str:
    '''
    Box-drawn table of the sprint tickets, preceded by the sprint name.

    Column width is the longest of the header and its cells plus two; a separator
    line is drawn between every pair of rows. With color the status cells are
    styled by category.
    '''
    if not sprint.rows:
        return 'No tickets found in the current sprint.'

    table = [TABLE_HEADERS]
    styles = [None]
    for row in sprint.rows:
        table.append([
            row.key,
            truncate_with_ellipsis(row.summary, SUMMARY_MAX_LEN),
            _show(row.status),
            _show(row.updated),
        ])
        styles.append([None, None, _get_status_style(row.status), None] if color else None)

    widths = [max(len(r[i]) for r in table) + 2 for i in range(len(TABLE_HEADERS))]

    lines = [
        f'Current Sprint: {sprint.sprint_name or "Unknown Sprint"}',
        '',
        _border(widths, '┌', '┬', '┐'),
    ]
    for index, cells in enumerate(table):
        lines.append(_table_row(cells, widths, styles[index]))
        if index < len(table) - 1:
            lines.append(_border(widths, '├', '┼', '┤'))
    lines.append(_border(widths, '└', '┴', '┘'))
    return '\n'.join(lines)


def sprint_to_list(sprint: SprintView) -> List[Dict[str, Any]]:
    return [
        {
            'ticket': row.key,
            'summary': row.summary,
            'status': row.status,
            'updated': row.updated,
            'sprint': sprint.sprint_name,
        }
        for row in sprint.rows
    ]


# ****************************************************************************************
# Dispatch
# ****************************************************************************************

def render(mode: OutputMode, record: Optional[IssueRecord] = None,
           sprint: Optional[SprintView] = None, detailed: bool = False,
           color: bool = False) -> str:
    '''
    Render a ticket or a sprint view.

    Input:
        mode:     OutputMode to render with.
        record:   Ticket for STANDARD, TEXT, DETAIL and single-ticket JSON.
        sprint:   Sprint view for TABLE and sprint JSON.
        detailed: JSON only; include every metadata field of the ticket.
        color:    DETAIL and TABLE only; add ANSI styling for a terminal.

    Output:
        Rendered text without a trailing newline.
    '''
    log.debug(f'Entering render(mode={mode.value}, detailed={detailed}, color={color})')

    if mode is OutputMode.STANDARD:
        return format_standard(record)
    if mode is OutputMode.TEXT:
        return format_text(record)
    if mode is OutputMode.JSON:
        if sprint is not None:
            return _dumps(sprint_to_list(sprint))
        return _dumps(issue_to_dict(record, detailed))
    if mode is OutputMode.DETAIL:
        return format_detail(record, color)
    if mode is OutputMode.TABLE:
        return format_table(sprint, color)
    raise ValueError(f'Unknown output mode: {mode}')
