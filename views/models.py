##########################################################################################
#
# Module: views/models.py
#
# Description: Display records for jit and the mapping from raw Jira issue JSON.
#              Optional fields that are absent map to None and never fail a record.
#
# Author: jit maintainers
#
##########################################################################################

import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from jira_utils import MalformedResponse

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

UNSET = 'N/A'

# Legacy (Jira Server) sprint values are serialized GreenHopper objects:
# com.atlassian.greenhopper.service.sprint.Sprint@1a2b[id=7,rapidViewId=3,state=ACTIVE,name=Sprint 7,...]
GREENHOPPER_RE = re.compile(r'Sprint@[0-9a-fA-F]*\[(?P<body>.*)\]')


class OutputMode(Enum):
    '''Which formatter path renders the result.'''
    STANDARD = 'standard'
    TEXT = 'text'
    JSON = 'json'
    DETAIL = 'detail'
    TABLE = 'table'


@dataclass(frozen=True)
class IssueRecord:
    '''
    Normalized snapshot of one ticket.

    Attributes:
        key:         Ticket key, e.g. 'PROJ-123'.
        summary:     One-line summary.
        status:      Workflow status name.
        issue_type:  Issue type name (Bug, Story, ...).
        priority:    Priority name.
        assignee:    Assignee display name.
        reporter:    Reporter display name.
        sprint:      Name of the active (or most recent) sprint.
        created:     Creation date, YYYY-MM-DD when parseable.
        updated:     Last update date, YYYY-MM-DD when parseable.
        due:         Due date, YYYY-MM-DD when parseable.
        description: Plain-text description.
    '''
    key: str
    summary: str
    status: Optional[str] = None
    issue_type: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    reporter: Optional[str] = None
    sprint: Optional[str] = None
    created: Optional[str] = None
    updated: Optional[str] = None
    due: Optional[str] = None
    description: Optional[str] = None

    def to_row(self) -> 'SprintTicketRow':
        return SprintTicketRow(key=self.key, summary=self.summary,
                               status=self.status, updated=self.updated)


@dataclass(frozen=True)
class SprintTicketRow:
    '''Projection of IssueRecord used by the sprint table.'''
    key: str
    summary: str
    status: Optional[str] = None
    updated: Optional[str] = None


@dataclass(frozen=True)
class SprintView:
    '''The caller's tickets in the open sprint.'''
    sprint_name: Optional[str] = None
    rows: List[SprintTicketRow] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _nested_name(fields: Dict[str, Any], name: str, attr: str = 'name') -> Optional[str]:
    value = fields.get(name)
    if isinstance(value, dict):
        text = value.get(attr)
        if isinstance(text, str) and text:
            return text
    return None


def format_date(value: Any) -> Optional[str]:
    '''
    Normalize a Jira date or date-time to YYYY-MM-DD.

    Jira date-times look like '2023-09-15T14:53:37.123+0000'; due dates are plain
    '2023-09-15'. A value that does not parse is returned unchanged.
    '''
    if value is None or value == '':
        return None
    text = str(value)

    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).strftime('%Y-%m-%d')
    except ValueError:
        pass
    for fmt in ('%Y-%m-%dT%H:%M:%S.%f%z', '%Y-%m-%dT%H:%M:%S%z'):
        try:
            return datetime.strptime(text, fmt).strftime('%Y-%m-%d')
        except ValueError:
            continue
    try:
        return date.fromisoformat(text).strftime('%Y-%m-%d')
    except ValueError:
        log.debug(f'Unparseable date kept verbatim: {text}')
        return text


# ---------------------------------------------------------------------------
# Sprint discovery
# ---------------------------------------------------------------------------

def _parse_greenhopper(text: str) -> Optional[Dict[str, str]]:
    match = GREENHOPPER_RE.search(text)
    if not match:
        return None
    attrs = {}
    for part in match.group('body').split(','):
        if '=' in part:
            k, _, v = part.partition('=')
            attrs[k.strip()] = v.strip()
    if 'name' in attrs and 'state' in attrs:
        return attrs
    return None


def _sprint_entries(value: Any) -> List[Dict[str, Any]]:
    '''Return the sprint-shaped entries in a field value, or [] if it is not a sprint field.'''
    items = value if isinstance(value, list) else [value]
    entries = []
    for item in items:
        if isinstance(item, dict):
            if isinstance(item.get('name'), str) and 'state' in item:
                entries.append(item)
        elif isinstance(item, str):
            parsed = _parse_greenhopper(item)
            if parsed:
                entries.append(parsed)
    return entries


def _pick_sprint(entries: List[Dict[str, Any]], active_only: bool = False) -> Optional[str]:
    for entry in entries:
        if str(entry.get('state', '')).lower() == 'active':
            return entry['name']
    if active_only or not entries:
        return None
    return entries[0]['name']


def find_sprint_name(fields: Dict[str, Any], sprint_field: Optional[str] = None,
                     active_only: bool = False) -> Optional[str]:
    '''
    Best-effort lookup of the ticket's sprint name.

    The sprint lives in an instance-specific custom field (customfield_10020 on
    most Jira Cloud sites). If sprint_field is given only that field is read;
    otherwise customfield_* entries are scanned in key order for a value shaped
    like sprint data.

    Input:
        fields:       The issue's "fields" object.
        sprint_field: Optional pinned custom field key.
        active_only:  Return None rather than a non-active sprint.

    Output:
        Active sprint name, else the first listed sprint name (unless
        active_only), else None.
    '''
    if sprint_field:
        return _pick_sprint(_sprint_entries(fields.get(sprint_field)), active_only)

    for key in sorted(k for k in fields if k.startswith('customfield_')):
        entries = _sprint_entries(fields[key])
        if entries:
            log.debug(f'Sprint data found in {key}')
            return _pick_sprint(entries, active_only)
    return None


# ---------------------------------------------------------------------------
# Description (Atlassian Document Format)
# ---------------------------------------------------------------------------

BLOCK_NODES = {'paragraph', 'heading', 'blockquote', 'codeBlock', 'rule', 'panel'}


def _adf_text(node: Any, out: List[str], prefix: str = '') -> None:
    if not isinstance(node, dict):
        return
    node_type = node.get('type')

    if node_type == 'text':
        out.append(node.get('text', ''))
        return
    if node_type == 'hardBreak':
        out.append('\n')
        return
    if node_type in ('mention', 'emoji'):
        attrs = node.get('attrs') or {}
        out.append(attrs.get('text') or attrs.get('shortName') or '')
        return

    if node_type == 'listItem':
        out.append(prefix + '- ')
    for child in node.get('content') or []:
        if node_type in ('bulletList', 'orderedList'):
            _adf_text(child, out, prefix)
        elif (node_type == 'listItem' and isinstance(child, dict)
              and child.get('type') in ('bulletList', 'orderedList')):
            _adf_text(child, out, prefix + '  ')
        else:
            _adf_text(child, out, prefix)

    if node_type in BLOCK_NODES and out and not out[-1].endswith('\n'):
        out.append('\n')


def adf_to_text(document: Dict[str, Any]) -> str:
    '''Flatten an ADF document into plain text, one block per line.'''
    out: List[str] = []
    for node in document.get('content') or []:
        _adf_text(node, out)
        if out and not out[-1].endswith('\n'):
            out.append('\n')
    lines = [line.rstrip() for line in ''.join(out).splitlines()]
    return '\n'.join(line for line in lines if line).strip()


def description_text(value: Any) -> Optional[str]:
    '''
    Convert a description field to display text.

    API v2 returns plain strings, API v3 returns ADF documents. A document with
    no extractable text falls back to its JSON.
    '''
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        text = adf_to_text(value)
        if text:
            return text
        if value.get('content'):
            return json.dumps(value, indent=2, ensure_ascii=False)
        return None
    return json.dumps(value, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------

def map_issue(raw: Any, sprint_field: Optional[str] = None) -> IssueRecord:
    '''
    Map one raw issue payload to an IssueRecord.

    Input:
        raw:          Issue JSON as returned by /issue/{key} or in search results.
        sprint_field: Optional pinned sprint custom field key.

    Output:
        IssueRecord.

    Raises:
        MalformedResponse: If the key or fields.summary is missing.
    '''
    if not isinstance(raw, dict):
        raise MalformedResponse('issue is not a JSON object')
    key = raw.get('key')
    fields = raw.get('fields')
    if not isinstance(key, str) or not key:
        raise MalformedResponse('issue has no "key"')
    if not isinstance(fields, dict) or not isinstance(fields.get('summary'), str):
        raise MalformedResponse(f'issue {key} has no "fields.summary"')

    return IssueRecord(
        key=key,
        summary=fields['summary'],
        status=_nested_name(fields, 'status'),
        issue_type=_nested_name(fields, 'issuetype'),
        priority=_nested_name(fields, 'priority'),
        assignee=_nested_name(fields, 'assignee', 'displayName'),
        reporter=_nested_name(fields, 'reporter', 'displayName'),
        sprint=find_sprint_name(fields, sprint_field, active_only=True),
        created=format_date(fields.get('created')),
        updated=format_date(fields.get('updated')),
        due=format_date(fields.get('duedate')),
        description=description_text(fields.get('description')),
    )


def map_sprint_issues(raw_issues: List[Any], sprint_field: Optional[str] = None) -> SprintView:
    '''
    Map sprint search results to a SprintView.

    The sprint name shown is taken from the first ticket that carries one: its
    active sprint, else the first sprint listed on it.
    '''
    records = [map_issue(raw, sprint_field) for raw in raw_issues]
    sprint_name = next(
        (name for name in (find_sprint_name(raw['fields'], sprint_field) for raw in raw_issues) if name),
        None,
    )
    log.debug(f'Mapped {len(records)} sprint tickets (sprint={sprint_name})')
    return SprintView(sprint_name=sprint_name, rows=[r.to_row() for r in records])
