##########################################################################################
#
# Script name: jira_utils.py
#
# Description: Jira REST helpers for jit. Parses ticket references and performs the
#              read-only issue and sprint-search requests.
#
# Author: jit maintainers
#
# Credentials:
#   Requests authenticate with a Jira API token over HTTP basic auth. Generate a
#   token at: https://id.atlassian.com/manage-profile/security/api-tokens
#   Credentials are resolved by config/settings.py and passed in explicitly.
#
#   NEVER commit credentials to version control.
#
##########################################################################################

import logging
import os
import re
import sys
from urllib.parse import parse_qs, quote, urlparse

import requests

# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

REST_API_PATH = '/rest/api/3'
DEFAULT_LIMIT = 10
SPRINT_JQL = 'assignee = currentUser() AND sprint in openSprints() ORDER BY updated DESC'
SPRINT_SEARCH_FIELDS = ['summary', 'status', 'updated']

TICKET_KEY_RE = re.compile(r'^([A-Za-z][A-Za-z0-9_]*)-(\d+)$')
BROWSE_RE = re.compile(r'/browse/([A-Za-z][A-Za-z0-9_]*-\d+)(?:[/?#]|$)')

# Logging config
log = logging.getLogger(os.path.basename(sys.argv[0]))


# ****************************************************************************************
# Exceptions
# ****************************************************************************************

class Error(Exception):
    '''
    Base class for exceptions in this module.
    '''
    pass

class InvalidTicketReference(Error):
    '''
    Exception raised when input is neither a ticket key nor a browse URL.
    '''
    def __init__(self, value):
        self.value = value
        self.message = f'Invalid ticket reference: "{value}" (expected e.g. PROJ-123 or a /browse/PROJ-123 URL)'
        super().__init__(self.message)

class MissingCredentials(Error):
    '''
    Exception raised when no configuration source supplies a complete set of credentials.
    '''
    def __init__(self, field, searched=None, hint=None):
        self.field = field
        self.searched = list(searched or [])
        self.hint = hint
        self.message = f'Jira credentials error: {field} not set'
        if self.searched:
            self.message += f' (searched: {", ".join(self.searched)})'
        if hint:
            self.message += f'; {hint}'
        super().__init__(self.message)

class TransportError(Error):
    '''
    Exception raised when the request never produced an HTTP response.
    '''
    def __init__(self, message):
        self.message = f'Jira connection failed: {message}'
        super().__init__(self.message)

class Unauthorized(Error):
    '''
    Exception raised on HTTP 401 or 403.
    '''
    def __init__(self, status_code):
        self.status_code = status_code
        self.message = f'Jira rejected the credentials (HTTP {status_code}); check JIRA_USER_EMAIL and JIRA_API_TOKEN'
        super().__init__(self.message)

class NotFound(Error):
    '''
    Exception raised on HTTP 404. kind names what was missing ('ticket', 'endpoint').
    '''
    def __init__(self, what, kind='ticket'):
        self.what = what
        self.kind = kind
        self.message = f'Jira {kind} not found: {what}'
        super().__init__(self.message)

class UnexpectedStatus(Error):
    '''
    Exception raised on any other non-2xx response.
    '''
    def __init__(self, status_code, detail=''):
        self.status_code = status_code
        self.message = f'Jira API request failed with status {status_code}'
        if detail:
            self.message += f': {detail}'
        super().__init__(self.message)

class MalformedResponse(Error):
    '''
    Exception raised when a response body is not the expected JSON shape.
    '''
    def __init__(self, message):
        self.message = f'Malformed Jira response: {message}'
        super().__init__(self.message)


# ****************************************************************************************
# Functions
# ****************************************************************************************

def extract_ticket_id(value):
    '''
    Extract a ticket key from a bare key or a Jira URL.

    Input:
        value: String such as 'RW-1931', 'rw-1931' or
               'https://company.atlassian.net/browse/RW-1931'.

    Output:
        Ticket key with the project segment upper-cased (e.g. 'RW-1931').

    Raises:
        InvalidTicketReference: If no ticket key can be found.
    '''
    log.debug(f'Entering extract_ticket_id(value={value})')
    text = (value or '').strip()

    if text.lower().startswith(('http://', 'https://')):
        parsed = urlparse(text)
        match = BROWSE_RE.search(parsed.path)
        if match:
            candidate = match.group(1)
        else:
            # Board and backlog views reference the issue as ?selectedIssue=KEY
            candidate = (parse_qs(parsed.query).get('selectedIssue') or [''])[0]
    else:
        candidate = text

    match = TICKET_KEY_RE.match(candidate)
    if not match:
        raise InvalidTicketReference(value)

    key = f'{match.group(1).upper()}-{match.group(2)}'
    log.debug(f'Resolved ticket key: {key}')
    return key


def _api_url(credentials, path):
    return f'{credentials.base_url}{REST_API_PATH}{path}'


def _get_json(credentials, url, params=None, missing=None):
    '''
    Perform one authenticated GET and decode the JSON body.

    Input:
        credentials: Credentials with base_url, user_email and api_token.
        url: Absolute endpoint URL.
        params: Optional query parameters.
        missing: Ticket key reported by NotFound. Without one a 404 is reported
                 against the endpoint URL.

    Output:
        Decoded JSON value.

    Raises:
        TransportError, Unauthorized, NotFound, UnexpectedStatus, MalformedResponse
    '''
    log.debug(f'GET {url} params={params}')
    try:
        response = requests.get(
            url,
            auth=(credentials.user_email, credentials.api_token),
            headers={'Accept': 'application/json'},
            params=params,
        )
    except requests.RequestException as e:
        log.debug(f'Request to {url} failed: {e}')
        raise TransportError(str(e)) from e

    log.debug(f'Response status: {response.status_code}')

    if response.status_code == 404:
        if missing:
            raise NotFound(missing)
        raise NotFound(f'{url} (check JIRA_BASE_URL)', kind='endpoint')
    if response.status_code in (401, 403):
        raise Unauthorized(response.status_code)
    if not 200 <= response.status_code < 300:
        # Raw body goes to the debug log only
        log.debug(f'API request failed: {response.status_code} - {response.text}')
        raise UnexpectedStatus(response.status_code, _error_detail(response))

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponse(f'body is not valid JSON ({e})') from e


def _error_detail(response):
    '''Pull the errorMessages list out of a Jira error body, if there is one.'''
    try:
        body = response.json()
    except ValueError:
        return ''
    if isinstance(body, dict):
        messages = list(body.get('errorMessages') or [])
        messages.extend(f'{k}: {v}' for k, v in (body.get('errors') or {}).items())
        return '; '.join(str(m) for m in messages)
    return ''


def fetch_issue(credentials, key):
    '''
    Fetch a single issue.

    Input:
        credentials: Credentials to authenticate with.
        key: Ticket key (e.g. 'PROJ-123').

    Output:
        Raw issue JSON dict.

    Raises:
        NotFound: If the issue does not exist or is not visible.
        Unauthorized, TransportError, UnexpectedStatus, MalformedResponse
    '''
    log.debug(f'Entering fetch_issue(key={key})')
    url = _api_url(credentials, f'/issue/{quote(key, safe="")}')
    issue = _get_json(credentials, url, missing=key)

    if not isinstance(issue, dict):
        raise MalformedResponse('issue payload is not a JSON object')

    log.info(f'Fetched issue {key}')
    return issue


def fetch_sprint_issues(credentials, limit=DEFAULT_LIMIT):
    '''
    Fetch the caller's tickets in the open sprint(s), most recently updated first.

    Input:
        credentials: Credentials to authenticate with.
        limit: Maximum number of tickets to return (maxResults).

    Output:
        List of raw issue JSON dicts.

    Raises:
        Unauthorized, NotFound, TransportError, UnexpectedStatus, MalformedResponse
    '''
    log.debug(f'Entering fetch_sprint_issues(limit={limit})')

    fields = list(SPRINT_SEARCH_FIELDS)
    sprint_field = getattr(credentials, 'sprint_field', None)
    # Without a pinned sprint field every navigable field is requested so the
    # sprint custom field can be discovered.
    fields.append(sprint_field or '*navigable')

    params = {
        'jql': SPRINT_JQL,
        'maxResults': limit,
        'fields': ','.join(fields),
    }
    data = _get_json(credentials, _api_url(credentials, '/search/jql'), params=params)

    issues = data.get('issues') if isinstance(data, dict) else None
    if not isinstance(issues, list):
        raise MalformedResponse('search result has no "issues" list')

    log.info(f'Retrieved {len(issues)} sprint tickets')
    return issues[:limit]
