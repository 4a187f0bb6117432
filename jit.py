#!/usr/bin/env python3
##########################################################################################
#
# Script name: jit.py
#
# Description: Command line entry point for jit. Looks up a Jira ticket's key and
#              summary, its full details, or the caller's tickets in the open sprint.
#
# Author: jit maintainers
#
# Usage:
#   jit PROJ-123
#   jit https://company.atlassian.net/browse/PROJ-123 --text
#   jit PROJ-123 --show
#   jit --my-tickets --limit 20
#
##########################################################################################

import argparse
import logging
import os
import sys
import traceback
from datetime import date

from config.settings import (
    ENV_FILENAME,
    configure_logging,
    default_sources,
    resolve_credentials,
    user_config_dir,
)
from jira_utils import (
    DEFAULT_LIMIT,
    Error,
    extract_ticket_id,
    fetch_issue,
    fetch_sprint_issues,
)
from views.formatters import render
from views.models import OutputMode, map_issue, map_sprint_issues

__version__ = '0.3.0'

# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

# Logging config
log = logging.getLogger(os.path.basename(sys.argv[0]))

# File handler - set by handle_args()
_file_handler = None


def output(message=''):
    '''
    Print user-facing output to stdout.
    Always logs to file so the log shows what the user saw.

    Input:
        message: String to output (default empty for blank line).

    Side Effects:
        Writes the message to the log file handler at INFO level, bypassing the
        console handler.
    '''
    if message and _file_handler is not None:
        record = logging.LogRecord(
            name=log.name,
            level=logging.INFO,
            pathname=__file__,
            lineno=0,
            msg=f'OUTPUT: {message}',
            args=(),
            exc_info=None,
            func='output'
        )
        _file_handler.emit(record)

    print(message)


def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'invalid positive integer: {value}')
    if number < 1:
        raise argparse.ArgumentTypeError(f'must be at least 1: {value}')
    return number


# ****************************************************************************************
# Argument handling
# ****************************************************************************************

def build_parser():
    config_env = os.path.join(user_config_dir(), ENV_FILENAME)
    parser = argparse.ArgumentParser(
        prog='jit',
        description='Look up Jira tickets from the command line.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f'''
Credentials Setup:
  Create a .env file with:
    JIRA_BASE_URL=https://your-company.atlassian.net
    JIRA_API_TOKEN=your_api_token_here
    JIRA_USER_EMAIL=your_email@example.com
  Optional:
    JIRA_SPRINT_FIELD=customfield_10020

  The first of these that defines all three keys is used:
    --env-file PATH, ./.env, {config_env}, process environment

  Generate an API token at:
    https://id.atlassian.com/manage-profile/security/api-tokens

Examples:
  %(prog)s PROJ-123                            Show key and summary
  %(prog)s https://co.atlassian.net/browse/PROJ-123
                                               Same, from a browse URL
  %(prog)s PROJ-123 --text                     Print "PROJ-123: Summary"
  %(prog)s PROJ-123 --json                     Print {{"ticket":...,"summary":...}}
  %(prog)s PROJ-123 --show                     Show full ticket details
  %(prog)s PROJ-123 --show --json              Full ticket details as JSON
  %(prog)s --my-tickets                        Your tickets in the open sprint
  %(prog)s --my-tickets --limit 25 --json      Up to 25 sprint tickets as JSON
        ''')
    parser.add_argument(
        'ticket',
        nargs='?',
        metavar='TICKET',
        help='Jira issue key (e.g. RW-1931) or URL (e.g. https://company.atlassian.net/browse/RW-1931).')
    parser.add_argument(
        '--json',
        action='store_true',
        help='Output in JSON format.')
    parser.add_argument(
        '--text',
        action='store_true',
        help='Output as plain text in the format "KEY: Summary".')
    parser.add_argument(
        '--show',
        action='store_true',
        help='Show detailed information about the ticket.')
    parser.add_argument(
        '--my-tickets',
        action='store_true',
        dest='my_tickets',
        help='Display your tickets in the current sprint as a table.')
    parser.add_argument(
        '--limit',
        type=positive_int,
        default=None,
        metavar='N',
        help=f'Maximum number of tickets to retrieve with --my-tickets (default: {DEFAULT_LIMIT}).')
    parser.add_argument(
        '--env-file',
        type=str,
        dest='env_file',
        metavar='PATH',
        help='Path to a custom .env file, checked before all other sources.')
    parser.add_argument(
        '-v',
        '--verbose',
        action='store_true',
        help='Enable debug logging on stderr.')
    parser.add_argument(
        '-q',
        '--quiet',
        action='store_true',
        help='Only report errors on stderr.')
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}')
    return parser


def select_mode(args):
    '''
    Map validated flags to an OutputMode.

    Output:
        Tuple of (OutputMode, detailed) where detailed widens single-ticket JSON.
    '''
    if args.json:
        return OutputMode.JSON, args.show
    if args.my_tickets:
        return OutputMode.TABLE, False
    if args.text:
        return OutputMode.TEXT, False
    if args.show:
        return OutputMode.DETAIL, False
    return OutputMode.STANDARD, False


def handle_args(argv=None):
    '''
    Parse CLI arguments and configure logging handlers.

    Input:
        argv: Argument list (default: sys.argv[1:]).

    Output:
        argparse.Namespace with mode and detailed attributes added.

    Side Effects:
        Attaches console (stderr) and file handlers to the module logger.
    '''
    parser = build_parser()
    args = parser.parse_args(argv)

    # Validate argument combinations
    if args.my_tickets and args.ticket:
        parser.error('TICKET cannot be combined with --my-tickets')
    if not args.my_tickets and not args.ticket:
        parser.error('provide a TICKET or use --my-tickets')
    if args.text and (args.json or args.show or args.my_tickets):
        parser.error('--text cannot be combined with --json, --show or --my-tickets')
    if args.show and args.my_tickets:
        parser.error('--show cannot be combined with --my-tickets')
    if args.limit is not None and not args.my_tickets:
        parser.error('--limit requires --my-tickets')
    if args.verbose and args.quiet:
        parser.error('--verbose and --quiet are mutually exclusive')

    if args.limit is None:
        args.limit = DEFAULT_LIMIT
    args.mode, args.detailed = select_mode(args)
    # Styled output only when stdout is a terminal
    args.color = sys.stdout.isatty()

    global _file_handler
    _file_handler = configure_logging(verbose=args.verbose, quiet=args.quiet)

    log.debug('++++++++++++++++++++++++++++++++++++++++++++++')
    log.debug(f'+  {os.path.basename(sys.argv[0])} {__version__}')
    log.debug(f'+  Python Version: {sys.version.split()[0]}')
    log.debug(f'+  Today is: {date.today()}')
    log.debug(f'+  Mode: {args.mode.value}')
    log.debug(f'+  Color: {args.color}')
    log.debug('++++++++++++++++++++++++++++++++++++++++++++++')

    return args


# ****************************************************************************************
# Commands
# ****************************************************************************************

def show_ticket(credentials, args):
    '''
    Fetch one ticket and render it.

    Output:
        Rendered text.
    '''
    log.debug(f'Entering show_ticket(ticket={args.ticket})')
    key = extract_ticket_id(args.ticket)
    raw = fetch_issue(credentials, key)
    record = map_issue(raw, credentials.sprint_field)
    return render(args.mode, record=record, detailed=args.detailed, color=args.color)


def show_my_tickets(credentials, args):
    '''
    Fetch the caller's open-sprint tickets and render them.

    Output:
        Rendered text.
    '''
    log.debug(f'Entering show_my_tickets(limit={args.limit})')
    raw_issues = fetch_sprint_issues(credentials, args.limit)
    sprint = map_sprint_issues(raw_issues, credentials.sprint_field)
    return render(args.mode, sprint=sprint, color=args.color)


# ****************************************************************************************
# Main
# ****************************************************************************************

def run(args):
    '''
    Resolve credentials, run the requested lookup and print the result.

    Output:
        Process exit code: 0 on success, 1 on any failure.
    '''
    try:
        credentials = resolve_credentials(default_sources(args.env_file))
        if args.my_tickets:
            text = show_my_tickets(credentials, args)
        else:
            text = show_ticket(credentials, args)
    except Error as e:
        # The console handler renders this as "ERROR: <message>" on stderr
        log.error(e.message)
        return 1
    except Exception as e:
        log.debug(traceback.format_exc())
        log.error(f'Unexpected error: {e}')
        return 1

    output(text)
    log.info('Operation complete.')
    return 0


def main(argv=None):
    '''
    Entrypoint that wires together argument parsing and the lookup.

    Sequence:
        1. Parse command line arguments
        2. Resolve credentials
        3. Fetch, map, render and print

    Output:
        Exits 0 on success, 1 on failure, 2 on usage errors.
    '''
    args = handle_args(argv)
    log.debug('Entering main()')
    sys.exit(run(args))


if __name__ == '__main__':
    main()
