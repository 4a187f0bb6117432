##########################################################################################
#
# Module: config/settings.py
#
# Description: Credential resolution and logging configuration for jit.
#              Credentials come from the first complete source in a fixed order:
#              --env-file, ./.env, ~/.config/jit/.env, process environment.
#
# Author: jit maintainers
#
##########################################################################################

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values

from jira_utils import MissingCredentials

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

ENV_FILENAME = '.env'
CONFIG_DIR = os.path.join('~', '.config', 'jit')
LOG_FILENAME = 'jit.log'

REQUIRED_KEYS = ('JIRA_BASE_URL', 'JIRA_API_TOKEN', 'JIRA_USER_EMAIL')
SPRINT_FIELD_KEY = 'JIRA_SPRINT_FIELD'

EXAMPLE_ENV = (
    'JIRA_BASE_URL=https://your-company.atlassian.net',
    'JIRA_API_TOKEN=your_api_token_here',
    'JIRA_USER_EMAIL=your_email@example.com',
)

LOG_FORMAT = '%(asctime)-15s [%(funcName)25s:%(lineno)-5s] %(levelname)-8s %(message)s'


@dataclass(frozen=True)
class Credentials:
    '''
    Jira connection settings for one invocation.

    Attributes:
        base_url:     Jira site root, without a trailing slash.
        api_token:    API token used as the basic-auth password.
        user_email:   Account email used as the basic-auth user.
        sprint_field: Optional custom field key holding sprint data.
        source:       Name of the source the values came from.
    '''
    base_url: str
    api_token: str = field(repr=False)
    user_email: str
    sprint_field: Optional[str] = None
    source: str = ''


@dataclass(frozen=True)
class CredentialSource:
    '''
    One place credentials may be read from.

    A source with no path reads the process environment; otherwise it reads a
    KEY=VALUE dotenv file. A file that does not exist yields no values.
    '''
    name: str
    path: Optional[str] = None
    environ: Optional[Mapping[str, str]] = None

    def load(self) -> Dict[str, str]:
        '''Return the non-empty values this source supplies.'''
        if self.path is None:
            raw = self.environ if self.environ is not None else os.environ
        elif os.path.isfile(self.path):
            # ${VAR} references are kept literally, never expanded from the environment
            raw = dotenv_values(self.path, interpolate=False)
        else:
            log.debug(f'{self.name}: {self.path} not present')
            return {}

        values = {}
        for key, value in raw.items():
            if value is not None and value.strip():
                values[key] = value.strip()
        return values


def user_config_dir() -> str:
    return os.path.expanduser(CONFIG_DIR)


def default_sources(env_file: Optional[str] = None,
                    cwd: Optional[str] = None,
                    environ: Optional[Mapping[str, str]] = None) -> List[CredentialSource]:
    '''
    Build the ordered list of credential sources.

    Input:
        env_file: Path given with --env-file, or None.
        cwd:      Directory searched for a local .env (default: current directory).
        environ:  Mapping used as the environment source (default: os.environ).

    Output:
        List of CredentialSource, highest precedence first.
    '''
    sources = []
    if env_file:
        if not os.path.isfile(env_file):
            log.warning(f'Specified env file not found at: {env_file}')
        sources.append(CredentialSource('--env-file', env_file))

    local_dir = cwd if cwd is not None else os.getcwd()
    sources.append(CredentialSource('local .env', os.path.join(local_dir, ENV_FILENAME)))
    sources.append(CredentialSource('user config', os.path.join(user_config_dir(), ENV_FILENAME)))
    sources.append(CredentialSource('environment', environ=environ))
    return sources


def resolve_credentials(sources: List[CredentialSource]) -> Credentials:
    '''
    Return the credentials of the first source that supplies every required key.

    Sources are never merged: a source missing any of JIRA_BASE_URL,
    JIRA_API_TOKEN or JIRA_USER_EMAIL is skipped as a whole.

    Input:
        sources: Candidate sources, highest precedence first.

    Output:
        Credentials built entirely from one source.

    Raises:
        MissingCredentials: If no source is complete. The field named is the first
            required key missing from the most complete source.
    '''
    log.debug(f'Entering resolve_credentials(sources={[s.name for s in sources]})')

    best_missing = None
    for source in sources:
        values = source.load()
        missing = [key for key in REQUIRED_KEYS if key not in values]
        if not missing:
            log.info(f'Using Jira credentials from {source.name}')
            return Credentials(
                base_url=values['JIRA_BASE_URL'].rstrip('/'),
                api_token=values['JIRA_API_TOKEN'],
                user_email=values['JIRA_USER_EMAIL'],
                sprint_field=values.get(SPRINT_FIELD_KEY),
                source=source.name,
            )

        if len(missing) < len(REQUIRED_KEYS):
            log.debug(f'{source.name} is incomplete (missing {", ".join(missing)}); skipping')
        if best_missing is None or len(missing) < len(best_missing):
            best_missing = missing

    field_name = best_missing[0] if best_missing else REQUIRED_KEYS[0]
    searched = [s.path or s.name for s in sources]
    raise MissingCredentials(field_name, searched, setup_hint())


def setup_hint() -> str:
    '''One-line guidance naming the user config file and the keys it needs.'''
    config_env = os.path.join(user_config_dir(), ENV_FILENAME)
    return f'create {config_env} containing {", ".join(EXAMPLE_ENV)} (see jit --help)'


def default_log_file() -> str:
    return os.environ.get('JIT_LOG_FILE') or os.path.join(user_config_dir(), LOG_FILENAME)


def configure_logging(verbose: bool = False, quiet: bool = False,
                      log_file: Optional[str] = None) -> Optional[logging.FileHandler]:
    '''
    Attach file and console handlers to the module logger.

    Console output goes to stderr so stdout carries only rendered tickets.

    Input:
        verbose:  Console at DEBUG.
        quiet:    Console at ERROR.
        log_file: Path of the debug log (default: JIT_LOG_FILE or ~/.config/jit/jit.log).

    Output:
        The file handler, or None if the log file could not be opened.
    '''
    log.setLevel(logging.DEBUG)
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    formatter = logging.Formatter(LOG_FORMAT)

    ch = logging.StreamHandler(sys.stderr)
    if verbose:
        ch.setLevel(logging.DEBUG)
    elif quiet:
        ch.setLevel(logging.ERROR)
    else:
        ch.setLevel(logging.WARNING)
    ch.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    log.addHandler(ch)

    path = log_file or default_log_file()
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        fh = logging.FileHandler(path, mode='w', encoding='utf-8')
    except OSError as e:
        log.warning(f'Cannot open log file {path}: {e}')
        return None

    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    log.addHandler(fh)
    log.debug(f'Logging configured: file={path}')
    return fh
