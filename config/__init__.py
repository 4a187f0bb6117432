##########################################################################################
#
# Module: config
#
# Description: Configuration management for jit.
#
# Author: jit maintainers
#
##########################################################################################

from config.settings import (
    Credentials,
    CredentialSource,
    configure_logging,
    default_sources,
    resolve_credentials,
)

__all__ = [
    'Credentials',
    'CredentialSource',
    'configure_logging',
    'default_sources',
    'resolve_credentials',
]
