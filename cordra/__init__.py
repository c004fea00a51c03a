"""
Cordra Client
Python client for the Cordra object repository REST API
"""

from .client import CordraClient
from .config import ClientConfig, get_config, load_config_from_env, set_config
from .errors import CordraError, UnauthenticatedError
from .models import Options, Payload, QueryParams, SortField

__all__ = [
    'CordraClient', 'ClientConfig', 'get_config', 'set_config', 'load_config_from_env',
    'CordraError', 'UnauthenticatedError', 'Options', 'Payload', 'QueryParams', 'SortField',
]
