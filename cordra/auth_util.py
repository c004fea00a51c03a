"""
Cordra Client - Auth Utilities
Authorization headers and token requests built from Options
"""

from typing import Dict, Optional

from .encoder import Base64, Utf8
from .encryption_util import get_bearer_token
from .models import Options


JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


def basic_auth_header(username: str, password: str) -> str:
    """Authorization header value for HTTP Basic auth"""
    return 'Basic ' + Base64.encode(Utf8.encode(f"{username}:{password}"))


def bearer_token_header(token: str) -> str:
    return 'Bearer ' + token


def build_auth_headers_from_options(options: Optional[Options] = None,
                                    token: Optional[str] = None) -> Dict[str, str]:
    """
    Build authentication headers.

    An explicit token wins, then options.token, then a JWT signed with
    options.private_key, then Basic auth from options.password.

    Args:
        options: Request options
        token: Token to use instead of the options' credentials

    Returns:
        Header dictionary, possibly empty
    """
    headers = {}
    if token:
        headers['Authorization'] = bearer_token_header(token)
    elif options is not None:
        if options.token:
            headers['Authorization'] = bearer_token_header(options.token)
        elif options.private_key:
            if options.user_key:
                assertion = get_bearer_token(options.user_key, options.private_key)
                headers['Authorization'] = bearer_token_header(assertion)
        elif options.password:
            if options.user_key:
                headers['Authorization'] = basic_auth_header(options.user_key, options.password)
    if options is not None and options.as_user_id:
        headers['As-User'] = options.as_user_id
    return headers


def create_token_request(options: Optional[Options] = None,
                         token: Optional[str] = None) -> Dict[str, str]:
    """Body for the auth/token and auth/revoke endpoints"""
    request = {}
    if token:
        request['token'] = token
    elif options is not None:
        if options.token:
            request['token'] = options.token
        elif options.private_key:
            if options.user_key:
                request['assertion'] = get_bearer_token(options.user_key, options.private_key)
                request['grant_type'] = JWT_BEARER_GRANT
        elif options.password:
            if options.user_key:
                request['username'] = options.user_key
                request['password'] = options.password
                request['grant_type'] = 'password'
    return request
