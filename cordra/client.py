"""
Cordra Client - REST Client
httpx-based client for the Cordra object repository REST API
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

import httpx

from .auth_util import build_auth_headers_from_options, create_token_request
from .config import ClientConfig, get_config
from .errors import CordraError, UnauthenticatedError, check_for_errors
from .models import Options, Payload, QueryParams
from .token_store import TokenStore, get_token_store


logger = logging.getLogger(__name__)

T = TypeVar('T')

JSON_HEADERS = {'Content-Type': 'application/json'}


def ensure_slash(base_uri: str) -> str:
    if not base_uri.endswith('/'):
        base_uri += '/'
    return base_uri


def encode_with_slashes(value: str) -> str:
    """Percent-encode like encodeURIComponent, but keep '/' literal"""
    return quote(str(value), safe="/!*'()")


def get_range_header(start: int = -1, end: int = -1) -> str:
    """
    Build an HTTP Range header value.

    Args:
        start: First byte, -1 for a suffix range
        end: Last byte (inclusive), -1 for an open-ended range
    """
    if start > -1 and end > -1:
        return f"bytes={start}-{end}"
    if start > -1:
        return f"bytes={start}-"
    if end > -1:
        return f"bytes=-{end}"
    return ''


def encode_params(params: QueryParams) -> str:
    result = f"pageNum={params.page_num}&pageSize={params.page_size}"
    for sort_field in params.sort_fields:
        name = sort_field.name + (' DESC' if sort_field.reverse else '')
        result += '&sortFields=' + encode_with_slashes(name)
    return result


def return_json(response: httpx.Response) -> Any:
    return response.json()


def return_json_or_none(response: httpx.Response) -> Any:
    if not response.headers.get('Content-Type'):
        return None
    return response.json()


@dataclass
class AuthHeaders:
    """Authentication headers plus how they were obtained"""
    headers: Dict[str, str] = field(default_factory=dict)
    is_stored_token: bool = False
    unauthenticated: bool = False


class CordraClient:
    """
    Client for a Cordra instance.

    A client is not thread-safe: it updates its cached tokens without
    locking, so give each thread its own client. The shared TokenStore is
    safe to use from several clients.

    Example:
        client = CordraClient("https://localhost:8443",
                              Options(username="admin", password="password"))
        obj = client.create({"type": "Document", "content": {"name": "test doc"}})
    """

    def __init__(self, base_uri: Optional[str] = None, options: Optional[Options] = None,
                 config: Optional[ClientConfig] = None,
                 http_client: Optional[httpx.Client] = None,
                 token_store: Optional[TokenStore] = None):
        """
        Create a client, optionally setting default options.

        Args:
            base_uri: URI of the Cordra instance, including protocol
            options: Default options for operations called without their own
            config: Client configuration, the global one if omitted
            http_client: Preconfigured httpx client to send requests with
            token_store: Token cache, the global one if omitted
        """
        self.config = config or get_config()
        self.base_uri = ensure_slash(base_uri or self.config.base_uri)
        self.default_options = options if options is not None else self.config.default_options()
        self.token_store = token_store or get_token_store()
        self.auth_tokens = self.token_store.retrieve(self.base_uri)

        self._owns_http_client = http_client is None
        if http_client is None:
            http_client = httpx.Client(
                timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
                verify=self.config.verify_ssl,
                limits=httpx.Limits(
                    max_connections=self.config.max_connections,
                    max_keepalive_connections=self.config.max_keepalive_connections,
                ),
                headers={'User-Agent': self.config.user_agent},
            )
        self.http_client = http_client

    def close(self) -> None:
        if self._owns_http_client:
            self.http_client.close()

    def __enter__(self) -> 'CordraClient':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ============== Transport ==============

    def _options(self, options: Optional[Options]) -> Options:
        return self.default_options if options is None else options

    def _request(self, method: str, uri: str, headers: Optional[Dict[str, str]] = None,
                 **kwargs) -> httpx.Response:
        logger.debug("%s %s", method, uri)
        try:
            response = self.http_client.request(method, uri, headers=headers, **kwargs)
        except httpx.ConnectError as e:
            raise CordraError(f"Connection failed: {e}") from e
        except httpx.TimeoutException as e:
            raise CordraError(f"Request timeout: {e}") from e
        return check_for_errors(response)

    # ============== Token Handling ==============

    def _store_tokens(self) -> None:
        self.token_store.store(self.base_uri, self.auth_tokens)

    def _forget_token(self, user_key: str) -> None:
        self.auth_tokens.pop(user_key, None)
        self._store_tokens()

    def _get_cached_token(self, user_key: Optional[str]) -> Optional[str]:
        if not user_key:
            return None
        token_info = self.auth_tokens.get(user_key)
        if not token_info:
            return None
        now = time.time()
        if token_info.get('last_used') and now - token_info['last_used'] <= self.config.token_refresh_seconds:
            token_info['last_used'] = now
            self._store_tokens()
            return token_info['token']
        logger.debug("Cached token for %s expired", user_key)
        self._forget_token(user_key)
        return None

    def build_auth_headers(self, options: Optional[Options] = None) -> Dict[str, str]:
        """
        Build the authentication headers for the given options.

        Raises:
            UnauthenticatedError: A stored token was expected but none exists
        """
        details = self.build_auth_headers_return_details(options)
        if details.unauthenticated:
            raise UnauthenticatedError()
        return details.headers

    def build_auth_headers_return_details(self, options: Optional[Options] = None,
                                          acquire_new_token: bool = True) -> AuthHeaders:
        options = self._options(options)
        if options.token:
            return AuthHeaders(build_auth_headers_from_options(options))
        user_key = options.user_key
        if not user_key:
            return AuthHeaders(build_auth_headers_from_options(options))
        token = self._get_cached_token(user_key)
        if token:
            return AuthHeaders(build_auth_headers_from_options(options, token), is_stored_token=True)
        if not options.password and not options.private_key:
            # Nothing to authenticate with; a stored token was expected
            return AuthHeaders(build_auth_headers_from_options(options), unauthenticated=True)
        if acquire_new_token:
            auth_response = self.authenticate(options)
            headers = build_auth_headers_from_options(options, auth_response.get('access_token'))
            return AuthHeaders(headers, is_stored_token=True)
        return AuthHeaders(build_auth_headers_from_options(options))

    def retry_after_token_failure(self, options: Optional[Options],
                                  fetcher: Callable[[Dict[str, str]], T]) -> T:
        """
        Call fetcher with auth headers, retrying once with a fresh token if a
        stored token is rejected with 401.
        """
        options = self._options(options)
        first = self.build_auth_headers_return_details(options)
        if first.unauthenticated:
            raise UnauthenticatedError()
        if not first.is_stored_token:
            return fetcher(first.headers)
        try:
            return fetcher(first.headers)
        except CordraError as e:
            user_key = options.user_key
            if e.status != 401 or not user_key:
                raise
            logger.warning("Stored token for %s was rejected, authenticating again", user_key)
            self._forget_token(user_key)
            return fetcher(self.build_auth_headers(options))

    # ============== Authentication ==============

    def authenticate(self, options: Optional[Options] = None) -> Dict[str, Any]:
        """
        Acquire an access token and cache it for the user.

        Raises:
            CordraError: The server rejected the credentials
        """
        options = self._options(options)
        token_request = create_token_request(options)
        response = self._request('POST', self.base_uri + 'auth/token',
                                 headers=JSON_HEADERS, content=json.dumps(token_request))
        auth_response = response.json()
        if not auth_response.get('active'):
            raise CordraError('Authorization failed')
        user_key = options.user_key
        if user_key:
            logger.info("Acquired token for %s", user_key)
            self.auth_tokens[user_key] = {
                'token': auth_response.get('access_token'),
                'last_used': time.time(),
            }
            self._store_tokens()
        return auth_response

    def get_authentication_status(self, full: bool = False,
                                  options: Optional[Options] = None) -> Dict[str, Any]:
        """
        Get the authentication status for the options: active flag, userId and
        username, plus permitted types and group ids when `full` is set.
        """
        options = self._options(options)
        user_key = options.user_key
        details = self.build_auth_headers_return_details(options, acquire_new_token=False)
        uri = self.base_uri + 'check-credentials'
        if full:
            uri += '?full=true'
        resp = return_json(self._request('GET', uri, headers=details.headers))
        if details.unauthenticated or not details.is_stored_token or resp.get('active') or not user_key:
            return resp
        # The stored token is no longer valid; ask again with the raw credentials
        self.auth_tokens.pop(user_key, None)
        second_headers = build_auth_headers_from_options(options)
        return return_json(self._request('GET', uri, headers=second_headers))

    def change_password(self, new_password: str, options: Optional[Options] = None) -> httpx.Response:
        options = self._options(options)
        headers = build_auth_headers_from_options(options)
        response = self._request('PUT', self.base_uri + 'users/this/password',
                                 headers=headers, content=new_password)
        if options.user_key:
            self._forget_token(options.user_key)
        return response

    def change_admin_password(self, new_password: str, options: Optional[Options] = None) -> httpx.Response:
        options = self._options(options)
        headers = dict(build_auth_headers_from_options(options), **JSON_HEADERS)
        response = self._request('PUT', self.base_uri + 'adminPassword', headers=headers,
                                 content=json.dumps({'password': new_password}, indent=1))
        self._forget_token('admin')
        return response

    def sign_out(self, options: Optional[Options] = None) -> Dict[str, Any]:
        """Revoke the user's stored token at the server and forget it locally"""
        options = self._options(options)
        user_key = options.user_key
        if not user_key:
            return {'active': False}
        token = self._get_cached_token(user_key)
        if not token:
            return {'active': False}
        token_request = create_token_request(options, token)
        try:
            response = self._request('POST', self.base_uri + 'auth/revoke',
                                     headers=JSON_HEADERS, content=json.dumps(token_request))
        finally:
            self._forget_token(user_key)
        logger.info("Signed out %s", user_key)
        return response.json()

    # ============== Search ==============

    def _get_json(self, uri: str, options: Optional[Options]) -> Any:
        return self.retry_after_token_failure(
            options, lambda headers: return_json(self._request('GET', uri, headers=headers)))

    def search(self, query: str, params: Optional[QueryParams] = None,
               options: Optional[Options] = None) -> Dict[str, Any]:
        """
        Search for objects matching a Lucene/Solr/Elasticsearch style query.

        Args:
            query: Query string, e.g. "type:Schema"
            params: Paging and sorting, all results by default
            options: Options to use for this request

        Returns:
            Search results with pageNum, pageSize, size and results
        """
        params = params or QueryParams()
        uri = (self.base_uri + 'objects?query=' + encode_with_slashes(query)
               + '&' + encode_params(params))
        return self._get_json(uri, options)

    def search_handles(self, query: str, params: Optional[QueryParams] = None,
                       options: Optional[Options] = None) -> Dict[str, Any]:
        """Like search(), but the results are object ids"""
        params = params or QueryParams()
        uri = (self.base_uri + 'objects?ids&query=' + encode_with_slashes(query)
               + '&' + encode_params(params))
        return self._get_json(uri, options)

    def list(self, options: Optional[Options] = None) -> Dict[str, Any]:
        return self.search('*:*', options=options)

    def list_handles(self, options: Optional[Options] = None) -> Dict[str, Any]:
        return self.search_handles('*:*', options=options)

    # ============== Objects ==============

    def get(self, object_id: str, options: Optional[Options] = None) -> Dict[str, Any]:
        """Retrieve an object by id"""
        uri = self.base_uri + 'objects/' + encode_with_slashes(object_id) + '?full'
        if self._options(options).include_response_context:
            uri += '&includeResponseContext'
        return self._get_json(uri, options)

    def create(self, cordra_object: Dict[str, Any], payloads: Optional[List[Payload]] = None,
               options: Optional[Options] = None) -> Dict[str, Any]:
        """
        Create a new object.

        Args:
            cordra_object: Dict with at least 'type' and 'content'
            payloads: Payloads to upload with the object
            options: Options to use for this request

        Returns:
            The created object
        """
        return self._create_or_update(cordra_object, True, payloads, options)

    def update(self, cordra_object: Dict[str, Any], payloads: Optional[List[Payload]] = None,
               options: Optional[Options] = None) -> Dict[str, Any]:
        """Update an object; cordra_object must carry its 'id'"""
        return self._create_or_update(cordra_object, False, payloads, options)

    def delete(self, object_id: str, options: Optional[Options] = None) -> httpx.Response:
        uri = self.base_uri + 'objects/' + encode_with_slashes(object_id)
        return self.retry_after_token_failure(
            options, lambda headers: self._request('DELETE', uri, headers=headers))

    def get_object_property(self, object_id: str, property_name: str,
                            options: Optional[Options] = None) -> Any:
        """Retrieve the value at a JSON pointer inside an object's content"""
        uri = (self.base_uri + 'objects/' + encode_with_slashes(object_id)
               + '?jsonPointer=' + encode_with_slashes(property_name))
        return self._get_json(uri, options)

    def update_object_property(self, object_id: str, property_name: str, value: Any,
                               options: Optional[Options] = None) -> Dict[str, Any]:
        uri = (self.base_uri + 'objects/' + encode_with_slashes(object_id)
               + '?jsonPointer=' + encode_with_slashes(property_name))
        body = json.dumps(value, indent=1)
        return self.retry_after_token_failure(
            options,
            lambda headers: return_json(self._request(
                'PUT', uri, headers=dict(headers, **JSON_HEADERS), content=body)))

    # ============== Payloads ==============

    def get_payload_download_link(self, object_id: str, payload_name: str) -> str:
        return (self.base_uri + 'objects/' + encode_with_slashes(object_id)
                + '?payload=' + encode_with_slashes(payload_name))

    def get_payload(self, object_id: str, payload_name: str,
                    options: Optional[Options] = None) -> bytes:
        uri = self.get_payload_download_link(object_id, payload_name)
        return self.retry_after_token_failure(
            options, lambda headers: self._request('GET', uri, headers=headers).content)

    def get_partial_payload(self, object_id: str, payload_name: str, start: int, end: int,
                            options: Optional[Options] = None) -> bytes:
        """Get a byte range of a payload; -1 leaves that end of the range open"""
        uri = self.get_payload_download_link(object_id, payload_name)
        range_header = get_range_header(start, end)
        return self.retry_after_token_failure(
            options,
            lambda headers: self._request(
                'GET', uri, headers=dict(headers, Range=range_header)).content)

    def delete_payload(self, cordra_object: Dict[str, Any], payload_name: str,
                       options: Optional[Options] = None) -> Dict[str, Any]:
        """Remove a payload from an object by updating it"""
        if cordra_object.get('payloads') is None:
            return cordra_object
        cordra_object = dict(cordra_object)
        cordra_object['payloadsToDelete'] = list(cordra_object.get('payloadsToDelete') or []) + [payload_name]
        # Only deleting; don't resend the current payload list
        cordra_object['payloads'] = None
        return self.update(cordra_object, options=options)

    # ============== ACLs and Versions ==============

    def get_acl_for_object(self, object_id: str, options: Optional[Options] = None) -> Dict[str, Any]:
        return self._get_json(self.base_uri + 'acls/' + encode_with_slashes(object_id), options)

    def update_acl_for_object(self, object_id: str, new_acl: Dict[str, Any],
                              options: Optional[Options] = None) -> Dict[str, Any]:
        """
        Replace an object's access control list.

        Args:
            object_id: ID of the object
            new_acl: Dict with optional 'readers' and 'writers' lists
            options: Options to use for this request
        """
        uri = self.base_uri + 'acls/' + encode_with_slashes(object_id)
        body = json.dumps(new_acl)
        return self.retry_after_token_failure(
            options,
            lambda headers: return_json(self._request(
                'PUT', uri, headers=dict(headers, **JSON_HEADERS), content=body)))

    def publish_version(self, object_id: str, options: Optional[Options] = None) -> Dict[str, Any]:
        """Snapshot the current state of an object as a new version"""
        uri = self.base_uri + 'versions?objectId=' + encode_with_slashes(object_id)
        return self.retry_after_token_failure(
            options, lambda headers: return_json(self._request('POST', uri, headers=headers)))

    def get_versions_for(self, object_id: str, options: Optional[Options] = None) -> List[Dict[str, Any]]:
        uri = self.base_uri + 'versions?objectId=' + encode_with_slashes(object_id)
        return self._get_json(uri, options)

    # ============== Administration ==============

    def update_all_handles(self, options: Optional[Options] = None) -> httpx.Response:
        """Start a background update of all handles, e.g. after a prefix change"""
        uri = self.base_uri + 'updateHandles'
        return self.retry_after_token_failure(
            options, lambda headers: self._request('POST', uri, headers=headers))

    def get_handle_update_status(self, options: Optional[Options] = None) -> Dict[str, Any]:
        return self._get_json(self.base_uri + 'updateHandles', options)

    def upload_objects(self, objects: List[Dict[str, Any]], delete_current: bool = False,
                       options: Optional[Options] = None) -> Dict[str, Any]:
        """Batch upload objects, optionally deleting all current objects first"""
        uri = self.base_uri + 'uploadObjects'
        if delete_current:
            uri += '?deleteCurrentObjects'
        body = json.dumps(objects)
        return self.retry_after_token_failure(
            options,
            lambda headers: return_json(self._request(
                'PUT', uri, headers=dict(headers, **JSON_HEADERS), content=body)))

    # ============== Type Methods ==============

    def list_methods(self, object_id: str, options: Optional[Options] = None) -> List[str]:
        uri = self.base_uri + 'listMethods?objectId=' + encode_with_slashes(object_id)
        return self._get_json(uri, options)

    def list_methods_for_type(self, type_name: str, list_static: bool = False,
                              options: Optional[Options] = None) -> List[str]:
        """List instance methods of a type, or its static methods with list_static"""
        uri = self.base_uri + 'listMethods?type=' + encode_with_slashes(type_name)
        if list_static:
            uri += '&static'
        return self._get_json(uri, options)

    def call_method(self, object_id: str, method: str, json_body: Any,
                    options: Optional[Options] = None) -> Any:
        uri = (self.base_uri + 'call?objectId=' + encode_with_slashes(object_id)
               + '&method=' + encode_with_slashes(method))
        return self._call(uri, json_body, options)

    def call_method_for_type(self, type_name: str, method: str, json_body: Any,
                             options: Optional[Options] = None) -> Any:
        uri = (self.base_uri + 'call?type=' + encode_with_slashes(type_name)
               + '&method=' + encode_with_slashes(method))
        return self._call(uri, json_body, options)

    def _call(self, uri: str, json_body: Any, options: Optional[Options]) -> Any:
        body = json.dumps(json_body)
        return self.retry_after_token_failure(
            options,
            lambda headers: return_json_or_none(self._request(
                'POST', uri, headers=dict(headers, **JSON_HEADERS), content=body)))

    # ============== Create / Update ==============

    def _create_or_update(self, cordra_object: Dict[str, Any], is_create: bool,
                          payloads: Optional[List[Payload]], options: Optional[Options]) -> Dict[str, Any]:
        options = self._options(options)
        if is_create:
            uri = self._build_create_uri(cordra_object, options)
        else:
            uri = self._build_update_uri(cordra_object, options)
        parts = self._build_create_or_update_parts(cordra_object, payloads)
        method = 'POST' if is_create else 'PUT'
        return self.retry_after_token_failure(
            options,
            lambda headers: return_json(self._request(method, uri, headers=headers, files=parts)))

    def _build_create_uri(self, cordra_object: Dict[str, Any], options: Options) -> str:
        if not cordra_object.get('type'):
            raise CordraError('Create error: "type" must be set in Cordra Object')
        uri = self.base_uri + 'objects?full=true&type=' + encode_with_slashes(cordra_object['type'])
        if cordra_object.get('id'):
            uri += '&handle=' + encode_with_slashes(cordra_object['id'])
        if options.suffix:
            uri += '&suffix=' + encode_with_slashes(options.suffix)
        if options.is_dry_run:
            uri += '&dryRun'
        if options.include_response_context:
            uri += '&includeResponseContext'
        return uri

    def _build_update_uri(self, cordra_object: Dict[str, Any], options: Options) -> str:
        if not cordra_object.get('id'):
            raise CordraError('Update error: "id" must be set in Cordra Object')
        encoded_id = encode_with_slashes(cordra_object['id'])
        uri = self.base_uri + 'objects/' + encoded_id + '?full=true&handle=' + encoded_id
        if cordra_object.get('type'):
            uri += '&type=' + encode_with_slashes(cordra_object['type'])
        if options.is_dry_run:
            uri += '&dryRun'
        if options.include_response_context:
            uri += '&includeResponseContext'
        return uri

    @staticmethod
    def _build_create_or_update_parts(cordra_object: Dict[str, Any],
                                      payloads: Optional[List[Payload]]) -> List[tuple]:
        # Form fields are file parts without a filename so the body is always multipart
        parts = [('content', (None, json.dumps(cordra_object.get('content'))))]
        if cordra_object.get('acl'):
            parts.append(('acl', (None, json.dumps(cordra_object['acl']))))
        if cordra_object.get('userMetadata'):
            parts.append(('userMetadata', (None, json.dumps(cordra_object['userMetadata']))))
        for payload_name in cordra_object.get('payloadsToDelete') or []:
            parts.append(('payloadToDelete', (None, payload_name)))
        for payload in payloads or []:
            media_type = payload.media_type or 'application/octet-stream'
            parts.append((payload.name, (payload.filename or payload.name, payload.body, media_type)))
        return parts
