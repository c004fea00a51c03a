"""
Cordra Client - Request Models
Options and query parameters accepted by CordraClient operations

Cordra objects, ACLs, version info and search results travel as plain
JSON dictionaries.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class Options:
    """
    Per-request options.

    Options passed to the CordraClient constructor become the defaults used
    whenever an operation is called without its own Options.
    """
    # Credentials
    user_id: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    # RSA key as a JWK dict, PEM text or a cryptography key object
    private_key: Any = None
    token: Optional[str] = None

    # Perform the operation as another user
    as_user_id: Optional[str] = None

    # Create/update flags
    suffix: Optional[str] = None
    is_dry_run: bool = False
    include_response_context: bool = False

    @property
    def user_key(self) -> Optional[str]:
        """Key under which this user's token is cached"""
        return self.user_id or self.username


@dataclass
class SortField:
    # Content fields start with '/', e.g. '/name'
    name: str
    reverse: bool = False


@dataclass
class QueryParams:
    """Paging and sorting for search requests (page_size -1 returns all)"""
    page_num: int = 0
    page_size: int = -1
    sort_fields: List[SortField] = field(default_factory=list)


@dataclass
class Payload:
    """A named binary payload attached to a Cordra object"""
    name: str
    body: bytes
    filename: Optional[str] = None
    media_type: Optional[str] = None
