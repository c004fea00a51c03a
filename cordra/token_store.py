"""
Cordra Client - Token Store
In-memory cache of access tokens, keyed by Cordra base URI
"""

import copy
import threading
from typing import Any, Dict, Optional


class TokenStore:
    """
    In-memory store of auth tokens.

    Each base URI maps user keys to {'token': str, 'last_used': float}.
    """

    def __init__(self):
        self._tokens: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def retrieve(self, key: str) -> Dict[str, Dict[str, Any]]:
        """Get a copy of the tokens stored for a base URI"""
        with self._lock:
            return copy.deepcopy(self._tokens.get(key, {}))

    def store(self, key: str, tokens: Dict[str, Dict[str, Any]]) -> None:
        """Replace the tokens stored for a base URI"""
        with self._lock:
            self._tokens[key] = copy.deepcopy(tokens)

    def clear(self, key: Optional[str] = None) -> None:
        """Clear tokens for a base URI or all tokens"""
        with self._lock:
            if key:
                self._tokens.pop(key, None)
            else:
                self._tokens.clear()


# Global token store
_token_store = TokenStore()


def get_token_store() -> TokenStore:
    """Get the global token store"""
    return _token_store
