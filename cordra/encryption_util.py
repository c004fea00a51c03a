"""
Cordra Client - JWT Signing
RS256 bearer assertions for private-key authentication
"""

import json
import os
import time
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .encoder import Base64, Hex, Utf8


TOKEN_LIFETIME_SECONDS = 600

JWT_HEADER = {'alg': 'RS256'}


def _jwk_int(jwk: Dict[str, Any], name: str) -> int:
    return int.from_bytes(Base64.decode(jwk[name]), 'big')


def load_private_key(key: Any) -> rsa.RSAPrivateKey:
    """
    Load an RSA private key.

    Args:
        key: RSA JWK dictionary, PEM text or bytes, or an RSAPrivateKey

    Returns:
        The private key
    """
    if isinstance(key, rsa.RSAPrivateKey):
        return key
    if isinstance(key, dict):
        if key.get('kty', 'RSA') != 'RSA':
            raise ValueError(f"Unsupported JWK key type: {key.get('kty')}")
        public_numbers = rsa.RSAPublicNumbers(_jwk_int(key, 'e'), _jwk_int(key, 'n'))
        private_numbers = rsa.RSAPrivateNumbers(
            p=_jwk_int(key, 'p'),
            q=_jwk_int(key, 'q'),
            d=_jwk_int(key, 'd'),
            dmp1=_jwk_int(key, 'dp'),
            dmq1=_jwk_int(key, 'dq'),
            iqmp=_jwk_int(key, 'qi'),
            public_numbers=public_numbers,
        )
        return private_numbers.private_key()
    if isinstance(key, str):
        key = Utf8.encode(key)
    loaded = serialization.load_pem_private_key(key, password=None)
    if not isinstance(loaded, rsa.RSAPrivateKey):
        raise ValueError("Private key is not an RSA key")
    return loaded


def generate_jti(length: int = 20) -> str:
    """Random token id of `length` hex digits"""
    return Hex.encode(os.urandom(length // 2))


def _encode_segment(value: Dict[str, Any]) -> str:
    return Base64.encode_url_safe(Utf8.encode(json.dumps(value, separators=(',', ':'))))


def get_bearer_token(issuer: str, private_key: Any, now: Optional[int] = None) -> str:
    """
    Build a signed JWT asserting `issuer`.

    Args:
        issuer: Cordra user id or username, used as iss and sub
        private_key: Anything load_private_key() accepts
        now: Issue time in epoch seconds, defaults to the current time

    Returns:
        Compact JWT string
    """
    key = load_private_key(private_key)
    if now is None:
        now = int(time.time())
    claims = {
        'iss': issuer,
        'sub': issuer,
        'jti': generate_jti(),
        'iat': now,
        'exp': now + TOKEN_LIFETIME_SECONDS,
    }
    signing_input = _encode_segment(JWT_HEADER) + '.' + _encode_segment(claims)
    signature = key.sign(Utf8.encode(signing_input), padding.PKCS1v15(), hashes.SHA256())
    return signing_input + '.' + Base64.encode_url_safe(signature)
