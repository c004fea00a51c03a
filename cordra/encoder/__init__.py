"""
Cordra Client - Encoders
Byte/text codecs used by the REST client (Base64, Hex, UTF-16BE, UTF-8)

All functions are pure and never raise on malformed input.
"""

from .base64_codec import Base64Codec
from .binary import looks_like_binary, string_looks_like_binary
from .code_units import code_units, from_code_units
from .hex_codec import HexCodec
from .utf16_codec import Utf16Codec
from .utf8_codec import Utf8Codec


Base64 = Base64Codec
Hex = HexCodec
Utf16 = Utf16Codec
Utf8 = Utf8Codec


def base64_encode(data, url_safe: bool = False) -> str:
    return Base64Codec.encode(data, url_safe)


def base64_decode(s: str) -> bytes:
    return Base64Codec.decode(s)


def hex_encode(data) -> str:
    return HexCodec.encode(data)


def hex_decode(s: str) -> bytes:
    return HexCodec.decode(s)


def utf16be_encode(s: str) -> bytes:
    return Utf16Codec.encode(s)


def utf16be_decode(data) -> str:
    return Utf16Codec.decode(data)


def utf8_encode(s: str) -> bytes:
    return Utf8Codec.encode(s)


def utf8_decode(data) -> str:
    return Utf8Codec.decode(data)


__all__ = [
    'Base64', 'Base64Codec', 'Hex', 'HexCodec', 'Utf16', 'Utf16Codec', 'Utf8', 'Utf8Codec',
    'base64_encode', 'base64_decode', 'hex_encode', 'hex_decode',
    'utf16be_encode', 'utf16be_decode', 'utf8_encode', 'utf8_decode',
    'looks_like_binary', 'string_looks_like_binary',
    'code_units', 'from_code_units',
]
