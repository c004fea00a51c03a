"""
Cordra Client - UTF-8 Codec
UTF-8 over UTF-16 code units, with lenient decoding

Decoding never fails: a byte that cannot start a well-formed sequence is
replaced by U+FFFD and the scan resumes at the following byte.
"""

from typing import Optional, Tuple

from .code_units import code_units, from_code_units


REPLACEMENT_CHARACTER = 0xFFFD


def _is_continuation(code: int) -> bool:
    return 0x80 <= code <= 0xBF


def scan_sequence(data: bytes, i: int) -> Optional[Tuple[int, int]]:
    """
    Check the UTF-8 sequence starting at data[i].

    Args:
        data: Bytes being scanned
        i: Index of the lead byte

    Returns:
        (length, scalar) for a well-formed sequence, or None when the lead
        byte has to be rejected (over-long, truncated, bad continuation,
        out of range)
    """
    code = data[i]
    remaining = len(data) - i - 1
    if code <= 0x7F:
        return 1, code
    if code <= 0xC1 or code >= 0xF5:
        return None
    if code <= 0xDF:
        if remaining < 1:
            return None
        c2 = data[i + 1]
        if not _is_continuation(c2):
            return None
        return 2, ((code & 0x1F) << 6) | (c2 & 0x3F)
    if code <= 0xEF:
        if remaining < 2:
            return None
        c2, c3 = data[i + 1], data[i + 2]
        if not (_is_continuation(c2) and _is_continuation(c3)):
            return None
        if code == 0xE0 and c2 <= 0x9F:
            return None
        return 3, ((code & 0x0F) << 12) | ((c2 & 0x3F) << 6) | (c3 & 0x3F)
    if remaining < 3:
        return None
    c2, c3, c4 = data[i + 1], data[i + 2], data[i + 3]
    if not (_is_continuation(c2) and _is_continuation(c3) and _is_continuation(c4)):
        return None
    if code == 0xF0 and c2 <= 0x8F:
        return None
    scalar = ((code & 0x07) << 18) | ((c2 & 0x3F) << 12) | ((c3 & 0x3F) << 6) | (c4 & 0x3F)
    if scalar > 0x10FFFF:
        return None
    return 4, scalar


class Utf8Codec:
    """UTF-8 encoding of UTF-16 text"""

    @staticmethod
    def encode(s: str) -> bytes:
        """
        Encode text as UTF-8.

        Surrogate pairs become one 4-byte sequence. A bare surrogate is
        written as the 3-byte form of its raw value, which strict UTF-8
        forbids but which decode() maps back to the same unit.

        Args:
            s: Text to encode

        Returns:
            UTF-8 bytes
        """
        units = code_units(s)
        res = bytearray()
        i = 0
        while i < len(units):
            code = units[i]
            i += 1
            if code <= 0x7F:
                res.append(code)
            elif code <= 0x7FF:
                res.append(0xC0 | (code >> 6))
                res.append(0x80 | (code & 0x3F))
            elif 0xD800 <= code <= 0xDBFF and i < len(units) and 0xDC00 <= units[i] <= 0xDFFF:
                code = (((code - 0xD800) * 0x400) | (units[i] - 0xDC00)) + 0x10000
                i += 1
                res.append(0xF0 | (code >> 18))
                res.append(0x80 | ((code >> 12) & 0x3F))
                res.append(0x80 | ((code >> 6) & 0x3F))
                res.append(0x80 | (code & 0x3F))
            else:
                res.append(0xE0 | (code >> 12))
                res.append(0x80 | ((code >> 6) & 0x3F))
                res.append(0x80 | (code & 0x3F))
        return bytes(res)

    @staticmethod
    def decode(data) -> str:
        """
        Decode UTF-8 bytes into text.

        Each rejected lead byte yields exactly one U+FFFD.

        Args:
            data: Bytes-like object

        Returns:
            Decoded text
        """
        data = bytes(data)
        units = []
        i = 0
        while i < len(data):
            found = scan_sequence(data, i)
            if found is None:
                units.append(REPLACEMENT_CHARACTER)
                i += 1
                continue
            length, scalar = found
            if length == 4:
                scalar -= 0x10000
                units.append(0xD800 + (scalar >> 10))
                units.append(0xDC00 + (scalar & 0x3FF))
            else:
                units.append(scalar)
            i += length
        return from_code_units(units)

    @staticmethod
    def looks_like_binary(data) -> bool:
        from .binary import looks_like_binary
        return looks_like_binary(data)

    @staticmethod
    def string_looks_like_binary(s: str) -> bool:
        from .binary import string_looks_like_binary
        return string_looks_like_binary(s)


encode = Utf8Codec.encode
decode = Utf8Codec.decode
