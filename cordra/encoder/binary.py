"""
Cordra Client - Binary Heuristic
Guess whether bytes or text hold non-printable (binary) data
"""

from .utf8_codec import REPLACEMENT_CHARACTER, scan_sequence


def is_control(code: int) -> bool:
    """C0 controls and DEL, except tab, LF, VT, FF and CR"""
    return code <= 0x08 or 0x0E <= code < 0x20 or code == 0x7F


def looks_like_binary(data) -> bool:
    """
    Check whether a byte sequence looks like binary rather than UTF-8 text.

    Args:
        data: Bytes-like object

    Returns:
        True at the first control character or malformed UTF-8 sequence
    """
    data = bytes(data)
    i = 0
    while i < len(data):
        found = scan_sequence(data, i)
        if found is None:
            return True
        length, scalar = found
        if length == 1 and is_control(scalar):
            return True
        i += length
    return False


def string_looks_like_binary(s: str) -> bool:
    """
    Check whether already-decoded text looks like binary data.

    U+FFFD counts as binary since it marks input a decoder had to replace.
    """
    for char in s:
        code = ord(char)
        if is_control(code) or code == REPLACEMENT_CHARACTER:
            return True
    return False
