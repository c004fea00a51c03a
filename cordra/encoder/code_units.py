"""
Cordra Client - UTF-16 Code Units
Conversion between Python strings and their UTF-16 code unit view
"""

from typing import Iterable, List


def code_units(text: str) -> List[int]:
    """
    Split a string into 16-bit code units.

    Characters above U+FFFF become a surrogate pair; lone surrogate
    characters are kept as a single (bare) unit.
    """
    units = []
    for char in text:
        code = ord(char)
        if code > 0xFFFF:
            code -= 0x10000
            units.append(0xD800 + (code >> 10))
            units.append(0xDC00 + (code & 0x3FF))
        else:
            units.append(code)
    return units


def from_code_units(units: Iterable[int]) -> str:
    """
    Build a string from 16-bit code units.

    Adjacent high/low surrogates are joined into one character.
    """
    chars = []
    pending = None
    for unit in units:
        if pending is not None:
            if 0xDC00 <= unit <= 0xDFFF:
                chars.append(chr(0x10000 + ((pending - 0xD800) << 10) + (unit - 0xDC00)))
                pending = None
                continue
            chars.append(chr(pending))
            pending = None
        if 0xD800 <= unit <= 0xDBFF:
            pending = unit
        else:
            chars.append(chr(unit))
    if pending is not None:
        chars.append(chr(pending))
    return ''.join(chars)
