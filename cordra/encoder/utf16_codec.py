"""
Cordra Client - UTF-16 Codec
Big-endian UTF-16 without a byte-order mark
"""

from .code_units import code_units, from_code_units


REPLACEMENT_CHARACTER = 0xFFFD


class Utf16Codec:
    """UTF-16BE: two bytes per code unit, high byte first"""

    @staticmethod
    def encode(s: str) -> bytes:
        units = code_units(s)
        res = bytearray(len(units) * 2)
        pos = 0
        for code in units:
            res[pos] = code >> 8
            res[pos + 1] = code & 0xFF
            pos += 2
        return bytes(res)

    @staticmethod
    def decode(data) -> str:
        """
        Decode big-endian byte pairs into text.

        A trailing unpaired byte becomes U+FFFD.
        """
        data = bytes(data)
        units = [(data[i] << 8) | data[i + 1] for i in range(0, len(data) - 1, 2)]
        if len(data) % 2:
            units.append(REPLACEMENT_CHARACTER)
        return from_code_units(units)


encode = Utf16Codec.encode
decode = Utf16Codec.decode
