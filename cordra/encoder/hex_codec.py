"""
Cordra Client - Hex Codec
Uppercase hexadecimal over byte sequences
"""

from typing import Optional, Tuple


HEX_DIGITS = '0123456789ABCDEF'


def _build_decode_table() -> Tuple[Optional[int], ...]:
    table = [None] * (ord('f') + 1)
    for value, char in enumerate(HEX_DIGITS):
        table[ord(char)] = value
        table[ord(char.lower())] = value
    return tuple(table)


DECODE_TABLE = _build_decode_table()


class HexCodec:
    """Hexadecimal encoding, two uppercase digits per byte"""

    @staticmethod
    def encode(data) -> str:
        out = []
        for code in bytes(data):
            out.append(HEX_DIGITS[code >> 4])
            out.append(HEX_DIGITS[code & 0x0F])
        return ''.join(out)

    @staticmethod
    def decode(s: str) -> bytes:
        """
        Decode hex text into bytes.

        Odd-length input is treated as if it had a leading '0'. Non-hex
        characters are skipped without resynchronising the nibble pairing,
        so stray characters shift every following nibble.

        Args:
            s: Hex text, any case

        Returns:
            Decoded bytes
        """
        if len(s) % 2 != 0:
            s = '0' + s
        res = bytearray(len(s) // 2)
        pos = 0
        in_two = 0
        accum = 0
        table_size = len(DECODE_TABLE)
        for char in s:
            index = ord(char)
            if index >= table_size:
                continue
            code = DECODE_TABLE[index]
            if code is None:
                continue
            if in_two == 0:
                accum = code << 4
            else:
                res[pos] = accum | code
                pos += 1
            in_two ^= 1
        return bytes(res[:pos])


encode = HexCodec.encode
decode = HexCodec.decode
