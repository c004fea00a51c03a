"""
Cordra Client - Base64 Codec
Standard and URL-safe Base64 over byte sequences

Decoding is lenient: characters outside the alphabet are skipped.
"""

from typing import Optional, Tuple


STANDARD_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/'
URL_SAFE_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_'

PAD = '='


def _build_decode_table() -> Tuple[Optional[int], ...]:
    # Indexed by character code up to 'z'; None marks a non-alphabet character.
    table = [None] * (ord('z') + 1)
    for value, char in enumerate(STANDARD_ALPHABET):
        table[ord(char)] = value
    for value, char in enumerate(URL_SAFE_ALPHABET):
        table[ord(char)] = value
    return tuple(table)


DECODE_TABLE = _build_decode_table()


def _calc_num_bytes(s: str) -> int:
    length = len(s)
    if s.endswith(PAD):
        length -= 1
        if s[:-1].endswith(PAD):
            length -= 1
    mod = length % 4
    if mod == 0:
        return 3 * length // 4
    if mod == 1:
        # Malformed: a lone trailing symbol carries no whole byte
        return 3 * (length - 1) // 4
    if mod == 2:
        return 3 * (length - 2) // 4 + 1
    return 3 * (length - 3) // 4 + 2


def _encode_with(data, alphabet: str, use_pad: bool) -> str:
    out = []
    accum = 0
    in_three = 0
    for code in bytes(data):
        if in_three == 0:
            out.append(alphabet[code >> 2])
            accum = (code & 0x03) << 4
        elif in_three == 1:
            accum |= code >> 4
            out.append(alphabet[accum])
            accum = (code & 0x0F) << 2
        else:
            accum |= code >> 6
            out.append(alphabet[accum])
            out.append(alphabet[code & 0x3F])
        in_three = (in_three + 1) % 3
    if in_three > 0:
        out.append(alphabet[accum])
        if use_pad:
            out.append(PAD)
            if in_three == 1:
                out.append(PAD)
    return ''.join(out)


class Base64Codec:
    """Base64 encoding with the standard and URL-safe alphabets"""

    @staticmethod
    def encode(data, url_safe: bool = False) -> str:
        """
        Encode bytes as Base64 text.

        Args:
            data: Bytes-like object to encode
            url_safe: Use the '-' / '_' alphabet without padding

        Returns:
            Encoded text
        """
        if url_safe:
            return _encode_with(data, URL_SAFE_ALPHABET, False)
        return _encode_with(data, STANDARD_ALPHABET, True)

    @staticmethod
    def encode_url_safe(data) -> str:
        return _encode_with(data, URL_SAFE_ALPHABET, False)

    @staticmethod
    def decode(s: str) -> bytes:
        """
        Decode Base64 text in either alphabet.

        Padding, whitespace and any other non-alphabet character is skipped,
        so this never fails.

        Args:
            s: Encoded text

        Returns:
            Decoded bytes
        """
        res = bytearray(_calc_num_bytes(s))
        pos = 0
        in_four = 0
        accum = 0
        table_size = len(DECODE_TABLE)
        for char in s:
            index = ord(char)
            if index >= table_size:
                continue
            code = DECODE_TABLE[index]
            if code is None:
                continue
            if in_four == 0:
                accum = code << 2
            elif in_four == 1:
                accum |= code >> 4
                res[pos] = accum
                pos += 1
                accum = (code & 0x0F) << 4
            elif in_four == 2:
                accum |= code >> 2
                res[pos] = accum
                pos += 1
                accum = (code & 0x03) << 6
            else:
                accum |= code
                res[pos] = accum
                pos += 1
            in_four = (in_four + 1) % 4
        return bytes(res[:pos])


encode = Base64Codec.encode
encode_url_safe = Base64Codec.encode_url_safe
decode = Base64Codec.decode
