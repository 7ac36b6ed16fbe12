# Copyright (c) 2013-2025, Andrea Zoppi
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

r"""Base types, limits and helpers shared by the record codec and the analyzer."""

from typing import Any
from typing import Mapping
from typing import Union

import colorama

try:
    from typing import TypeAlias
except ImportError:  # pragma: no cover
    TypeAlias = Any  # Python < 3.10

AnyBytes: TypeAlias = Union[bytes, bytearray, memoryview]
AnyLine: TypeAlias = Union[str, bytes, bytearray, memoryview]

HEADER_LENGTH: int = 9
r"""Characters of ``:`` plus the count, address and tag fields."""

CHECKSUM_LENGTH: int = 2
r"""Characters of the trailing checksum field."""

MAX_DATA_SIZE: int = 0xFF
r"""Maximum data bytes a single record can carry."""

MAX_LINE_LENGTH: int = HEADER_LENGTH + (MAX_DATA_SIZE * 2) + CHECKSUM_LENGTH
r"""Longest valid record line, without line terminators."""

EOF_RECORD: bytes = b':00000001FF'
r"""Canonical End Of File record text."""

LINE_TERMINATORS: bytes = b'\r\n'

TOKEN_COLOR_CODES: Mapping[str, str] = {
    '':         colorama.Style.RESET_ALL,
    '<':        colorama.Style.RESET_ALL,
    '>':        colorama.Style.RESET_ALL,
    'address':  colorama.Fore.RED,
    'after':    colorama.Style.RESET_ALL,
    'begin':    colorama.Fore.YELLOW,
    'checksum': colorama.Fore.MAGENTA,
    'count':    colorama.Fore.BLUE,
    'data':     colorama.Fore.CYAN,
    'dataalt':  colorama.Fore.LIGHTCYAN_EX,
    'tag':      colorama.Fore.GREEN,
}
r"""ANSI color codes for each possible token type."""


def to_bytes(line: AnyLine) -> bytes:
    r"""Converts a line into a byte string.

    Text lines are encoded as ASCII; any character outside of it is replaced
    with ``?``, which can never be part of a valid record.

    Args:
        line (str or bytes):
            Line to convert.

    Returns:
        bytes: Byte string of `line`.

    Examples:
        >>> to_bytes(':00000001FF\n')
        b':00000001FF\n'
        >>> to_bytes(b':00000001FF')
        b':00000001FF'
        >>> to_bytes(':0000è0001FF')
        b':0000?0001FF'
    """

    if isinstance(line, str):
        return line.encode('ascii', errors='replace')
    return bytes(line)


def strip_line(line: AnyLine) -> bytes:
    r"""Normalizes a line.

    The line is converted into bytes, and all the trailing line terminator
    characters (CR and LF) are removed.
    Any other whitespace is kept, as it is not part of the record syntax.

    Args:
        line (str or bytes):
            Line to normalize.

    Returns:
        bytes: Normalized line.

    Examples:
        >>> strip_line(':00000001FF\r\n')
        b':00000001FF'
        >>> strip_line(b':00000001FF \n')
        b':00000001FF '
    """

    return to_bytes(line).rstrip(LINE_TERMINATORS)


def colorize_tokens(
    tokens: Mapping[str, str],
    altdata: bool = True,
) -> Mapping[str, str]:
    r"""Prepends ANSI color codes to record field tokens.

    For each token within `tokens`, its key is used to look up the ANSI color
    code from :data:`TOKEN_COLOR_CODES`.
    The retrieved code is prepended to the token.
    All the modified tokens are then collected and returned.

    Args:
        tokens (dict):
            A mapping of each token key name to token string.

        altdata (bool):
            If true, it alternates each byte (two hex digits) between the ANSI
            color codes mapped with keys ``data`` (even byte index) and
            ``dataalt`` (odd byte index).
            If false, only the ``data`` code is prepended.

    Returns:
        dict: `tokens` with prepended ANSI color codes.

    Examples:
        >>> tokens = {'begin': ':', 'count': '00', 'data': ''}
        >>> colorize_tokens(tokens)  # doctest: +NORMALIZE_WHITESPACE
        {'<': '\x1b[0m', 'begin': '\x1b[33m:', 'count': '\x1b[34m00',
         '>': '\x1b[0m'}
    """

    codes = TOKEN_COLOR_CODES
    colorized = {}
    colorized.setdefault('<', codes['<'])

    for key, value in tokens.items():
        if key not in codes:
            key = ''
        if value:
            code = codes[key]

            if key == 'data' and altdata:
                altcode = codes['dataalt']
                chunks = []
                for i in range(0, len(value), 2):
                    chunks.append(altcode if i & 2 else code)
                    chunks.append(value[i:(i + 2)])
                colorized[key] = ''.join(chunks)
            else:
                colorized[key] = code + value

    colorized.setdefault('>', codes['>'])
    return colorized
