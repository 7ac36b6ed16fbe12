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

r"""Intel HEX file analyzer.

Line oriented passes over a whole Intel HEX file: record validation,
End Of File record checks, record reports, and memory image building.

Each pass consumes an iterable of lines just once; the caller provides a
fresh line source for each pass.
"""

import enum
import logging
from typing import IO
from typing import Iterable
from typing import Iterator
from typing import NamedTuple

from bytesparse import Memory

from .base import EOF_RECORD
from .base import MAX_LINE_LENGTH
from .base import AnyLine
from .base import strip_line
from .records import AddressCursor
from .records import IhexRecord
from .records import IhexTag
from .records import RecordError
from .records import render_record_info
from .records import validate_record

_logger = logging.getLogger(__name__)

SEPARATOR: str = '-' * 16


class EofError(enum.IntEnum):
    r"""End Of File record check result codes."""

    OK = 0
    MISSING_EOF = 1
    EOF_NOT_AT_END = 2
    MULTIPLE_EOF = 3


class AnalysisError(NamedTuple):
    r"""Result of a file pass.

    Attributes:
        error_code (int):
            Result code; zero means success.

        error_line (int):
            1-based line number of the detected problem.
    """

    error_code: int
    error_line: int

    @property
    def ok(self) -> bool:
        r"""bool: The pass succeeded."""

        return not self.error_code


def read_lines(
    stream: IO,
    max_length: int = MAX_LINE_LENGTH,
) -> Iterator[AnyLine]:
    r"""Reads lines from a stream, with bounded memory.

    Each line is read up to a limited number of characters.
    A line longer than `max_length` (line terminators excluded) is yielded as
    its first ``max_length + 2`` characters, so that it is still detected as
    too long, while the rest of it is skipped.

    Args:
        stream (text or byte stream):
            Stream to read; it is neither rewound nor closed.

        max_length (int):
            Maximum line length, line terminators excluded.

    Yields:
        str or bytes: Lines, as read from `stream`.

    Examples:
        >>> import io
        >>> stream = io.StringIO(':00000001FF\n' + ':' * 600 + '\nx\n')
        >>> [len(line) for line in read_lines(stream)]
        [12, 523, 2]
    """

    limit = max_length + 2

    while True:
        line = stream.readline(limit)
        if not line:
            break

        if len(line) >= limit and line[-1:] not in ('\n', b'\n'):
            _logger.debug('line longer than %d characters, skipping the rest', max_length)
            while True:
                rest = stream.readline(limit)
                if not rest or rest[-1:] in ('\n', b'\n'):
                    break

        yield line


def analyze_file(lines: Iterable[AnyLine]) -> AnalysisError:
    r"""Validates all the records of a file.

    Lines are validated in order via :func:`~ihexan.records.validate_record`,
    stopping at the first invalid one, without reading further.

    Args:
        lines (iterable of str or bytes):
            Line source.

    Returns:
        :class:`AnalysisError`: The :class:`~ihexan.records.RecordError` of
        the first invalid line and its number; on success, code zero and the
        number following the last line.

    Examples:
        >>> analyze_file([':00000001FF'])
        AnalysisError(error_code=<RecordError.OK: 0>, error_line=2)
        >>> analyze_file([':00000001FF', '00000001FF', ':00000001FF'])
        AnalysisError(error_code=<RecordError.MISSING_COLON: 1>, error_line=2)
    """

    line_number = 1

    for line in lines:
        error = validate_record(line)
        if error:
            _logger.debug('invalid record at line %d: %s', line_number, error.name)
            return AnalysisError(error, line_number)
        line_number += 1

    return AnalysisError(RecordError.OK, line_number)


def check_end_of_file(lines: Iterable[AnyLine]) -> AnalysisError:
    r"""Checks the End Of File record.

    The whole file is scanned, counting the lines starting with the canonical
    End Of File record, ``:00000001FF``.
    There must be exactly one, and it must be the last line.

    Args:
        lines (iterable of str or bytes):
            Line source.

    Returns:
        :class:`AnalysisError`: The :class:`EofError` code and the number of
        the first End Of File record line (zero if missing).

    Examples:
        >>> check_end_of_file([':0100000000FF', ':00000001FF'])
        AnalysisError(error_code=<EofError.OK: 0>, error_line=2)
        >>> check_end_of_file([':00000001FF', ':0100000000FF'])
        AnalysisError(error_code=<EofError.EOF_NOT_AT_END: 2>, error_line=1)
        >>> check_end_of_file([':0100000000FF', ':00000001FF ', ':00000001FF'])
        AnalysisError(error_code=<EofError.MULTIPLE_EOF: 3>, error_line=2)
    """

    eof_count = 0
    eof_line_number = 0
    line_number = 0

    for line in lines:
        line_number += 1
        text = strip_line(line)

        if text[:len(EOF_RECORD)] == EOF_RECORD:
            if not eof_count:
                eof_line_number = line_number
            eof_count += 1

    if not eof_count:
        error = EofError.MISSING_EOF

    elif eof_count == 1:
        if eof_line_number == line_number:
            error = EofError.OK
        else:
            error = EofError.EOF_NOT_AT_END

    else:
        error = EofError.MULTIPLE_EOF

    if error:
        _logger.debug('end of file check failed: %s (%d found, first at line %d)',
                      error.name, eof_count, eof_line_number)
    return AnalysisError(error, eof_line_number)


def iter_file_report(
    lines: Iterable[AnyLine],
    color: bool = False,
) -> Iterator[str]:
    r"""Reports information about each record of a file.

    For each line, it yields a block of text with the line number, the line
    itself, and the record information rendered by
    :func:`~ihexan.records.render_record_info`.
    A single :class:`~ihexan.records.AddressCursor` is used for the whole
    pass, so records are processed in file order.

    Warnings:
        All the lines must already be valid (see :func:`analyze_file`).

    Args:
        lines (iterable of str or bytes):
            Line source.

        color (bool):
            Colorizes the echoed line fields with ANSI codes.

    Yields:
        str: Text block of each record.
    """

    cursor = AddressCursor()

    for line_number, line in enumerate(lines, 1):
        if color:
            text = IhexRecord.parse(line, validate=False).to_text(color=True)
        else:
            text = strip_line(line).decode('ascii')

        info = render_record_info(line, line_number, cursor)
        yield (f'{SEPARATOR}\n'
               f'Line {line_number:d} of file:\n'
               f'{text}\n'
               f'\n'
               f'{info}\n'
               f'{SEPARATOR}\n')


def render_file(
    lines: Iterable[AnyLine],
    color: bool = False,
) -> str:
    r"""Renders information about each record of a file.

    Args:
        lines (iterable of str or bytes):
            Line source.

        color (bool):
            Colorizes the echoed line fields with ANSI codes.

    Returns:
        str: Whole report, see :func:`iter_file_report`.
    """

    return '\n'.join(iter_file_report(lines, color=color))


def build_memory(lines: Iterable[AnyLine]) -> Memory:
    r"""Builds the memory image of a file.

    *Data* records are written at their address, offset by the latest
    *Extended Segment Address* (bits 19:4) or *Extended Linear Address*
    (bits 31:16) record.

    Warnings:
        All the lines must already be valid (see :func:`analyze_file`).

    Args:
        lines (iterable of str or bytes):
            Line source.

    Returns:
        :class:`bytesparse.Memory`: Memory image.

    Examples:
        >>> lines = [':020000040001F9', ':0312340061626391', ':00000001FF']
        >>> memory = build_memory(lines)
        >>> [list(block) for block in memory.to_blocks()]
        [[70196, b'abc']]
    """

    memory = Memory()
    extension = 0

    for line in lines:
        record = IhexRecord.parse(line)
        tag = record.tag

        if tag == IhexTag.DATA:
            memory.write(record.address + extension, record.data)

        elif tag == IhexTag.EXTENDED_LINEAR_ADDRESS:
            extension = int.from_bytes(record.data, 'big') << 16

        elif tag == IhexTag.EXTENDED_SEGMENT_ADDRESS:
            extension = int.from_bytes(record.data, 'big') << 4

    return memory
