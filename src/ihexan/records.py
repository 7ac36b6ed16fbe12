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

r"""Intel HEX record codec.

Parses, validates and describes single lines of an Intel HEX file.

See Also:
    `<https://en.wikipedia.org/wiki/Intel_HEX>`_
"""

import binascii
import enum
import logging
import re
from typing import Any
from typing import List
from typing import Mapping
from typing import Optional
from typing import Type
from typing import TypeVar

from .base import CHECKSUM_LENGTH
from .base import HEADER_LENGTH
from .base import MAX_DATA_SIZE
from .base import MAX_LINE_LENGTH
from .base import AnyBytes
from .base import AnyLine
from .base import TypeAlias
from .base import colorize_tokens
from .base import strip_line

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any

_logger = logging.getLogger(__name__)


class IhexTag(enum.IntEnum):
    r"""Intel HEX record tag."""

    DATA = 0
    r"""Binary data."""

    END_OF_FILE = 1
    r"""End Of File."""

    EXTENDED_SEGMENT_ADDRESS = 2
    r"""Extended Segment Address."""

    EXTENDED_LINEAR_ADDRESS = 4
    r"""Extended Linear Address."""

    START_LINEAR_ADDRESS = 5
    r"""Start Linear Address."""

    def is_data(self) -> bool:

        return self == self.DATA

    def is_eof(self) -> bool:
        r"""Tells whether this is an End Of File record tag.

        Returns:
            bool: This is an End Of File record tag.

        Examples:
            >>> IhexTag.END_OF_FILE.is_eof()
            True
            >>> IhexTag.DATA.is_eof()
            False
        """

        return self == self.END_OF_FILE

    def is_extension(self) -> bool:
        r"""Tells whether this is an Extended Address record tag.

        Returns:
            bool: This is an Extended Address record tag.

        Examples:
            >>> IhexTag.EXTENDED_LINEAR_ADDRESS.is_extension()
            True
            >>> IhexTag.EXTENDED_SEGMENT_ADDRESS.is_extension()
            True
            >>> IhexTag.DATA.is_extension()
            False
        """

        return ((self == self.EXTENDED_SEGMENT_ADDRESS) or
                (self == self.EXTENDED_LINEAR_ADDRESS))

    def is_start(self) -> bool:

        return self == self.START_LINEAR_ADDRESS

    @property
    def title(self) -> str:
        r"""str: Human readable name, as shown by record reports.

        Examples:
            >>> IhexTag.END_OF_FILE.title
            'END-OF-FILE'
            >>> IhexTag.EXTENDED_SEGMENT_ADDRESS.title
            'EXTENDED SEGMENT ADDRESS'
        """

        return TAG_TITLES[self]


TAG_TITLES: Mapping[IhexTag, str] = {
    IhexTag.DATA: 'DATA',
    IhexTag.END_OF_FILE: 'END-OF-FILE',
    IhexTag.EXTENDED_SEGMENT_ADDRESS: 'EXTENDED SEGMENT ADDRESS',
    IhexTag.EXTENDED_LINEAR_ADDRESS: 'EXTENDED LINEAR ADDRESS',
    IhexTag.START_LINEAR_ADDRESS: 'START LINEAR ADDRESS',
}

TAG_TEXTS: Mapping[bytes, IhexTag] = {b'%02X' % tag: tag for tag in IhexTag}
r"""Accepted record type fields, as they appear in the line."""


class RecordError(enum.IntEnum):
    r"""Record validation result codes."""

    OK = 0
    MISSING_COLON = 1
    MALFORMED_FIELDS = 2
    INVALID_RECORD_TYPE = 3
    DATA_LENGTH_MISMATCH = 4
    CHECKSUM_MISMATCH = 5
    LINE_TOO_LONG = 6


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='IhexRecord')


class IhexRecord:
    r"""Intel HEX record object.

    Decoded representation of one line of an Intel HEX file.

    Attributes:
        tag (:class:`IhexTag`):
            Record type.

        address (int):
            16-bit address field.

        data (bytes):
            Data field.

        count (int):
            Declared number of data bytes.
            If ``None``, it is computed from :attr:`data`.

        checksum (int):
            Checksum field.
            If ``None``, it is computed via :meth:`compute_checksum`.
    """

    Tag: Type[IhexTag] = IhexTag

    HEADER_REGEX = re.compile(
        b'^:(?P<count>[0-9A-Fa-f]{2})'
        b'(?P<address>[0-9A-Fa-f]{4})'
        b'(?P<tag>[0-9A-Fa-f]{2})'
    )
    r"""Header parser regex."""

    LINE_REGEX = re.compile(
        b'^:(?P<count>[0-9A-Fa-f]{2})'
        b'(?P<address>[0-9A-Fa-f]{4})'
        b'(?P<tag>[0-9A-Fa-f]{2})'
        b'(?P<data>([0-9A-Fa-f]{2})*)'
        b'(?P<checksum>[0-9A-Fa-f]{2})$'
    )
    r"""Line parser regex."""

    HEXPAIRS_REGEX = re.compile(b'([0-9A-Fa-f]{2})*')

    def __init__(
        self,
        tag: IhexTag,
        address: int = 0,
        data: AnyBytes = b'',
        count: Optional[int] = None,
        checksum: Optional[int] = None,
    ):

        self.tag: IhexTag = self.Tag(tag)
        self.address: int = address.__index__()
        self.data: bytes = bytes(data)
        self.count: int = len(self.data) if count is None else count.__index__()
        self.checksum: int = self.compute_checksum() if checksum is None else checksum.__index__()

    def __eq__(self, other: Any) -> bool:

        if not isinstance(other, IhexRecord):
            return NotImplemented

        return (self.tag == other.tag and
                self.address == other.address and
                self.data == other.data and
                self.count == other.count and
                self.checksum == other.checksum)

    def __repr__(self) -> str:

        return (f'<{self.__class__.__name__} tag:={self.tag!r} '
                f'address:=0x{self.address:04X} count:={self.count} '
                f'data:={self.data!r} checksum:=0x{self.checksum:02X}>')

    def __str__(self) -> str:

        return ''.join(self.to_tokens().values())

    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        The checksum is the two's complement of the sum of all the record
        bytes: count, address (high and low bytes), tag, and data.

        Returns:
            int: Computed checksum value.

        Examples:
            >>> IhexRecord(IhexTag.END_OF_FILE).compute_checksum()
            255
            >>> record = IhexRecord(IhexTag.DATA, 0x0030, b'\x02\x33\x7A')
            >>> hex(record.compute_checksum())
            '0x1e'
        """

        count = self.count & 0xFF
        address = self.address & 0xFFFF
        sum_address = (address >> 8) + (address & 0xFF)
        sum_data = sum(self.data)
        tag = int(self.tag) & 0xFF
        checksum = count + sum_address + tag + sum_data
        return -checksum & 0xFF

    def describe(self) -> List[str]:
        r"""Describes the record fields.

        Returns:
            list of str: One line of text per record field.

        Examples:
            >>> record = IhexRecord(IhexTag.DATA, 0x0030, b'\x02\x33\x7A')
            >>> for line in record.describe():
            ...     print(line)
            Record-length field: 03 <=> 3 bytes of data
            Address field: 0030
            HEX record type: 00
            Data field: 02337A
            Checksum field: 1E
        """

        return [
            f'Record-length field: {self.count:02X} <=> {self.count:d} bytes of data',
            f'Address field: {self.address:04X}',
            f'HEX record type: {int(self.tag):02X}',
            f'Data field: {self.data.hex().upper()}',
            f'Checksum field: {self.checksum:02X}',
        ]

    @classmethod
    def parse(
        cls,
        line: AnyLine,
        validate: bool = True,
    ) -> Self:
        r"""Parses a record from a line.

        The header is decoded first, then the data field is sized from the
        decoded count.

        Args:
            line (str or bytes):
                Record line, with or without line terminators.

            validate (bool):
                Calls :meth:`validate` on the parsed record.

        Returns:
            :class:`IhexRecord`: Parsed record.

        Raises:
            ValueError: Invalid syntax or record type.

        Examples:
            >>> record = IhexRecord.parse(':0300300002337A1E\r\n')
            >>> record.address, record.data, record.checksum
            (48, b'\x023z', 30)
        """

        match = cls.LINE_REGEX.match(strip_line(line))
        if not match:
            raise ValueError('syntax error')

        groups = match.groupdict()
        count = int(groups['count'], 16)
        address = int(groups['address'], 16)
        tag = TAG_TEXTS.get(groups['tag'].upper())
        if tag is None:
            raise ValueError('invalid record type')
        data = binascii.unhexlify(groups['data'][:(count * 2)])
        checksum = int(groups['checksum'], 16)

        record = cls(tag, address=address, data=data, count=count, checksum=checksum)
        if validate:
            record.validate()
        return record

    def to_tokens(self) -> Mapping[str, str]:
        r"""Splits the record into field tokens.

        Returns:
            dict: Mapping of token names to their text.

        Examples:
            >>> record = IhexRecord(IhexTag.END_OF_FILE)
            >>> ''.join(record.to_tokens().values())
            ':00000001FF'
        """

        return {
            'begin': ':',
            'count': f'{self.count & 0xFF:02X}',
            'address': f'{self.address & 0xFFFF:04X}',
            'tag': f'{int(self.tag) & 0xFF:02X}',
            'data': self.data.hex().upper(),
            'checksum': f'{self.checksum & 0xFF:02X}',
        }

    def to_text(self, color: bool = False) -> str:

        tokens = self.to_tokens()
        if color:
            tokens = colorize_tokens(tokens)
        return ''.join(tokens.values())

    def validate(self) -> Self:
        r"""Validates consistency of the fields.

        Returns:
            :class:`IhexRecord`: *self*.

        Raises:
            ValueError: Inconsistent field.
        """

        if not 0 <= self.address <= 0xFFFF:
            raise ValueError('address overflow')

        if not 0 <= self.count <= MAX_DATA_SIZE:
            raise ValueError('count overflow')

        if self.count != len(self.data):
            raise ValueError('count mismatch')

        if not 0 <= self.checksum <= 0xFF:
            raise ValueError('checksum overflow')

        if self.checksum != self.compute_checksum():
            raise ValueError('checksum mismatch')

        return self


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self


def _fail(error: RecordError, text: bytes) -> RecordError:

    _logger.debug('%s: %r', error.name, text)
    return error


def validate_record(line: AnyLine) -> RecordError:
    r"""Validates a single record line.

    Checks are performed in order, stopping at the first failure:

    #. The line starts with ``:``.
    #. It is not longer than :data:`~ihexan.base.MAX_LINE_LENGTH`.
    #. Count, address and tag are fixed-width hexadecimal fields.
    #. The tag is a supported record type.
    #. The data field holds exactly `count` hexadecimal byte pairs.
    #. Data and checksum fields are hexadecimal.
    #. The checksum matches the computed one.

    Trailing line terminators are stripped before any length arithmetic.

    Args:
        line (str or bytes):
            Record line.

    Returns:
        :class:`RecordError`: Validation result, :attr:`RecordError.OK`
        if valid.

    Examples:
        >>> validate_record(':00000001FF\n')
        <RecordError.OK: 0>
        >>> validate_record('00000001FF')
        <RecordError.MISSING_COLON: 1>
        >>> validate_record(':00000003FD')
        <RecordError.INVALID_RECORD_TYPE: 3>
    """

    text = strip_line(line)

    if text[:1] != b':':
        return _fail(RecordError.MISSING_COLON, text)

    if len(text) > MAX_LINE_LENGTH:
        return _fail(RecordError.LINE_TOO_LONG, text)

    header = IhexRecord.HEADER_REGEX.match(text)
    if not header:
        return _fail(RecordError.MALFORMED_FIELDS, text)

    tag = TAG_TEXTS.get(header.group('tag'))
    if tag is None:
        return _fail(RecordError.INVALID_RECORD_TYPE, text)

    count = int(header.group('count'), 16)
    size = len(text) - HEADER_LENGTH - CHECKSUM_LENGTH
    if size < 0 or size & 1 or (size >> 1) != count:
        return _fail(RecordError.DATA_LENGTH_MISMATCH, text)

    fields = text[HEADER_LENGTH:]
    if not IhexRecord.HEXPAIRS_REGEX.fullmatch(fields):
        return _fail(RecordError.MALFORMED_FIELDS, text)

    fields = binascii.unhexlify(fields)
    record = IhexRecord(tag,
                        address=int(header.group('address'), 16),
                        data=fields[:-1],
                        count=count,
                        checksum=fields[-1])

    if record.checksum != record.compute_checksum():
        return _fail(RecordError.CHECKSUM_MISMATCH, text)

    return RecordError.OK


class AddressCursor:
    r"""Address context of a record report pass.

    It tracks the address of the most recent *data* record, which is combined
    with the offset carried by the following *extended address* records.
    A new pass must start from a fresh or :meth:`reset` cursor.

    Examples:
        >>> cursor = AddressCursor()
        >>> cursor.update(IhexRecord.parse(':01100000AA45'))
        >>> hex(cursor.absolute_address(IhexRecord.parse(':020000022000DC')))
        '0x21000'
        >>> hex(cursor.absolute_address(IhexRecord.parse(':020000020200FA')))
        '0x3000'
    """

    def __init__(self):

        self.base_address: int = 0

    def absolute_address(self, record: IhexRecord) -> Optional[int]:

        if not record.tag.is_extension():
            return None

        high, low = (record.data + b'\0\0')[:2]

        if record.tag == IhexTag.EXTENDED_SEGMENT_ADDRESS:
            return self.base_address + (high * 0x1000) + (low * 0x10)
        else:
            return self.base_address + (high * 0x1000000) + (low * 0x10000)

    def reset(self) -> 'AddressCursor':

        self.base_address = 0
        return self

    def update(self, record: IhexRecord) -> None:

        if record.tag.is_data():
            self.base_address = record.address


def render_record_info(
    line: AnyLine,
    record_number: int,
    cursor: Optional[AddressCursor] = None,
) -> str:
    r"""Renders the information block of a record.

    *Data* and *extended address* records list all of their fields.
    *Extended address* records also report the address of the latest *data*
    record and the resulting absolute address.
    Other records report just their type.

    Warnings:
        The line must already be valid (see :func:`validate_record`).

    Args:
        line (str or bytes):
            Valid record line.

        record_number (int):
            Record number, as shown in the heading.

        cursor (:class:`AddressCursor`):
            Address context of the current pass, updated by *data* records.
            If ``None``, a fresh one is used.

    Returns:
        str: Information block, one or more lines of text.

    Raises:
        ValueError: The line cannot be parsed.

    Examples:
        >>> print(render_record_info(':00000001FF', 7))
        *** INFORMATION OF RECORD 7: END-OF-FILE RECORD ***
        <BLANKLINE>
    """

    if cursor is None:
        cursor = AddressCursor()

    record = IhexRecord.parse(line, validate=False)
    tag = record.tag
    lines = [f'*** INFORMATION OF RECORD {record_number:d}: {tag.title} RECORD ***', '']

    if tag.is_data() or tag.is_extension():
        lines.extend(record.describe())

    if tag.is_extension():
        absolute = cursor.absolute_address(record)
        lines.append(f"-> Address from the data record's address field: {cursor.base_address:04X}")
        lines.append(f'-> Absolute memory address: {absolute:08X}')

    cursor.update(record)
    return '\n'.join(lines)
