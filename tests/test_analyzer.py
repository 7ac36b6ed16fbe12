import io

import colorama
import pytest

from ihexan.analyzer import SEPARATOR
from ihexan.analyzer import AnalysisError
from ihexan.analyzer import EofError
from ihexan.analyzer import analyze_file
from ihexan.analyzer import build_memory
from ihexan.analyzer import check_end_of_file
from ihexan.analyzer import iter_file_report
from ihexan.analyzer import read_lines
from ihexan.analyzer import render_file
from ihexan.base import MAX_LINE_LENGTH
from ihexan.records import RecordError
from ihexan.records import render_record_info

WIKIPEDIA_LINES = [
    ':10010000214601360121470136007EFE09D2190140\r\n',
    ':100110002146017E17C20001FF5F16002148011928\r\n',
    ':10012000194E79234623965778239EDA3F01B2CAA7\r\n',
    ':100130003F0156702B5E712B722B732146013421C7\r\n',
    ':00000001FF\r\n',
]

EXTENDED_LINES = [
    ':01100000AA45\n',
    ':020000022000DC\n',
    ':020000040800F2\n',
    ':04000005000000CD2A\n',
    ':00000001FF\n',
]

DATA_LINE = ':0312340061626391\n'
EOF_LINE = ':00000001FF\n'


def guarded(lines, last):
    for index, line in enumerate(lines, 1):
        yield line
        if index >= last:
            raise AssertionError(f'line {index + 1} was read')


class TestAnalysisError:

    def test_fields(self):
        result = AnalysisError(3, 7)
        assert result.error_code == 3
        assert result.error_line == 7
        code, line = result
        assert (code, line) == (3, 7)

    def test_ok(self):
        assert AnalysisError(0, 1).ok is True
        assert AnalysisError(RecordError.OK, 1).ok is True
        assert AnalysisError(1, 1).ok is False
        assert AnalysisError(EofError.MULTIPLE_EOF, 1).ok is False


class TestReadLines:

    def test_text(self):
        stream = io.StringIO(''.join(WIKIPEDIA_LINES))
        assert list(read_lines(stream)) == WIKIPEDIA_LINES

    def test_bytes(self):
        buffer = ''.join(WIKIPEDIA_LINES).encode()
        lines = list(read_lines(io.BytesIO(buffer)))
        assert lines == [line.encode() for line in WIKIPEDIA_LINES]

    def test_empty(self):
        assert list(read_lines(io.BytesIO(b''))) == []

    def test_no_final_newline(self):
        stream = io.BytesIO(b':0312340061626391\n:00000001FF')
        assert list(read_lines(stream)) == [b':0312340061626391\n', b':00000001FF']

    def test_longest(self):
        line = b':FF000000' + (b'00' * 0xFF) + b'01\r\n'
        assert len(line) == MAX_LINE_LENGTH + 2
        stream = io.BytesIO(line + EOF_LINE.encode())
        assert list(read_lines(stream)) == [line, EOF_LINE.encode()]

    def test_too_long(self):
        stream = io.BytesIO(b':' * 600 + b'\n' + EOF_LINE.encode())
        lines = list(read_lines(stream))
        assert lines == [b':' * (MAX_LINE_LENGTH + 2), EOF_LINE.encode()]

    def test_too_long_last(self):
        stream = io.BytesIO(EOF_LINE.encode() + b':' * 5000)
        lines = list(read_lines(stream))
        assert lines == [EOF_LINE.encode(), b':' * (MAX_LINE_LENGTH + 2)]

    def test_max_length(self):
        stream = io.StringIO('abcdef\nxy\n')
        assert list(read_lines(stream, max_length=2)) == ['abcd', 'xy\n']

    def test_lazy(self):
        stream = io.StringIO(''.join(EXTENDED_LINES))
        lines = read_lines(stream)
        assert next(lines) == EXTENDED_LINES[0]
        assert stream.readline() == EXTENDED_LINES[1]


class TestAnalyzeFile:

    def test_valid(self):
        result = analyze_file(WIKIPEDIA_LINES)
        assert result == (RecordError.OK, len(WIKIPEDIA_LINES) + 1)
        assert result.ok

    def test_valid_stream(self):
        stream = io.BytesIO(''.join(EXTENDED_LINES).encode())
        assert analyze_file(read_lines(stream)) == (0, 6)

    def test_empty(self):
        assert analyze_file([]) == (RecordError.OK, 1)

    def test_errors(self):
        vector = [
            (RecordError.MISSING_COLON, '0312340061626391\n'),
            (RecordError.MALFORMED_FIELDS, ':03123G0061626391\n'),
            (RecordError.INVALID_RECORD_TYPE, ':0312340361626391\n'),
            (RecordError.DATA_LENGTH_MISMATCH, ':04123400616263\n'),
            (RecordError.CHECKSUM_MISMATCH, ':0312340061626390\n'),
            (RecordError.LINE_TOO_LONG, ':' + '0' * 600 + '\n'),
        ]
        for error, bad_line in vector:
            lines = [DATA_LINE, DATA_LINE, bad_line, DATA_LINE, EOF_LINE]
            result = analyze_file(lines)
            assert result.error_code == error
            assert result.error_line == 3
            assert not result.ok

    def test_invalid_first_line(self):
        assert analyze_file(['\n', EOF_LINE]) == (RecordError.MISSING_COLON, 1)

    def test_stops_at_first_error(self):
        lines = [DATA_LINE, DATA_LINE, ':0312340361626391\n', 'garbage\n', EOF_LINE]
        result = analyze_file(guarded(lines, 3))
        assert result == (RecordError.INVALID_RECORD_TYPE, 3)

    def test_stops_at_first_error_iterator(self):
        lines = iter([DATA_LINE, '0312340061626391\n', ':00000003FD\n', EOF_LINE])
        assert analyze_file(lines) == (RecordError.MISSING_COLON, 2)
        assert next(lines) == ':00000003FD\n'


class TestCheckEndOfFile:

    def test_valid(self):
        assert check_end_of_file(WIKIPEDIA_LINES) == (EofError.OK, 5)
        assert check_end_of_file([EOF_LINE]) == (EofError.OK, 1)
        assert check_end_of_file([b':00000001FF']) == (EofError.OK, 1)

    def test_valid_terminators(self):
        lines = [DATA_LINE, ':00000001FF']
        assert check_end_of_file(lines) == (EofError.OK, 2)
        lines = [DATA_LINE, ':00000001FF\r\n']
        assert check_end_of_file(lines) == (EofError.OK, 2)

    def test_missing(self):
        assert check_end_of_file([DATA_LINE, DATA_LINE]) == (EofError.MISSING_EOF, 0)
        assert check_end_of_file([]) == (EofError.MISSING_EOF, 0)

    def test_missing_not_canonical(self):
        assert check_end_of_file([DATA_LINE, ':00000001ff\n']) == (EofError.MISSING_EOF, 0)
        assert check_end_of_file([DATA_LINE, ' :00000001FF\n']) == (EofError.MISSING_EOF, 0)
        assert check_end_of_file([DATA_LINE, ':00000001F\n']) == (EofError.MISSING_EOF, 0)

    def test_prefix_match(self):
        lines = [DATA_LINE, ':00000001FF \n']
        assert check_end_of_file(lines) == (EofError.OK, 2)
        lines = [':00000001FF\t\n']
        assert check_end_of_file(lines) == (EofError.OK, 1)
        lines = [DATA_LINE, ':00000001FF00\n']
        assert check_end_of_file(lines) == (EofError.OK, 2)

    def test_prefix_match_not_at_end(self):
        lines = [DATA_LINE, ':00000001FF \n', DATA_LINE]
        assert check_end_of_file(lines) == (EofError.EOF_NOT_AT_END, 2)

    def test_prefix_match_counts(self):
        lines = [':00000001FF00\n', DATA_LINE, EOF_LINE]
        assert check_end_of_file(lines) == (EofError.MULTIPLE_EOF, 1)
        lines = [DATA_LINE, ':00000001FFxyz\n', EOF_LINE, EOF_LINE]
        assert check_end_of_file(lines) == (EofError.MULTIPLE_EOF, 2)

    def test_not_at_end(self):
        lines = [DATA_LINE, EOF_LINE, DATA_LINE]
        assert check_end_of_file(lines) == (EofError.EOF_NOT_AT_END, 2)

    def test_not_at_end_blank_line(self):
        lines = [DATA_LINE, EOF_LINE, '\n']
        assert check_end_of_file(lines) == (EofError.EOF_NOT_AT_END, 2)

    def test_multiple(self):
        lines = [DATA_LINE, EOF_LINE, DATA_LINE, EOF_LINE]
        assert check_end_of_file(lines) == (EofError.MULTIPLE_EOF, 2)

        lines = [EOF_LINE, EOF_LINE, EOF_LINE]
        assert check_end_of_file(lines) == (EofError.MULTIPLE_EOF, 1)

    def test_scans_whole_file(self):
        lines = iter([EOF_LINE, DATA_LINE, EOF_LINE, DATA_LINE])
        assert check_end_of_file(lines) == (EofError.MULTIPLE_EOF, 1)
        assert next(lines, None) is None


class TestIterFileReport:

    def test_blocks(self):
        blocks = list(iter_file_report(EXTENDED_LINES))
        assert len(blocks) == len(EXTENDED_LINES)

        expected = (f'{SEPARATOR}\n'
                    f'Line 1 of file:\n'
                    f':01100000AA45\n'
                    f'\n'
                    f'{render_record_info(":01100000AA45", 1)}\n'
                    f'{SEPARATOR}\n')
        assert blocks[0] == expected

        assert 'Line 2 of file:\n:020000022000DC\n' in blocks[1]
        assert "-> Address from the data record's address field: 1000\n" in blocks[1]
        assert '-> Absolute memory address: 00021000\n' in blocks[1]
        assert '-> Absolute memory address: 08001000\n' in blocks[2]
        assert 'START LINEAR ADDRESS RECORD' in blocks[3]
        assert 'INFORMATION OF RECORD 5: END-OF-FILE RECORD' in blocks[4]

    def test_bytes(self):
        lines = [line.encode() for line in EXTENDED_LINES]
        assert list(iter_file_report(lines)) == list(iter_file_report(EXTENDED_LINES))

    def test_cursor_per_pass(self):
        lines = EXTENDED_LINES[1:]
        first = list(iter_file_report(EXTENDED_LINES))
        second = list(iter_file_report(lines))
        assert '-> Absolute memory address: 00021000\n' in first[1]
        assert '-> Absolute memory address: 00020000\n' in second[0]

    def test_color(self):
        blocks = list(iter_file_report([DATA_LINE, EOF_LINE], color=True))
        assert colorama.Fore.YELLOW + ':' in blocks[0]
        assert colorama.Fore.CYAN + '61' in blocks[0]
        assert colorama.Fore.LIGHTCYAN_EX + '62' in blocks[0]
        assert 'INFORMATION OF RECORD 1: DATA RECORD' in blocks[0]


class TestRenderFile:

    def test_render_file(self):
        text = render_file(EXTENDED_LINES)
        assert text == '\n'.join(iter_file_report(EXTENDED_LINES))
        assert text.count(SEPARATOR) == 2 * len(EXTENDED_LINES)

    def test_repeatable(self):
        assert render_file(EXTENDED_LINES) == render_file(EXTENDED_LINES)

    def test_empty(self):
        assert render_file([]) == ''


class TestBuildMemory:

    def test_data(self):
        memory = build_memory(WIKIPEDIA_LINES)
        assert list(memory.intervals()) == [(0x0100, 0x0140)]
        assert memory[0x0100] == 0x21
        assert memory[0x013F] == 0x21

    def test_extended_segment(self):
        lines = [':020000021000EC', DATA_LINE, EOF_LINE]
        memory = build_memory(lines)
        assert [list(block) for block in memory.to_blocks()] == [[0x11234, b'abc']]

    def test_extended_linear(self):
        lines = [':020000040001F9', DATA_LINE, EOF_LINE]
        memory = build_memory(lines)
        assert [list(block) for block in memory.to_blocks()] == [[0x11234, b'abc']]

    def test_start_and_eof_ignored(self):
        lines = [DATA_LINE, ':04000005000000CD2A', EOF_LINE]
        memory = build_memory(lines)
        assert [list(block) for block in memory.to_blocks()] == [[0x1234, b'abc']]

    def test_empty(self):
        memory = build_memory([EOF_LINE])
        assert list(memory.to_blocks()) == []

    def test_raises(self):
        with pytest.raises(ValueError, match='checksum mismatch'):
            build_memory([':0312340061626390'])
