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

"""
Module that contains the command line app.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -m ihexan` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``ihexan.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``ihexan.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/#setuptools-integration
"""

import io
import logging
from typing import IO
from typing import Iterator
from typing import Mapping
from typing import Optional

import click

from . import __version__
from .analyzer import AnalysisError
from .analyzer import EofError
from .analyzer import analyze_file
from .analyzer import build_memory
from .analyzer import check_end_of_file
from .analyzer import iter_file_report
from .analyzer import read_lines
from .base import AnyLine
from .records import RecordError
from .records import render_record_info
from .records import validate_record

FILE_PATH_IN = click.Path(dir_okay=False, allow_dash=True, readable=True, exists=True)

RECORD_ERROR_MESSAGES: Mapping[RecordError, str] = {
    RecordError.MISSING_COLON:
        "There is no ':' character at the beginning of the line.",
    RecordError.MALFORMED_FIELDS:
        "Record format isn't valid.",
    RecordError.INVALID_RECORD_TYPE:
        "Record type isn't valid.",
    RecordError.DATA_LENGTH_MISMATCH:
        "The number of bytes of data field and record-length field aren't the same.",
    RecordError.CHECKSUM_MISMATCH:
        "Checksum field doesn't match the actual calculation.",
    RecordError.LINE_TOO_LONG:
        "Line is longer than the maximum record length.",
}
r"""User messages for record validation errors."""

EOF_ERROR_MESSAGES: Mapping[EofError, str] = {
    EofError.MISSING_EOF:
        'File is missing End-Of-File record!!!',
    EofError.EOF_NOT_AT_END:
        'End-Of-File record must be at the end of file!!!',
    EofError.MULTIPLE_EOF:
        "File mustn't have more than one End-Of-File record!!!",
}
r"""User messages for End Of File record check errors."""

MESSAGE_SUCCESS = '\n--> INTEL-HEX FILE HAS CORRECT FORMAT, WITHOUT ANY ERRORS.\n'
MESSAGE_REPORT = "--> BELOW IS THE INFORMATION OF ALL FILE'S RECORDS . . .\n"
MESSAGE_STOP = "\n--> STOP CHECKING THE FILE BECAUSE FILE'S FORMAT IS NOT VALID . . . "


def format_record_error(result: AnalysisError) -> str:

    message = RECORD_ERROR_MESSAGES[RecordError(result.error_code)]
    return f'Error at line {result.error_line:d}: {message}'


def format_eof_error(result: AnalysisError) -> str:

    error = EofError(result.error_code)
    message = EOF_ERROR_MESSAGES[error]
    if error == EofError.MISSING_EOF:
        return f'File error: {message}'
    return f'Error at line {result.error_line:d}: {message}'


def print_version(ctx, _, value):

    if not value or ctx.resilient_parsing:
        return

    click.echo(str(__version__))
    ctx.exit()


# ----------------------------------------------------------------------------

class LineSource:
    r"""Line source of an input file, reopened for each pass.

    Each ``with`` block opens the file from its start, and provides the lines
    read via :func:`~ihexan.analyzer.read_lines`.
    The standard input is read once, then replayed for each pass.
    """

    def __init__(self, input_path: str):

        if input_path == '-':
            input_path = None

        self.input_path: Optional[str] = input_path
        self.stream: Optional[IO] = None
        self._stdin_buffer: Optional[bytes] = None

    def __enter__(self) -> Iterator[AnyLine]:

        if self.input_path is None:
            if self._stdin_buffer is None:
                self._stdin_buffer = click.get_binary_stream('stdin').read()
            self.stream = io.BytesIO(self._stdin_buffer)
        else:
            self.stream = open(self.input_path, 'rb')

        return read_lines(self.stream)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:

        self.stream.close()
        self.stream = None


def check_source(source: LineSource) -> Optional[str]:
    r"""Runs the validation passes.

    The record validation pass comes first; the End Of File check pass runs
    only if all the records are valid.

    Returns:
        str: Error message, or ``None`` if the file is valid.
    """

    with source as lines:
        result = analyze_file(lines)
    if not result.ok:
        return format_record_error(result)

    with source as lines:
        result = check_end_of_file(lines)
    if not result.ok:
        return format_eof_error(result)

    return None


# ============================================================================

@click.group()
@click.option('-v', '--verbose', is_flag=True, help="""
    Logs debug messages about detected errors.
""")
@click.option('--version', is_flag=True, is_eager=True,
              expose_value=False, callback=print_version, help="""
    Print version and exit.
""")
def main(verbose: bool) -> None:
    """
    Command line utilities to check and inspect Intel HEX files.

    Being built with `Click <https://click.palletsprojects.com/en/stable/>`_, all the
    commands follow POSIX-like syntax rules, as well as reserving the virtual
    file path ``-`` for the standard input.
    """

    if verbose:
        logging.basicConfig(level=logging.DEBUG)


# ----------------------------------------------------------------------------

@main.command()
@click.option('-c', '--color', is_flag=True, help="""
    Colorizes the record fields with ANSI codes.
""")
@click.argument('infile', type=FILE_PATH_IN)
def analyze(
    color: bool,
    infile: str,
) -> None:
    r"""Checks an Intel HEX file and reports all of its records.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.

    Records are checked first, then the End Of File record.
    Only if the file is valid, information about each record is printed.
    """

    source = LineSource(infile)
    message = check_source(source)

    if message is not None:
        click.echo(message)
        click.echo(MESSAGE_STOP)
        click.get_current_context().exit(1)

    click.echo(MESSAGE_SUCCESS)
    click.echo(MESSAGE_REPORT)

    with source as lines:
        for block in iter_file_report(lines, color=color):
            click.echo(block, color=color)


# ----------------------------------------------------------------------------

@main.command()
@click.argument('infile', type=FILE_PATH_IN)
def validate(
    infile: str,
) -> None:
    r"""Validates an Intel HEX file.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    message = check_source(LineSource(infile))

    if message is not None:
        click.echo(message)
        click.get_current_context().exit(1)

    click.echo('OK')


# ----------------------------------------------------------------------------

@main.command()
@click.option('-n', '--number', type=click.IntRange(min=0), default=1, show_default=True, help="""
    Record number shown in the heading.
""")
@click.argument('record', type=str)
def info(
    number: int,
    record: str,
) -> None:
    r"""Describes a single record.

    ``RECORD`` is the record line, starting with ``:``.
    """

    error = validate_record(record)

    if error:
        message = RECORD_ERROR_MESSAGES[error]
        click.echo(f'Error: {message}')
        click.get_current_context().exit(1)

    click.echo(render_record_info(record, number))


# ----------------------------------------------------------------------------

@main.command()
@click.argument('infile', type=FILE_PATH_IN)
def spans(
    infile: str,
) -> None:
    r"""Lists the memory spans of an Intel HEX file.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.

    Each line shows the inclusive start address, the exclusive end address,
    and the size of a contiguous block of data, in hexadecimal.
    """

    source = LineSource(infile)
    message = check_source(source)

    if message is not None:
        click.echo(message)
        click.get_current_context().exit(1)

    with source as lines:
        memory = build_memory(lines)

    for start, endex in memory.intervals():
        click.echo(f'{start:08X} {endex:08X} {endex - start:X}')
