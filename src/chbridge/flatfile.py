"""Reading and writing delimited flat files."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any, TextIO

from chbridge.config import validate_delimiter
from chbridge.errors import FileAccessError, ValidationError

OUTPUT_DELIMITER = ","


def _strip_terminator(line: str) -> str:
    return line.rstrip("\r\n")


class DelimitedLineReader:
    """Parse delimited text lines into rows of raw fields.

    The first line is the header. Every later non-blank line is a row, split
    on the delimiter with no quoting rules. Field counts are not checked
    against the header.
    """

    def __init__(self, lines: Iterable[str], delimiter: str) -> None:
        """Initialize the reader and consume the header line.

        Args:
            lines: Text lines, with or without line terminators
            delimiter: Single-character field delimiter

        Raises:
            ValidationError: If the delimiter is invalid or the header is
                missing or contains an empty column name
            FileAccessError: If the underlying source cannot be read
        """
        self.delimiter = validate_delimiter(delimiter)
        self._lines = iter(lines)
        self.header = self._read_header()

    def _next_line(self) -> str | None:
        try:
            return next(self._lines)
        except StopIteration:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise FileAccessError(f"Cannot read source file: {e}", stage="read") from e

    def _read_header(self) -> list[str]:
        line = self._next_line()
        if line is None or not line.strip():
            raise ValidationError("File has no header line")

        names = [name.strip() for name in _strip_terminator(line).split(self.delimiter)]
        if any(not name for name in names):
            raise ValidationError("File header contains an empty column name")
        return names

    def __iter__(self) -> Iterator[list[str]]:
        while (line := self._next_line()) is not None:
            if not line.strip():
                continue
            yield _strip_terminator(line).split(self.delimiter)


class DelimitedFileWriter:
    """Write rows as comma-joined lines under a header line.

    Values are written verbatim. A value containing a comma or a line break
    shifts the line structure of the output.
    """

    def __init__(self, path: Path, column_names: Sequence[str]) -> None:
        """Initialize writer.

        Args:
            path: Destination file, truncated when opened
            column_names: Column order for the header and every row
        """
        self.path = path
        self.column_names = list(column_names)
        self.record_count = 0
        self._file: TextIO | None = None

    def __enter__(self) -> DelimitedFileWriter:
        try:
            self._file = open(self.path, "w", encoding="utf-8", newline="")
            self._file.write(OUTPUT_DELIMITER.join(self.column_names) + "\n")
        except OSError as e:
            self._close()
            raise FileAccessError(f"Cannot write {self.path}: {e}", stage="write") from e
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            self._close()
        except OSError as e:
            if exc_type is None:
                raise FileAccessError(f"Cannot write {self.path}: {e}", stage="write") from e

    def _close(self) -> None:
        if self._file is not None:
            file, self._file = self._file, None
            file.close()

    def write_row(self, row: Mapping[str, str]) -> None:
        """Write one row; missing columns are written as empty fields.

        Raises:
            FileAccessError: If the destination cannot be written
        """
        if self._file is None:
            raise RuntimeError("Writer is not open")
        line = OUTPUT_DELIMITER.join(row.get(name, "") for name in self.column_names)
        try:
            self._file.write(line + "\n")
        except OSError as e:
            raise FileAccessError(f"Cannot write {self.path}: {e}", stage="write") from e
        self.record_count += 1
