"""Line-delimited batch input and output files.

Scripts read identifiers (app ids, distribution ids, account ids) one per
line, JSON records one per line, or comma separated exports with a few
lines of metadata at the top, and write their results the same way.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Union


PathLike = Union[str, Path]


class MalformedRecordError(ValueError):
    """Raised when a batch file line cannot be parsed."""

    def __init__(self, path: PathLike, line_number: int, message: str) -> None:
        super().__init__(f"{path}:{line_number}: {message}")
        self.path = str(path)
        self.line_number = line_number


def read_lines(path: PathLike, comment_prefix: str = "#") -> List[str]:
    """Read non-blank, stripped lines, skipping comments.

    Args:
        path: File to read
        comment_prefix: Lines starting with this prefix are ignored

    Returns:
        Stripped lines in file order
    """
    lines = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            if comment_prefix and line.startswith(comment_prefix):
                continue
            lines.append(line)
    return lines


def write_lines(path: PathLike, lines: Iterable[Any]) -> int:
    """Write one value per line.

    Returns:
        Number of lines written
    """
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(f"{line}\n")
            count += 1
    return count


def read_json_lines(path: PathLike) -> Iterator[Any]:
    """Yield one decoded JSON value per non-blank line.

    Raises:
        MalformedRecordError: When a line is not valid JSON
    """
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                raise MalformedRecordError(path, line_number, f"invalid JSON: {e.msg}")


def write_json_lines(path: PathLike, records: Iterable[Any]) -> int:
    """Write one JSON document per line.

    Returns:
        Number of records written
    """
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record, default=str, sort_keys=True))
            f.write("\n")
            count += 1
    return count


def read_delimited_records(
    path: PathLike,
    columns: Sequence[str],
    delimiter: str = ",",
    skip_header: bool = False,
) -> Iterator[Dict[str, str]]:
    """Yield records from a delimited export.

    Lines with fewer fields than ``columns`` are treated as metadata or
    headers and skipped, as are blank lines. Extra trailing fields are
    ignored.

    Args:
        path: File to read
        columns: Names of the leading fields
        delimiter: Field separator
        skip_header: Also skip the first full-width line (a column header)

    Yields:
        Mapping of column name to field value
    """
    header_pending = skip_header
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            fields = line.split(delimiter)
            if len(fields) < len(columns):
                continue
            if header_pending:
                header_pending = False
                continue
            yield {name: fields[i].strip() for i, name in enumerate(columns)}
