"""Comma-delimited export of expense records.

Values containing a comma are wrapped in double quotes. Nothing else is escaped, so a value
containing a double quote is written as-is.
"""
import datetime
import logging
import pathlib
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Union

from ..core.record import ExpenseRecord

SEPARATOR: str = ','


def _date(record: ExpenseRecord) -> str:
    if record.occurred_at is None:
        return ''
    return record.occurred_at.strftime('%Y-%m-%d')


COLUMNS: Dict[str, Callable[[ExpenseRecord], str]] = {
    'Id': lambda r: r.id,
    'Title': lambda r: r.title,
    'Description': lambda r: r.description,
    'Amount': lambda r: f'{r.amount:.2f}',
    'Category': lambda r: r.category.value,
    'Date': _date,
}

DEFAULT_COLUMNS: List[str] = ['Title', 'Description', 'Amount', 'Category', 'Date']


def quote(value: str) -> str:
    if SEPARATOR in value:
        return f'"{value}"'
    return value


def _join(values: Iterable[str]) -> str:
    return SEPARATOR.join(quote(v) for v in values)


def _lines(records: Iterable[ExpenseRecord], columns: List[str]) -> Iterator[str]:
    yield _join(columns)
    for record in records:
        yield _join(COLUMNS[c](record) for c in columns)


def to_delimited_text(records: Iterable[ExpenseRecord],
                      columns: Optional[Sequence[str]] = None) -> Iterator[str]:
    """Lazily produce the lines of a comma-delimited export.

    The first line is the header, listing the columns in the given order, followed by one line
    per record.

    Args:
        records: The records to export.
        columns: Column names, any of :data:`COLUMNS`. Defaults to :data:`DEFAULT_COLUMNS`.

    Returns:
        Iterator[str]: The lines, without line terminators.

    Raises:
        ValueError: If a column name is unknown. Raised on the call, before any line is produced.
    """
    columns = list(DEFAULT_COLUMNS if columns is None else columns)
    unknown = [c for c in columns if c not in COLUMNS]
    if unknown:
        raise ValueError(f'Unknown export columns {unknown}, must be any of {list(COLUMNS)}.')
    return _lines(records, columns)


def default_filename(today: Optional[datetime.date] = None) -> str:
    """The export file name for a day, e.g. ``expenses-2024-03-01.csv``."""
    today = today or datetime.date.today()
    return f'expenses-{today.isoformat()}.csv'


def save(path: Union[str, pathlib.Path], records: Iterable[ExpenseRecord],
         columns: Optional[Sequence[str]] = None) -> pathlib.Path:
    """Write an export to disk.

    Args:
        path: The destination file, or a directory to write :func:`default_filename` into.
        records: The records to export.
        columns: Column names, see :func:`to_delimited_text`.

    Returns:
        pathlib.Path: The written file.
    """
    path = pathlib.Path(path)
    if path.is_dir():
        path = path / default_filename()

    lines = to_delimited_text(records, columns)
    count = -1
    with path.open('w', encoding='utf-8', newline='') as f:
        for count, line in enumerate(lines):
            f.write(line)
            f.write('\n')

    logging.info(f'Exported {max(count, 0)} expenses to "{path}".')
    return path
