"""Filtering, sorting and pagination of expense collections.

:func:`apply` derives a :class:`DerivedView` from a sequence of records and a
:class:`QueryDescriptor`. It is a pure function: the input sequence is never modified and the
same input always yields the same view. Out-of-range pages and non-positive page values give
empty pages rather than errors.
"""
import dataclasses
import datetime
import enum
import logging
import math
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple, Union

from ..core.record import Category, ExpenseRecord, parse_datetime

Bound = Optional[Union[datetime.date, datetime.datetime]]


class SortKey(enum.StrEnum):
    Date = 'date'
    Amount = 'amount'
    Title = 'title'
    Category = 'category'


class SortDirection(enum.StrEnum):
    Asc = 'asc'
    Desc = 'desc'


def _coerce_bound(value: Any) -> Bound:
    # Strings without a time component are calendar days
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        dt = parse_datetime(text)
        if dt is None:
            logging.warning(f'Invalid date bound "{value}", leaving the bound open.')
            return None
        if 'T' not in text and ':' not in text:
            return dt.date()
        return dt
    if isinstance(value, datetime.datetime) and value.tzinfo is not None:
        return parse_datetime(value)
    return value


@dataclasses.dataclass(frozen=True)
class DateRange:
    """Inclusive bounds on the date of an expense. Either bound may be open.

    A :class:`datetime.date` bound compares whole days, so an end date includes every instant of
    that day. A :class:`datetime.datetime` bound compares instants. Empty or unparsable strings
    leave the bound open.
    """
    start: Bound = None
    end: Bound = None

    def __post_init__(self):
        object.__setattr__(self, 'start', _coerce_bound(self.start))
        object.__setattr__(self, 'end', _coerce_bound(self.end))

    @property
    def active(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, value: Optional[datetime.datetime]) -> bool:
        if not self.active:
            return True
        if value is None:
            return False
        if self.start is not None and _compare(value, self.start) < 0:
            return False
        if self.end is not None and _compare(value, self.end) > 0:
            return False
        return True


def _compare(value: datetime.datetime, bound: Union[datetime.date, datetime.datetime]) -> int:
    if isinstance(bound, datetime.datetime):
        left, right = value, bound
    else:
        left, right = value.date(), bound
    return (left > right) - (left < right)


def _coerce_amount_bound(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        logging.warning(f'Invalid amount bound "{value}", leaving the bound open.')
        return None
    if math.isnan(amount):
        return None
    return amount


@dataclasses.dataclass(frozen=True)
class AmountRange:
    """Inclusive bounds on the amount of an expense. Either bound may be open.

    Numeric strings are converted. Empty or non-numeric values leave the bound open.
    """
    min: Optional[float] = None
    max: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'min', _coerce_amount_bound(self.min))
        object.__setattr__(self, 'max', _coerce_amount_bound(self.max))

    @property
    def active(self) -> bool:
        return self.min is not None or self.max is not None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclasses.dataclass(frozen=True)
class QueryDescriptor:
    """Parameters of a query.

    Attributes:
        search_term (str): Case-insensitive substring looked up in the title and description.
        category (Category): Only records of this category match. None matches every category.
        date_range (DateRange): Bounds on the expense date.
        amount_range (AmountRange): Bounds on the amount.
        sort_key (SortKey): The field to sort by.
        sort_direction (SortDirection): Ascending or descending.
        page (int): 1-based page number.
        page_size (int): Records per page.
    """
    search_term: str = ''
    category: Optional[Union[Category, str]] = None
    date_range: DateRange = dataclasses.field(default_factory=DateRange)
    amount_range: AmountRange = dataclasses.field(default_factory=AmountRange)
    sort_key: SortKey = SortKey.Date
    sort_direction: SortDirection = SortDirection.Desc
    page: int = 1
    page_size: int = 10

    def __post_init__(self):
        object.__setattr__(self, 'search_term', self.search_term or '')
        object.__setattr__(self, 'category', self.category or None)
        object.__setattr__(self, 'sort_key', SortKey(self.sort_key))
        object.__setattr__(self, 'sort_direction', SortDirection(self.sort_direction))

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> 'QueryDescriptor':
        """Create a descriptor using the page size and sort order stored in the settings metadata."""
        defaults = {
            'page_size': settings['page_size'],
            'sort_key': settings['sort_key'],
            'sort_direction': settings['sort_direction'],
        }
        defaults = {k: v for k, v in defaults.items() if v is not None}
        defaults.update(kwargs)
        return cls(**defaults)

    def replace(self, **changes: Any) -> 'QueryDescriptor':
        return dataclasses.replace(self, **changes)


@dataclasses.dataclass(frozen=True)
class DerivedView:
    """The result of a query.

    Attributes:
        records: The records of the requested page.
        filtered: Every matching record, sorted.
        total_count: Number of matching records.
        page, page_size: The requested page.
        page_count: Number of pages the matches span.
        descriptor: The query that produced this view.
    """
    records: Tuple[ExpenseRecord, ...]
    filtered: Tuple[ExpenseRecord, ...]
    total_count: int
    page: int
    page_size: int
    page_count: int
    descriptor: QueryDescriptor

    @property
    def has_next(self) -> bool:
        return 0 < self.page < self.page_count

    @property
    def has_previous(self) -> bool:
        return 1 < self.page <= self.page_count


def matches(record: ExpenseRecord, descriptor: QueryDescriptor) -> bool:
    """Check whether a record satisfies every active filter of the descriptor."""
    term = descriptor.search_term.lower()
    if term and term not in record.title.lower() and term not in record.description.lower():
        return False
    if descriptor.category is not None and record.category != descriptor.category:
        return False
    if not descriptor.date_range.contains(record.occurred_at):
        return False
    if not descriptor.amount_range.contains(record.amount):
        return False
    return True


def filter_records(records: Iterable[ExpenseRecord], descriptor: QueryDescriptor) -> list:
    return [r for r in records if matches(r, descriptor)]


SORT_KEYS: dict[SortKey, Callable[[ExpenseRecord], Any]] = {
    # Undated records sort as the earliest
    SortKey.Date: lambda r: (r.occurred_at is not None, r.occurred_at or datetime.datetime.min),
    SortKey.Amount: lambda r: r.amount,
    SortKey.Title: lambda r: r.title,
    SortKey.Category: lambda r: r.category.value,
}


def sort_records(records: Iterable[ExpenseRecord], sort_key: SortKey = SortKey.Date,
                 sort_direction: SortDirection = SortDirection.Desc) -> list:
    """Stable sort. Records with equal keys keep their input order in both directions."""
    return sorted(
        records,
        key=SORT_KEYS[SortKey(sort_key)],
        reverse=SortDirection(sort_direction) == SortDirection.Desc,
    )


def paginate(records: Sequence[ExpenseRecord], page: int, page_size: int) -> Tuple[ExpenseRecord, ...]:
    """Slice out a 1-based page. Invalid or out-of-range pages are empty."""
    if page < 1 or page_size < 1:
        return ()
    start = (page - 1) * page_size
    return tuple(records[start:start + page_size])


def apply(records: Iterable[ExpenseRecord], descriptor: Optional[QueryDescriptor] = None) -> DerivedView:
    """Filter, sort and paginate records.

    Args:
        records: The collection to query, in store order.
        descriptor (QueryDescriptor): The query. Defaults to the first page of every record
            sorted by date, newest first.

    Returns:
        DerivedView: The derived view.
    """
    descriptor = descriptor or QueryDescriptor()

    filtered = sort_records(filter_records(records, descriptor), descriptor.sort_key, descriptor.sort_direction)
    page_count = math.ceil(len(filtered) / descriptor.page_size) if descriptor.page_size > 0 else 0
    page = paginate(filtered, descriptor.page, descriptor.page_size)

    logging.debug(
        f'Query matched {len(filtered)} records, page {descriptor.page}/{page_count} '
        f'has {len(page)}.'
    )
    return DerivedView(
        records=page,
        filtered=tuple(filtered),
        total_count=len(filtered),
        page=descriptor.page,
        page_size=descriptor.page_size,
        page_count=page_count,
        descriptor=descriptor,
    )
