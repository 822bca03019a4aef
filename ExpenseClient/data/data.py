"""Aggregation and analytics over expense records.

Every function here is pure: it takes a sequence of :class:`~ExpenseClient.core.record.ExpenseRecord`
and returns plain values or a :class:`pandas.DataFrame`, never touching the collection store.
Amounts are non-negative by construction, so sums never go below zero and an empty input always
aggregates to ``0.0``.
"""
import datetime
import enum
import logging
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from dateutil.relativedelta import relativedelta

from ..core.record import ExpenseRecord
from ..settings import locale

DATA_COLUMNS: List[str] = [
    'id',
    'title',
    'description',
    'amount',
    'category',
    'occurred_at',
    'created_at',
]

BREAKDOWN_COLUMNS: List[str] = [
    'category',
    'display_name',
    'color',
    'total',
    'percentage',
]


class TimeRange(enum.StrEnum):
    All = 'all'
    Week = 'week'
    Month = 'month'
    Quarter = 'quarter'
    Year = 'year'


TIME_RANGE_SPANS: Dict[TimeRange, relativedelta] = {
    TimeRange.Week: relativedelta(days=7),
    TimeRange.Month: relativedelta(months=1),
    TimeRange.Quarter: relativedelta(months=3),
    TimeRange.Year: relativedelta(years=1),
}


def to_dataframe(records: Iterable[ExpenseRecord]) -> pd.DataFrame:
    """Convert records to a DataFrame with one row per record.

    Args:
        records: The records, in store order.

    Returns:
        pd.DataFrame: Columns as listed in :data:`DATA_COLUMNS`. Dates are ``datetime64``
            with ``NaT`` for undated records, categories are their string values.
    """
    rows = [
        {
            'id': r.id,
            'title': r.title,
            'description': r.description,
            'amount': r.amount,
            'category': r.category.value,
            'occurred_at': r.occurred_at,
            'created_at': r.created_at,
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=DATA_COLUMNS)
    df['amount'] = pd.to_numeric(df['amount'], errors='coerce').fillna(0.0).clip(lower=0.0).astype(float)
    df['occurred_at'] = pd.to_datetime(df['occurred_at'], errors='coerce')
    df['created_at'] = pd.to_datetime(df['created_at'], errors='coerce')
    return df


def total_amount(records: Iterable[ExpenseRecord]) -> float:
    """Sum of all amounts, 0.0 for no records."""
    df = to_dataframe(records)
    if df.empty:
        return 0.0
    return float(df['amount'].sum())


def average(records: Iterable[ExpenseRecord]) -> float:
    """Mean amount, 0.0 for no records."""
    df = to_dataframe(records)
    if df.empty:
        return 0.0
    return float(df['amount'].sum()) / len(df)


def category_totals(records: Iterable[ExpenseRecord]) -> Dict[str, float]:
    """Summed amount per category.

    Only categories present in the input appear in the result, in order of first appearance.
    """
    df = to_dataframe(records)
    if df.empty:
        return {}
    totals = df.groupby('category', sort=False)['amount'].sum()
    return {str(k): float(v) for k, v in totals.items()}


def monthly_totals(records: Iterable[ExpenseRecord]) -> Dict[str, float]:
    """Summed amount per ``YYYY-MM`` month of the expense date.

    Undated records are skipped. Callers needing chronological order sort the keys.
    """
    df = to_dataframe(records)
    skipped = int(df['occurred_at'].isna().sum())
    if skipped:
        logging.debug(f'Skipped {skipped} undated records.')

    df = df.dropna(subset=['occurred_at'])
    if df.empty:
        return {}

    df = df.assign(month=df['occurred_at'].dt.strftime('%Y-%m'))
    totals = df.groupby('month', sort=False)['amount'].sum()
    return {str(k): float(v) for k, v in totals.items()}


def average_monthly(records: Iterable[ExpenseRecord]) -> float:
    """Mean of the monthly totals, 0.0 when no record is dated."""
    totals = monthly_totals(records)
    if not totals:
        return 0.0
    return float(pd.Series(list(totals.values())).mean())


def top_category(records: Iterable[ExpenseRecord]) -> Optional[str]:
    """The category with the largest total, None for no records.

    Ties go to the category seen first.
    """
    totals = category_totals(records)
    if not totals:
        return None
    return max(totals, key=totals.get)


def recent(records: Iterable[ExpenseRecord], limit: int = 5) -> List[ExpenseRecord]:
    """The first records in store order, which puts locally created records first."""
    if limit < 1:
        return []
    return list(records)[:limit]


def filter_time_range(
        records: Iterable[ExpenseRecord],
        time_range: TimeRange = TimeRange.All,
        now: Optional[datetime.datetime] = None
) -> List[ExpenseRecord]:
    """Keep the records dated within the given time range.

    Args:
        records: The records to filter.
        time_range (TimeRange): How far back to look from now.
        now (datetime.datetime): The reference time, defaults to the current time.

    Returns:
        list: The records dated on or after ``now`` minus the span. ``TimeRange.All`` keeps
            every record, including undated ones.
    """
    time_range = TimeRange(time_range)
    records = list(records)
    if time_range == TimeRange.All:
        return records

    now = now or datetime.datetime.now()
    start = now - TIME_RANGE_SPANS[time_range]
    return [r for r in records if r.occurred_at is not None and r.occurred_at >= start]


def dashboard_summary(records: Iterable[ExpenseRecord], today: Optional[datetime.date] = None) -> Dict[str, Any]:
    """Headline figures of the dashboard.

    Args:
        records: The records to summarize.
        today (datetime.date): Reference day selecting the current month, defaults to today.

    Returns:
        dict: ``total``, ``current_month`` (total of the month containing today), ``count``
            and ``average``.
    """
    today = today or datetime.date.today()
    records = list(records)
    month = f'{today.year:04d}-{today.month:02d}'
    return {
        'total': total_amount(records),
        'current_month': monthly_totals(records).get(month, 0.0),
        'count': len(records),
        'average': average(records),
    }


def describe_summary(summary: Dict[str, Any], locale_name: str = locale.DEFAULT_LOCALE,
                     currency: Optional[str] = None) -> str:
    """Format a dashboard summary as text."""
    def fmt(v):
        return locale.format_currency_value(v, locale_name, currency)

    return (
        f'Total: {fmt(summary["total"])}\n'
        f'This month: {fmt(summary["current_month"])}\n'
        f'Expenses: {summary["count"]}\n'
        f'Average: {fmt(summary["average"])}'
    )


def category_breakdown(records: Iterable[ExpenseRecord], settings: Any = None) -> pd.DataFrame:
    """Per category totals with the display name and color used for charts.

    Args:
        records: The records to break down.
        settings (SettingsAPI): Source of the category display configuration. Defaults to the
            built-in categories.

    Returns:
        pd.DataFrame: Columns as listed in :data:`BREAKDOWN_COLUMNS`, largest total first.
    """
    if settings is None:
        from ..settings.lib import DEFAULT_CONFIG
        config = DEFAULT_CONFIG['categories']
    else:
        config = settings.get_section('categories')

    totals = category_totals(records)
    if not totals:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)

    df = pd.DataFrame({'category': list(totals.keys()), 'total': list(totals.values())})
    df['display_name'] = df['category'].map(lambda c: config.get(c, {}).get('display_name', c))
    df['color'] = df['category'].map(lambda c: config.get(c, {}).get('color', ''))

    overall = df['total'].sum()
    df['percentage'] = (df['total'] / overall * 100.0) if overall else 0.0

    df = df.sort_values('total', ascending=False, kind='stable').reset_index(drop=True)
    return df[BREAKDOWN_COLUMNS]
