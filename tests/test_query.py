"""
Unit-tests for ExpenseClient.data.query
(covers filtering, stable sorting and pagination of expense collections).

Run with:
    python -m unittest tests.test_query
"""
import datetime
import unittest

from ExpenseClient.core.record import Category, ExpenseRecord
from ExpenseClient.data.query import (
    AmountRange,
    DateRange,
    QueryDescriptor,
    SortDirection,
    SortKey,
    apply,
    paginate,
)
from tests.base import BaseTestCase


def record(_id: str, title: str = '', amount: float = 1.0, category: Category = Category.Food,
           occurred_at=None, description: str = '') -> ExpenseRecord:
    return ExpenseRecord(
        id=_id,
        title=title or f'Expense {_id}',
        description=description,
        amount=amount,
        category=category,
        occurred_at=occurred_at,
    )


def ids(records) -> list:
    return [r.id for r in records]


def day(d: int, hour: int = 12) -> datetime.datetime:
    return datetime.datetime(2024, 3, d, hour)


class PaginationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.records = [record(str(i), amount=float(i), occurred_at=day(1 + i % 28)) for i in range(25)]

    def test_first_page(self):
        view = apply(self.records, QueryDescriptor(page=1, page_size=10))
        self.assertEqual(len(view.records), 10)
        self.assertEqual(view.records, view.filtered[:10])
        self.assertEqual(view.total_count, 25)
        self.assertEqual(view.page_count, 3)

    def test_last_partial_page(self):
        view = apply(self.records, QueryDescriptor(page=3, page_size=10))
        self.assertEqual(len(view.records), 5)
        self.assertEqual(view.records, view.filtered[20:])
        self.assertFalse(view.has_next)
        self.assertTrue(view.has_previous)

    def test_out_of_range_page_is_empty(self):
        view = apply(self.records, QueryDescriptor(page=4, page_size=10))
        self.assertEqual(view.records, ())
        self.assertEqual(view.total_count, 25)

    def test_non_positive_values_are_empty(self):
        self.assertEqual(apply(self.records, QueryDescriptor(page=0)).records, ())
        self.assertEqual(apply(self.records, QueryDescriptor(page=-1)).records, ())

        view = apply(self.records, QueryDescriptor(page_size=0))
        self.assertEqual(view.records, ())
        self.assertEqual(view.page_count, 0)

    def test_paginate(self):
        self.assertEqual(paginate(self.records, 2, 20), tuple(self.records[20:]))


class FilterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.records = [
            record('1', 'Coffee', 3.5, Category.Food, day(1), description='Morning'),
            record('2', 'Bus', 2.0, Category.Transport, day(2)),
            record('3', 'Rent', 900.0, Category.Housing, day(3, 0)),
            record('4', 'Groceries', 45.0, Category.Food, day(3, 23), description='Weekly COFFEE beans'),
            record('5', 'Lost receipt', 10.0, Category.Other, None),
        ]

    def query(self, **kwargs) -> list:
        return ids(apply(self.records, QueryDescriptor(page_size=100, sort_direction='asc', **kwargs)).filtered)

    def test_no_filters_match_everything(self):
        self.assertEqual(sorted(self.query()), ['1', '2', '3', '4', '5'])

    def test_search_is_case_insensitive_on_title_and_description(self):
        self.assertEqual(self.query(search_term='coffee'), ['1', '4'])
        self.assertEqual(self.query(search_term='MORNING'), ['1'])

    def test_category(self):
        self.assertEqual(self.query(category=Category.Food), ['1', '4'])
        self.assertEqual(self.query(category='transport'), ['2'])
        self.assertEqual(self.query(category=''), self.query())

    def test_date_bounds_compare_whole_days(self):
        self.assertEqual(self.query(date_range=DateRange(end=datetime.date(2024, 3, 3))), ['1', '2', '3', '4'])
        self.assertEqual(self.query(date_range=DateRange(start=datetime.date(2024, 3, 3))), ['3', '4'])

    def test_datetime_bounds_compare_instants(self):
        self.assertEqual(self.query(date_range=DateRange(end=datetime.datetime(2024, 3, 3))), ['1', '2', '3'])

    def test_string_bounds(self):
        self.assertEqual(self.query(date_range=DateRange('2024-03-02', '2024-03-02')), ['2'])

    def test_undated_records_fail_active_date_bounds(self):
        self.assertNotIn('5', self.query(date_range=DateRange(start=datetime.date(2000, 1, 1))))
        self.assertIn('5', self.query(date_range=DateRange()))

    def test_empty_date_bounds_are_open(self):
        everything = self.query()
        self.assertEqual(self.query(date_range=DateRange('', '')), everything)
        self.assertEqual(self.query(date_range=DateRange('  ', None)), everything)
        self.assertFalse(DateRange('', '').active)
        self.assertEqual(self.query(date_range=DateRange('', '2024-03-01')), ['1'])

    def test_unparsable_date_bound_is_open(self):
        date_range = DateRange(start='garbage', end='2024-03-02')
        self.assertIsNone(date_range.start)
        self.assertEqual(self.query(date_range=date_range), ['1', '2'])

    def test_string_amount_bounds(self):
        self.assertEqual(self.query(amount_range=AmountRange(min='', max='10')), ['5', '1', '2'])
        self.assertEqual(self.query(amount_range=AmountRange(min='45')), ['3', '4'])
        self.assertEqual(self.query(amount_range=AmountRange(min='', max='')), self.query())
        self.assertEqual(self.query(amount_range=AmountRange(min='lots')), self.query())
        self.assertEqual(AmountRange(min='3.5').min, 3.5)

    def test_amount_bounds_are_inclusive(self):
        self.assertEqual(self.query(amount_range=AmountRange(min=3.5, max=45.0)), ['5', '1', '4'])
        self.assertEqual(self.query(amount_range=AmountRange(max=2.0)), ['2'])

    def test_filters_are_conjunctive(self):
        self.assertEqual(self.query(category='food', amount_range=AmountRange(min=10)), ['4'])

    def test_adding_filters_never_grows_the_result(self):
        steps = [
            {},
            {'search_term': 'e'},
            {'search_term': 'e', 'category': 'food'},
            {'search_term': 'e', 'category': 'food', 'amount_range': AmountRange(max=10)},
            {'search_term': 'e', 'category': 'food', 'amount_range': AmountRange(max=10),
             'date_range': DateRange(start=datetime.date(2024, 3, 2))},
        ]
        sizes = [len(self.query(**kwargs)) for kwargs in steps]
        self.assertEqual(sizes, sorted(sizes, reverse=True))
        for previous, current in zip(steps, steps[1:]):
            self.assertTrue(set(self.query(**current)) <= set(self.query(**previous)))

    def test_apply_is_pure(self):
        snapshot = list(self.records)
        descriptor = QueryDescriptor(search_term='e', sort_key='amount')
        self.assertEqual(apply(self.records, descriptor), apply(self.records, descriptor))
        self.assertEqual(self.records, snapshot)


class SortTests(unittest.TestCase):
    def test_amount_desc_is_reverse_of_asc(self):
        records = [record(str(i), amount=a) for i, a in enumerate([5.0, 1.0, 3.0, 9.0, 7.0])]
        asc = apply(records, QueryDescriptor(sort_key='amount', sort_direction='asc')).filtered
        desc = apply(records, QueryDescriptor(sort_key='amount', sort_direction='desc')).filtered
        self.assertEqual(list(asc), list(reversed(desc)))
        self.assertEqual(ids(asc), ['1', '2', '0', '4', '3'])

    def test_ties_keep_store_order_in_both_directions(self):
        records = [record('a', amount=5), record('b', amount=1), record('c', amount=5), record('d', amount=5)]
        asc = apply(records, QueryDescriptor(sort_key=SortKey.Amount, sort_direction=SortDirection.Asc))
        desc = apply(records, QueryDescriptor(sort_key=SortKey.Amount, sort_direction=SortDirection.Desc))
        self.assertEqual(ids(asc.filtered), ['b', 'a', 'c', 'd'])
        self.assertEqual(ids(desc.filtered), ['a', 'c', 'd', 'b'])

    def test_undated_sort_earliest(self):
        records = [record('1', occurred_at=day(2)), record('2'), record('3', occurred_at=day(1))]
        asc = apply(records, QueryDescriptor(sort_key='date', sort_direction='asc'))
        self.assertEqual(ids(asc.filtered), ['2', '3', '1'])

        # newest first by default
        self.assertEqual(ids(apply(records).filtered), ['1', '3', '2'])

    def test_title_sort_is_case_sensitive(self):
        records = [record('1', 'apple'), record('2', 'Banana'), record('3', 'cherry')]
        view = apply(records, QueryDescriptor(sort_key='title', sort_direction='asc'))
        self.assertEqual(ids(view.filtered), ['2', '1', '3'])

    def test_category_sort(self):
        records = [record('1', category=Category.Transport), record('2', category=Category.Education),
                   record('3', category=Category.Food)]
        view = apply(records, QueryDescriptor(sort_key='category', sort_direction='asc'))
        self.assertEqual(ids(view.filtered), ['2', '3', '1'])

    def test_invalid_sort_key(self):
        with self.assertRaises(ValueError):
            QueryDescriptor(sort_key='colour')


class DescriptorSettingsTests(BaseTestCase):
    def test_from_settings(self):
        from ExpenseClient.settings import lib
        lib.settings['page_size'] = 25
        lib.settings['sort_key'] = 'amount'

        descriptor = QueryDescriptor.from_settings(lib.settings, search_term='rent')
        self.assertEqual(descriptor.page_size, 25)
        self.assertIs(descriptor.sort_key, SortKey.Amount)
        self.assertIs(descriptor.sort_direction, SortDirection.Desc)
        self.assertEqual(descriptor.search_term, 'rent')

    def test_replace(self):
        descriptor = QueryDescriptor(page=2)
        self.assertEqual(descriptor.replace(page=3).page, 3)
        self.assertEqual(descriptor.page, 2)


if __name__ == '__main__':
    unittest.main()
