"""
Unit-tests for ExpenseClient.core.record
(covers wire decoding and its fallbacks, drafts, merging, and input validation).

Run with:
    python -m unittest tests.test_record
"""
import datetime
import unittest

from ExpenseClient.core.record import (
    Category,
    ExpenseDraft,
    ExpenseRecord,
    coerce_amount,
    encode_fields,
    parse_datetime,
    validate_draft,
    validate_partial,
)
from ExpenseClient.status import status


class CategoryTests(unittest.TestCase):
    def test_resolve_is_case_insensitive(self):
        self.assertIs(Category.resolve('Food'), Category.Food)
        self.assertIs(Category.resolve(' TRANSPORT '), Category.Transport)

    def test_unknown_resolves_to_other(self):
        self.assertIs(Category.resolve('groceries'), Category.Other)
        self.assertIs(Category.resolve(None), Category.Other)
        self.assertIs(Category.resolve(42), Category.Other)

    def test_is_valid(self):
        self.assertTrue(Category.is_valid('health'))
        self.assertTrue(Category.is_valid(Category.Education))
        self.assertFalse(Category.is_valid('groceries'))
        self.assertFalse(Category.is_valid(None))


class ParsingTests(unittest.TestCase):
    def test_parse_iso_with_timezone_is_naive_utc(self):
        dt = parse_datetime('2024-03-01T14:30:00+02:00')
        self.assertEqual(dt, datetime.datetime(2024, 3, 1, 12, 30))
        self.assertIsNone(dt.tzinfo)

    def test_parse_date_only(self):
        self.assertEqual(parse_datetime('2024-03-01'), datetime.datetime(2024, 3, 1))
        self.assertEqual(parse_datetime(datetime.date(2024, 3, 1)), datetime.datetime(2024, 3, 1))

    def test_parse_epoch_milliseconds(self):
        self.assertEqual(parse_datetime(86_400_000), datetime.datetime(1970, 1, 2))

    def test_parse_garbage(self):
        self.assertIsNone(parse_datetime('not a date'))
        self.assertIsNone(parse_datetime(''))
        self.assertIsNone(parse_datetime(None))

    def test_coerce_amount(self):
        self.assertEqual(coerce_amount('12.5'), 12.5)
        self.assertEqual(coerce_amount(7), 7.0)
        for invalid in (None, 'abc', 'nan', float('inf'), -3, True, [1]):
            self.assertEqual(coerce_amount(invalid), 0.0, invalid)


class FromWireTests(unittest.TestCase):
    def test_default_wire_keys(self):
        record = ExpenseRecord.from_wire({
            '_id': 'a1',
            'title': 'Lunch',
            'description': 'With the team',
            'value': '12.5',
            'category': 'Food',
            'date': '2024-03-01T12:00:00.000Z',
            'createdAt': '2024-03-02T08:00:00.000Z',
        })
        self.assertEqual(record.id, 'a1')
        self.assertEqual(record.title, 'Lunch')
        self.assertEqual(record.description, 'With the team')
        self.assertEqual(record.amount, 12.5)
        self.assertIs(record.category, Category.Food)
        self.assertEqual(record.occurred_at, datetime.datetime(2024, 3, 1, 12, 0))
        self.assertEqual(record.created_at, datetime.datetime(2024, 3, 2, 8, 0))

    def test_alternate_keys(self):
        record = ExpenseRecord.from_wire({'id': 7, 'amount': 3, 'occurredAt': '2024-01-05'})
        self.assertEqual(record.id, '7')
        self.assertEqual(record.amount, 3.0)
        self.assertEqual(record.occurred_at, datetime.datetime(2024, 1, 5))

    def test_title_falls_back_to_description(self):
        record = ExpenseRecord.from_wire({'_id': '1', 'title': '  ', 'description': 'Bus ticket'})
        self.assertEqual(record.title, 'Bus ticket')
        self.assertNotIn('title', record.present)

    def test_missing_text_is_empty(self):
        record = ExpenseRecord.from_wire({'_id': '1'})
        self.assertEqual(record.title, '')
        self.assertEqual(record.description, '')
        self.assertEqual(record.amount, 0.0)
        self.assertIs(record.category, Category.Other)
        self.assertIsNone(record.occurred_at)

    def test_date_falls_back_to_creation_time(self):
        record = ExpenseRecord.from_wire({'_id': '1', 'date': 'garbage', 'createdAt': '2024-02-10T10:00:00Z'})
        self.assertEqual(record.occurred_at, datetime.datetime(2024, 2, 10, 10, 0))
        self.assertNotIn('occurred_at', record.present)

    def test_invalid_amounts_become_zero(self):
        for value in ('abc', None, -5, 'NaN'):
            record = ExpenseRecord.from_wire({'_id': '1', 'value': value})
            self.assertEqual(record.amount, 0.0, value)

    def test_custom_mapping(self):
        mapping = {'amount': 'cost', 'occurred_at': 'spentOn'}
        record = ExpenseRecord.from_wire({'_id': '1', 'cost': 7, 'spentOn': '2024-05-01'}, mapping)
        self.assertEqual(record.amount, 7.0)
        self.assertEqual(record.occurred_at, datetime.datetime(2024, 5, 1))

    def test_non_mapping_payload(self):
        with self.assertRaises(TypeError):
            ExpenseRecord.from_wire(['not', 'an', 'object'])

    def test_records_are_immutable(self):
        record = ExpenseRecord.from_wire({'_id': '1', 'title': 'Lunch'})
        with self.assertRaises(Exception):
            record.title = 'Dinner'

    def test_month(self):
        record = ExpenseRecord.from_wire({'_id': '1', 'date': '2024-03-31'})
        self.assertEqual(record.month, '2024-03')
        self.assertIsNone(ExpenseRecord(id='2').month)


class MergeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.record = ExpenseRecord.from_wire({
            '_id': '1',
            'title': 'Lunch',
            'description': 'Sandwich',
            'value': 10,
            'category': 'food',
            'date': '2024-03-01',
        })

    def test_merge_replaces_only_present_fields(self):
        update = ExpenseRecord.from_wire({'_id': '1', 'value': 25})
        merged = self.record.merge(update)
        self.assertEqual(merged.amount, 25.0)
        self.assertEqual(merged.title, 'Lunch')
        self.assertEqual(merged.description, 'Sandwich')
        self.assertIs(merged.category, Category.Food)
        self.assertEqual(merged.occurred_at, datetime.datetime(2024, 3, 1))

    def test_merge_keeps_id(self):
        update = ExpenseRecord.from_wire({'_id': 'other', 'title': 'Dinner'})
        merged = self.record.merge(update)
        self.assertEqual(merged.id, '1')
        self.assertEqual(merged.title, 'Dinner')

    def test_merge_does_not_mutate(self):
        self.record.merge(ExpenseRecord.from_wire({'_id': '1', 'title': 'Dinner'}))
        self.assertEqual(self.record.title, 'Lunch')


class DraftTests(unittest.TestCase):
    def test_to_wire_uses_mapping(self):
        draft = ExpenseDraft(
            title=' Lunch ', description='', amount='12.5', category='Food',
            occurred_at=datetime.date(2024, 3, 1),
        )
        self.assertEqual(draft.to_wire(), {
            'title': 'Lunch',
            'description': '',
            'value': 12.5,
            'category': 'food',
            'date': '2024-03-01',
        })

    def test_from_mapping_accepts_date_alias(self):
        draft = ExpenseDraft.from_mapping({'title': 'Taxi', 'amount': 5, 'category': 'transport',
                                           'date': '2024-03-01', 'ignored': True})
        self.assertEqual(draft.occurred_at, '2024-03-01')
        self.assertEqual(draft.title, 'Taxi')

    def test_encode_partial_fields(self):
        body = encode_fields({'amount': 3, 'occurred_at': datetime.date(2024, 1, 2)}, {'amount': 'cost'})
        self.assertEqual(body, {'cost': 3.0, 'date': '2024-01-02'})


class ValidationTests(unittest.TestCase):
    def test_valid_draft(self):
        validate_draft(ExpenseDraft('Lunch', '', 12, 'food', datetime.date(2024, 3, 1)))

    def test_empty_draft_lists_every_field(self):
        with self.assertRaises(status.ValidationError) as ctx:
            validate_draft(ExpenseDraft())
        self.assertEqual(ctx.exception.errors, {
            'title': 'Title is required',
            'amount': 'Amount must be greater than 0',
            'category': 'Category is required',
            'occurred_at': 'Date is required',
        })

    def test_non_positive_amount(self):
        for amount in (0, -1, 'abc'):
            with self.assertRaises(status.ValidationError) as ctx:
                validate_draft(ExpenseDraft('Lunch', '', amount, 'food', '2024-03-01'))
            self.assertEqual(ctx.exception.errors, {'amount': 'Amount must be greater than 0'})

    def test_unknown_category(self):
        with self.assertRaises(status.ValidationError) as ctx:
            validate_draft(ExpenseDraft('Lunch', '', 5, 'groceries', '2024-03-01'))
        self.assertEqual(ctx.exception.errors, {'category': 'Unknown category'})

    def test_partial_checks_present_fields_only(self):
        validate_partial({'title': 'Dinner'})
        validate_partial({'amount': '4.5', 'category': 'HEALTH'})

    def test_partial_rejects_invalid_values(self):
        with self.assertRaises(status.ValidationError) as ctx:
            validate_partial({'title': ' ', 'amount': 0, 'colour': 'red'})
        self.assertEqual(set(ctx.exception.errors), {'title', 'amount', 'colour'})
        self.assertEqual(ctx.exception.errors['colour'], 'Unknown field')

    def test_partial_rejects_empty_update(self):
        with self.assertRaises(status.ValidationError) as ctx:
            validate_partial({})
        self.assertIn('fields', ctx.exception.errors)


if __name__ == '__main__':
    unittest.main()
