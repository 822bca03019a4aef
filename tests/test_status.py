"""
Unit-tests for ExpenseClient.status and ExpenseClient.ui.actions
(covers the error taxonomy, status messages, view switching and the error signal).

Run with:
    python -m unittest tests.test_status
"""
import unittest

from ExpenseClient.status import status
from ExpenseClient.ui.actions import View, show_view, signals


class StatusTests(unittest.TestCase):
    def test_every_status_has_a_message(self):
        for s in status.Status:
            self.assertIn(s, status.STATUS_MESSAGE)
            self.assertEqual(status.get_message(s), status.STATUS_MESSAGE[s])

    def test_default_message(self):
        ex = status.ConnectivityError()
        self.assertIs(ex.status, status.Status.ServiceUnavailable)
        self.assertEqual(ex.message, status.get_message(status.Status.ServiceUnavailable))

    def test_request_error(self):
        ex = status.RequestError('Expense not found', status_code=404)
        self.assertEqual(ex.message, 'Expense not found')
        self.assertEqual(ex.status_code, 404)
        self.assertIn('Expense not found', str(ex))
        self.assertIsNone(status.RequestError().status_code)

    def test_validation_error(self):
        ex = status.ValidationError({'title': 'Title is required', 'amount': 'Amount must be positive'})
        self.assertEqual(set(ex.errors), {'title', 'amount'})
        self.assertIn('title: Title is required', ex.message)

    def test_taxonomy(self):
        for cls in (status.ConnectivityError, status.RequestError, status.UnknownException,
                    status.ConfigInvalidException, status.BaseUrlNotConfiguredException):
            self.assertTrue(issubclass(cls, status.BaseStatusException))

    def test_error_signal(self):
        received = []

        def on_error(message: str) -> None:
            received.append(message)

        signals.error.connect(on_error)
        try:
            status.RequestError('Rejected', 400)
        finally:
            signals.error.disconnect(on_error)
        self.assertEqual(received, ['Rejected'])


class ViewTests(unittest.TestCase):
    def test_show_view(self):
        received = []

        def on_view_changed(view: str) -> None:
            received.append(view)

        signals.viewChanged.connect(on_view_changed)
        try:
            self.assertIs(show_view('analytics'), View.Analytics)
            self.assertIs(show_view(View.AddExpense), View.AddExpense)
        finally:
            signals.viewChanged.disconnect(on_view_changed)
        self.assertEqual(received, ['analytics', 'add_expense'])

    def test_unknown_view(self):
        with self.assertRaises(ValueError):
            show_view('settings')


if __name__ == '__main__':
    unittest.main()
