"""
UI package: the signal surface the view layer connects to.

This package provides:

- :mod:`ExpenseClient.ui.actions` – Application-wide Qt signals, view identifiers and the view switching slot.
"""
