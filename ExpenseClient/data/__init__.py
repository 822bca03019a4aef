"""
ExpenseClient data package: queries, analytics and export.

This package provides:

- :mod:`ExpenseClient.data.query` – Pure filter, sort and pagination of expense collections (:func:`ExpenseClient.data.query.apply`).
- :mod:`ExpenseClient.data.data` – pandas based totals, monthly and category summaries, and dashboard figures.
- :mod:`ExpenseClient.data.export` – Comma-delimited export of expense records.
"""
