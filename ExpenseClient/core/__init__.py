"""
Core package for ExpenseClient providing the expense model and synchronization with the service.

This package includes:

- :mod:`ExpenseClient.core.record` – The normalized expense record, drafts, wire decoding and input validation.
- :mod:`ExpenseClient.core.service` – The remote store client and the worker thread running its calls.
- :mod:`ExpenseClient.core.store` – The in-memory collection store kept in sync with the service.
"""
