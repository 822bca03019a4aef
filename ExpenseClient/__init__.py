"""
ExpenseClient: client-side data layer for a remote expense tracking service.

This package provides:

- :mod:`ExpenseClient.core` – The expense record model, the remote store client and the collection store.
- :mod:`ExpenseClient.data` – Query engine (filter, sort, paginate), pandas based aggregation and CSV export.
- :mod:`ExpenseClient.settings` – Settings management with schema validation, and locale aware formatting.
- :mod:`ExpenseClient.status` – Status codes and the exception taxonomy.
- :mod:`ExpenseClient.ui` – Application-wide signals and view identifiers for the view layer.
- :mod:`ExpenseClient.log` – Logging setup with an in-memory log tank.

Use :func:`ExpenseClient.exec_` to fetch the expenses once and print the dashboard summary.
"""

import logging
import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('ExpenseClient requires Python 3.11 or higher.')

__version__ = '0.1.0'
__author__ = 'Gergely Wootsch'
__license__ = 'GPL-3.0'
__copyright__ = 'Copyright (C) 2025 Gergely Wootsch'
__description__ = 'ExpenseClient: client-side data layer for a remote expense tracking service.'

from .log import log

log.setup_logging()


def exec_() -> None:
    """Fetch the expenses from the configured service and log the dashboard summary.

    Runs a headless QCoreApplication until the refresh finishes. Exits with status 1 if the
    service could not be reached or rejected the request.
    """
    from PySide6 import QtCore

    from .core.store import ExpenseStore
    from .data import data
    from .settings import lib

    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication(sys.argv)

    settings = lib.get_settings()
    store = ExpenseStore.from_settings(settings)

    def on_finished(op) -> None:
        if op.succeeded:
            summary = data.dashboard_summary(store.records)
            logging.info('\n' + data.describe_summary(summary, settings['locale'], settings['currency']))
            app.exit(0)
        else:
            app.exit(1)

    op = store.refresh_async()
    op.finished.connect(on_finished)

    code = app.exec()
    store.wait()
    sys.exit(code)


if __name__ == '__main__':
    exec_()
