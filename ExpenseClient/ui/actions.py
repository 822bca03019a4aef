"""Application-wide Qt signals and view identifiers for ExpenseClient.

This module provides:
    - View: the closed set of views the view layer can switch between.
    - show_view slot: validates a view identifier and announces the switch.
    - Signals: custom Qt signals for configuration changes, the fetch lifecycle, expense
      mutations, view switching and errors.
"""
import enum
import logging
from typing import Union

from PySide6 import QtCore


class View(enum.StrEnum):
    """Views the view layer can navigate to."""
    Dashboard = 'dashboard'
    Expenses = 'expenses'
    AddExpense = 'add_expense'
    Analytics = 'analytics'


class Signals(QtCore.QObject):
    """Centralized Qt signals for application config, data, and UI events."""
    configSectionChanged = QtCore.Signal(str)  # Section
    metadataChanged = QtCore.Signal(str, object)

    dataAboutToBeFetched = QtCore.Signal()
    dataFetched = QtCore.Signal(object)  # List[ExpenseRecord]

    expenseAdded = QtCore.Signal(object)  # ExpenseRecord
    expenseUpdated = QtCore.Signal(object)  # ExpenseRecord
    expenseRemoved = QtCore.Signal(str)  # Expense id

    viewChanged = QtCore.Signal(str)

    error = QtCore.Signal(str)


signals = Signals()


@QtCore.Slot(str)
def show_view(view: Union[View, str]) -> View:
    """Switch to a view.

    Args:
        view: A :class:`View` member or its string value.

    Returns:
        View: The resolved view.

    Raises:
        ValueError: If the identifier does not name a known view.
    """
    try:
        resolved = View(view)
    except ValueError:
        msg = f'Unknown view "{view}", must be one of {[v.value for v in View]}.'
        logging.error(msg)
        raise ValueError(msg) from None

    logging.debug(f'Switching to view "{resolved}".')
    signals.viewChanged.emit(resolved.value)
    return resolved
