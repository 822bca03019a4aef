"""In-memory collection of expenses kept in sync with the remote store.

:class:`ExpenseStore` owns the authoritative cache. Every operation is available as a blocking
call and as an ``*_async`` call that runs the network round-trip on an
:class:`~ExpenseClient.core.service.AsyncWorker` and returns an :class:`Operation` handle.
Worker results are delivered through queued signal connections, so the cache is only ever
touched on the thread that owns the store, in the order completions arrive.

Cache rules:
    - refresh: success replaces the cache. A connectivity error keeps it, a request error
      clears it. Never raises.
    - add: success prepends the created record.
    - modify: success merges the returned fields into the cached record.
    - remove: success drops the record.
    - Failed mutations leave the cache untouched and raise.
"""
import enum
import logging
from typing import Any, Callable, Iterator, List, Mapping, Optional, Set, Tuple, Union

from PySide6 import QtCore

from . import service
from .record import ExpenseDraft, ExpenseRecord, validate_draft, validate_partial
from ..status import status
from ..ui.actions import signals


class OperationKind(enum.StrEnum):
    """The kinds of store operations."""
    Refresh = 'refresh'
    Add = 'add'
    Modify = 'modify'
    Remove = 'remove'
    Get = 'get'


class Operation(QtCore.QObject):
    """Handle of one asynchronous store operation.

    Attributes:
        kind (OperationKind): What the operation does.
        result: The operation's outcome once finished successfully.
        last_error (status.BaseStatusException): The failure, if the operation failed.

    Signals:
        finished (object): Emitted with the operation itself once it succeeded or failed.
        released (object): Emitted once the worker thread has exited.
    """
    finished = QtCore.Signal(object)
    released = QtCore.Signal(object)

    def __init__(self, kind: OperationKind, on_success: Callable[[Any], Any],
                 on_failure: Callable[[status.BaseStatusException], None]) -> None:
        super().__init__()
        self.kind = kind
        self.result: Any = None
        self.last_error: Optional[status.BaseStatusException] = None

        self._on_success = on_success
        self._on_failure = on_failure
        self._busy = False
        self._done = False
        self._worker: Optional[service.AsyncWorker] = None

    def __repr__(self) -> str:
        return f'<Operation kind={self.kind} busy={self._busy} error={self.last_error!r}>'

    @property
    def busy(self) -> bool:
        """True exactly while the operation's network call is outstanding."""
        return self._busy

    @property
    def done(self) -> bool:
        return self._done

    @property
    def succeeded(self) -> bool:
        return self._done and self.last_error is None

    def start(self, func: Callable[..., Any], *args: Any) -> None:
        self._busy = True
        self._worker = service.AsyncWorker(func, *args)
        self._worker.resultReady.connect(self._on_result, QtCore.Qt.QueuedConnection)
        self._worker.errorOccurred.connect(self._on_error, QtCore.Qt.QueuedConnection)
        self._worker.finished.connect(self._on_thread_finished, QtCore.Qt.QueuedConnection)
        self._worker.start()

    @QtCore.Slot(object)
    def _on_result(self, value: Any) -> None:
        self._busy = False
        self.result = self._on_success(value)
        self._finish()

    @QtCore.Slot(object)
    def _on_error(self, error: Exception) -> None:
        self._busy = False
        if not isinstance(error, status.BaseStatusException):
            error = status.UnknownException(str(error))
        self.last_error = error
        self._on_failure(error)
        self._finish()

    def _finish(self) -> None:
        self._done = True
        self.finished.emit(self)

    @QtCore.Slot()
    def _on_thread_finished(self) -> None:
        self._worker.wait()
        self.released.emit(self)

    def wait(self, timeout: Optional[int] = None) -> bool:
        """Process events until the operation finishes.

        Args:
            timeout (int): Optional limit in milliseconds.

        Returns:
            bool: True if the operation finished.
        """
        if not self._done:
            loop = QtCore.QEventLoop()
            self.finished.connect(loop.quit)
            timer = None
            if timeout is not None:
                timer = QtCore.QTimer()
                timer.setSingleShot(True)
                timer.timeout.connect(loop.quit)
                timer.start(timeout)
            loop.exec()
            self.finished.disconnect(loop.quit)
            if timer is not None:
                timer.stop()

        if self._done and self._worker is not None:
            self._worker.wait()
        return self._done


def _normalize_partial(partial: Mapping[str, Any]) -> dict:
    fields = dict(partial)
    if 'date' in fields and 'occurred_at' not in fields:
        fields['occurred_at'] = fields.pop('date')
    return fields


class ExpenseStore(QtCore.QObject):
    """The collection store.

    Args:
        client (service.RemoteStoreClient): The remote store the cache is synchronized with.
        parent (QObject): Optional Qt parent.

    Signals:
        recordsChanged (list): Emitted with the new records whenever the cache changes.
        busyChanged (bool): Emitted when the first operation starts or the last one ends.
        errorOccurred (object): Emitted with the exception when an operation fails.
    """
    recordsChanged = QtCore.Signal(object)
    busyChanged = QtCore.Signal(bool)
    errorOccurred = QtCore.Signal(object)

    def __init__(self, client: service.RemoteStoreClient, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self.client = client

        self._records: List[ExpenseRecord] = []
        self._pending: int = 0
        self._operations: Set[Operation] = set()
        self.last_error: Optional[status.BaseStatusException] = None

    @classmethod
    def from_settings(cls, settings: Any = None, parent: Optional[QtCore.QObject] = None) -> 'ExpenseStore':
        """Create a store talking to the service configured in the settings."""
        if settings is None:
            from ..settings.lib import get_settings
            settings = get_settings()
        return cls(service.RemoteStoreClient.from_settings(settings), parent=parent)

    # Reads

    @property
    def records(self) -> Tuple[ExpenseRecord, ...]:
        """Snapshot of the cache in store order."""
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ExpenseRecord]:
        return iter(tuple(self._records))

    def find(self, expense_id: str) -> Optional[ExpenseRecord]:
        return next((r for r in self._records if r.id == expense_id), None)

    def query(self, descriptor: Any = None, **kwargs: Any) -> Any:
        """Derive a filtered, sorted and paginated view of the cache.

        Args:
            descriptor (QueryDescriptor): The query. Keyword arguments build one when omitted.

        Returns:
            DerivedView: The query result.
        """
        from ..data import query
        if descriptor is None:
            descriptor = query.QueryDescriptor(**kwargs)
        return query.apply(self._records, descriptor)

    @property
    def busy(self) -> bool:
        """True while any operation is outstanding."""
        return self._pending > 0

    def clear_error(self) -> None:
        self.last_error = None

    # Bookkeeping

    def _begin(self) -> None:
        self.last_error = None
        self._pending += 1
        if self._pending == 1:
            self.busyChanged.emit(True)

    def _end(self) -> None:
        self._pending = max(0, self._pending - 1)
        if self._pending == 0:
            self.busyChanged.emit(False)

    def _fail(self, error: status.BaseStatusException) -> None:
        self.last_error = error
        self.errorOccurred.emit(error)

    def _set_records(self, records: List[ExpenseRecord]) -> None:
        self._records = records
        self.recordsChanged.emit(list(records))

    # Cache updates, shared by the blocking and asynchronous paths

    def _apply_refresh(self, records: List[ExpenseRecord]) -> List[ExpenseRecord]:
        self._set_records(list(records))
        logging.debug(f'Cache replaced with {len(records)} expenses.')
        signals.dataFetched.emit(list(records))
        return list(records)

    def _refresh_failed(self, error: status.BaseStatusException) -> None:
        if isinstance(error, status.RequestError):
            logging.warning('Refresh rejected by the service, clearing cached expenses.')
            self._set_records([])
        else:
            logging.warning(f'Refresh failed, keeping {len(self._records)} cached expenses.')
        self._fail(error)

    def _apply_add(self, record: ExpenseRecord) -> ExpenseRecord:
        self._set_records([record] + self._records)
        signals.expenseAdded.emit(record)
        return record

    def _apply_modify(self, expense_id: str, update: ExpenseRecord) -> ExpenseRecord:
        for idx, cached in enumerate(self._records):
            if cached.id != expense_id:
                continue
            merged = cached.merge(update)
            records = list(self._records)
            records[idx] = merged
            self._set_records(records)
            signals.expenseUpdated.emit(merged)
            return merged

        logging.warning(f'Updated expense "{expense_id}" is not cached, nothing to merge.')
        return update

    def _apply_remove(self, expense_id: str) -> bool:
        records = [r for r in self._records if r.id != expense_id]
        if len(records) != len(self._records):
            self._set_records(records)
        signals.expenseRemoved.emit(expense_id)
        return True

    # Blocking operations

    def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        self._begin()
        try:
            return func(*args)
        except status.BaseStatusException as ex:
            self._fail(ex)
            raise
        finally:
            self._end()

    def refresh(self) -> bool:
        """Replace the cache with the service's expenses.

        Errors are not raised, they are available as :attr:`last_error`.

        Returns:
            bool: True on success.
        """
        self._begin()
        signals.dataAboutToBeFetched.emit()
        try:
            try:
                records = self.client.list()
            except status.BaseStatusException as ex:
                self._refresh_failed(ex)
                return False
            self._apply_refresh(records)
            return True
        finally:
            self._end()

    def _prepare_draft(self, draft: Union[ExpenseDraft, Mapping[str, Any]]) -> ExpenseDraft:
        if not isinstance(draft, ExpenseDraft):
            draft = ExpenseDraft.from_mapping(draft)
        try:
            validate_draft(draft)
        except status.ValidationError as ex:
            self.last_error = ex
            self.errorOccurred.emit(ex)
            raise
        return draft

    def _prepare_partial(self, partial: Mapping[str, Any]) -> dict:
        fields = _normalize_partial(partial)
        try:
            validate_partial(fields)
        except status.ValidationError as ex:
            self.last_error = ex
            self.errorOccurred.emit(ex)
            raise
        return fields

    def add(self, draft: Union[ExpenseDraft, Mapping[str, Any]]) -> ExpenseRecord:
        """Create an expense and prepend it to the cache.

        Raises:
            status.ValidationError: Before any network call, if the draft is invalid.
            status.ConnectivityError, status.RequestError: If the service call failed.
        """
        draft = self._prepare_draft(draft)
        record = self._call(self.client.create, draft)
        return self._apply_add(record)

    def modify(self, expense_id: str, partial: Mapping[str, Any]) -> ExpenseRecord:
        """Update an expense and merge the returned fields into the cached record.

        Args:
            expense_id (str): The expense to update.
            partial (dict): The fields to change, any of ``title``, ``description``,
                ``amount``, ``category``, ``occurred_at`` (or ``date``).

        Returns:
            ExpenseRecord: The merged record.
        """
        fields = self._prepare_partial(partial)
        update = self._call(self.client.update, expense_id, fields)
        return self._apply_modify(expense_id, update)

    def remove(self, expense_id: str) -> bool:
        """Delete an expense and drop it from the cache."""
        self._call(self.client.delete, expense_id)
        return self._apply_remove(expense_id)

    def get(self, expense_id: str) -> ExpenseRecord:
        """Fetch a single expense from the service. The cache is not modified."""
        return self._call(self.client.get, expense_id)

    # Asynchronous operations

    def _start(self, kind: OperationKind, func: Callable[..., Any], *args: Any,
               on_success: Callable[[Any], Any],
               on_failure: Optional[Callable[[status.BaseStatusException], None]] = None) -> Operation:

        def _success(value: Any) -> Any:
            try:
                return on_success(value)
            finally:
                self._end()

        def _failure(error: status.BaseStatusException) -> None:
            try:
                (on_failure or self._fail)(error)
            finally:
                self._end()

        op = Operation(kind, _success, _failure)
        # Kept until the worker thread exits
        self._operations.add(op)
        op.released.connect(self._forget)
        self._begin()
        op.start(func, *args)
        return op

    @QtCore.Slot(object)
    def _forget(self, op: Operation) -> None:
        self._operations.discard(op)

    def refresh_async(self) -> Operation:
        """Asynchronous :meth:`refresh`. The operation's result is the list of fetched records."""
        signals.dataAboutToBeFetched.emit()
        return self._start(
            OperationKind.Refresh, self.client.list,
            on_success=self._apply_refresh,
            on_failure=self._refresh_failed,
        )

    def add_async(self, draft: Union[ExpenseDraft, Mapping[str, Any]]) -> Operation:
        """Asynchronous :meth:`add`.

        Raises:
            status.ValidationError: Immediately, if the draft is invalid.
        """
        draft = self._prepare_draft(draft)
        return self._start(OperationKind.Add, self.client.create, draft, on_success=self._apply_add)

    def modify_async(self, expense_id: str, partial: Mapping[str, Any]) -> Operation:
        """Asynchronous :meth:`modify`.

        Raises:
            status.ValidationError: Immediately, if the partial update is invalid.
        """
        fields = self._prepare_partial(partial)
        return self._start(
            OperationKind.Modify, self.client.update, expense_id, fields,
            on_success=lambda update: self._apply_modify(expense_id, update),
        )

    def remove_async(self, expense_id: str) -> Operation:
        """Asynchronous :meth:`remove`."""
        return self._start(
            OperationKind.Remove, self.client.delete, expense_id,
            on_success=lambda _: self._apply_remove(expense_id),
        )

    def get_async(self, expense_id: str) -> Operation:
        """Asynchronous :meth:`get`."""
        return self._start(OperationKind.Get, self.client.get, expense_id, on_success=lambda record: record)

    def wait(self) -> None:
        """Process events until every outstanding operation has finished."""
        for op in list(self._operations):
            op.wait()
