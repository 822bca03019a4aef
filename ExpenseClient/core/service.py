"""Remote expense service integration.

Provides :class:`RemoteStoreClient`, a typed wrapper around the expense HTTP API, and
:class:`AsyncWorker`, the thread used to run blocking service calls off the event loop.

Every call is a single round-trip. Failures are normalized to the status taxonomy:
:class:`~ExpenseClient.status.status.ConnectivityError` when no response was received and
:class:`~ExpenseClient.status.status.RequestError` when the service answered with an error or
with something that could not be understood.
"""
import datetime
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import quote

import requests
from PySide6 import QtCore

from .record import Category, DEFAULT_MAPPING, ExpenseDraft, ExpenseRecord, encode_date, encode_fields
from ..status import status

DEFAULT_TIMEOUT: float = 10.0
EXPENSES_PATH: str = '/expenses'


class AsyncWorker(QtCore.QThread):
    """
    Worker thread running one blocking function.

    Signals:
        resultReady (object): Emitted with the function's result on success.
        errorOccurred (object): Emitted with the raised exception on failure.
    """
    resultReady = QtCore.Signal(object)
    errorOccurred = QtCore.Signal(object)

    def __init__(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs

    def run(self) -> None:
        try:
            result = self.func(*self.args, **self.kwargs)
        except status.BaseStatusException as ex:
            self.errorOccurred.emit(ex)
            return
        except Exception as ex:
            logging.exception(f'Unexpected error in worker running {getattr(self.func, "__name__", self.func)}')
            self.errorOccurred.emit(ex)
            return
        self.resultReady.emit(result)


def _error_message(response: requests.Response) -> str:
    """Extract the service's error message from a response, with a generic fallback."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, Mapping):
        for key in ('message', 'error'):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return f'Request failed with status {response.status_code}'


class RemoteStoreClient:
    """Client for the remote expense store.

    Args:
        base_url (str): Root address of the service, e.g. ``http://localhost:5000``.
        timeout (float): Per-call timeout in seconds.
        mapping (dict): Optional logical field to wire key mapping.
        session (requests.Session): Optional session used to send requests.

    Raises:
        status.BaseUrlNotConfiguredException: If base_url is empty.
    """

    def __init__(
            self,
            base_url: str,
            timeout: float = DEFAULT_TIMEOUT,
            mapping: Optional[Mapping[str, str]] = None,
            session: Optional[requests.Session] = None
    ) -> None:
        if not base_url:
            raise status.BaseUrlNotConfiguredException

        self.base_url: str = base_url.rstrip('/')
        self.timeout: float = timeout
        self.mapping: Dict[str, str] = dict(mapping or DEFAULT_MAPPING)

        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })

    @classmethod
    def from_settings(cls, settings: Any, session: Optional[requests.Session] = None) -> 'RemoteStoreClient':
        """Create a client from the ``api`` and ``mapping`` settings sections."""
        return cls(
            settings.base_url,
            timeout=settings.timeout,
            mapping=settings.get_section('mapping'),
            session=session,
        )

    def __repr__(self) -> str:
        return f'<RemoteStoreClient base_url={self.base_url!r} timeout={self.timeout}>'

    def _url(self, expense_id: Optional[str] = None) -> str:
        if expense_id is None:
            return f'{self.base_url}{EXPENSES_PATH}'
        if not str(expense_id).strip():
            raise ValueError('Expense id must not be empty.')
        return f'{self.base_url}{EXPENSES_PATH}/{quote(str(expense_id), safe="")}'

    def _send(
            self,
            method: str,
            url: str,
            params: Optional[Dict[str, str]] = None,
            body: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        logging.debug(f'{method} {url} params={params}')
        try:
            response = self.session.request(method, url, params=params, json=body, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as ex:
            raise status.ConnectivityError(f'{method} {url}: {ex}') from ex
        except requests.exceptions.RequestException as ex:
            raise status.RequestError(f'{method} {url}: {ex}') from ex

        if response.status_code >= 400:
            raise status.RequestError(_error_message(response), status_code=response.status_code)

        logging.debug(f'{method} {url} -> {response.status_code}')
        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as ex:
            raise status.RequestError(
                'The service returned a response that is not valid JSON.',
                status_code=response.status_code
            ) from ex

    def _decode(self, payload: Any) -> ExpenseRecord:
        if isinstance(payload, Mapping) and isinstance(payload.get('expense'), Mapping):
            payload = payload['expense']
        try:
            return ExpenseRecord.from_wire(payload, self.mapping)
        except TypeError as ex:
            raise status.RequestError(f'Unexpected expense payload: {ex}') from ex

    def _decode_list(self, body: Any) -> List[ExpenseRecord]:
        items = body
        if isinstance(body, Mapping):
            items = body.get('expenses')
        if not isinstance(items, list):
            raise status.RequestError(
                f'Expected a list of expenses, got {type(items).__name__}.'
            )
        return [self._decode(item) for item in items]

    def list(self, params: Optional[Dict[str, str]] = None) -> List[ExpenseRecord]:
        """Fetch every expense.

        Accepts both an ``{"expenses": [...]}`` envelope and a bare array.

        Returns:
            List[ExpenseRecord]: The expenses in service order.
        """
        response = self._send('GET', self._url(), params=params)
        records = self._decode_list(self._json(response))
        logging.debug(f'Fetched {len(records)} expenses.')
        return records

    def get(self, expense_id: str) -> ExpenseRecord:
        """Fetch a single expense."""
        response = self._send('GET', self._url(expense_id))
        return self._decode(self._json(response))

    def create(self, draft: ExpenseDraft) -> ExpenseRecord:
        """Create an expense and return the record assigned by the service."""
        response = self._send('POST', self._url(), body=draft.to_wire(self.mapping))
        record = self._decode(self._json(response))
        logging.debug(f'Created expense "{record.id}".')
        return record

    def update(self, expense_id: str, partial: Mapping[str, Any]) -> ExpenseRecord:
        """Send a partial update.

        Args:
            expense_id (str): The expense to update.
            partial (dict): Logical field names and their new values.

        Returns:
            ExpenseRecord: The record as returned by the service. Only the fields it carried
            are marked present.
        """
        response = self._send('PUT', self._url(expense_id), body=encode_fields(partial, self.mapping))
        return self._decode(self._json(response))

    def delete(self, expense_id: str) -> bool:
        """Delete an expense. Any success status counts, the body is ignored."""
        self._send('DELETE', self._url(expense_id))
        logging.debug(f'Deleted expense "{expense_id}".')
        return True

    def list_by_category(self, category: Union[Category, str]) -> List[ExpenseRecord]:
        """Fetch the expenses of one category, filtered by the service."""
        return self.list(params={'category': Category.resolve(category).value})

    def list_by_date_range(
            self,
            start: Optional[Union[datetime.date, str]] = None,
            end: Optional[Union[datetime.date, str]] = None
    ) -> List[ExpenseRecord]:
        """Fetch the expenses between two dates, filtered by the service. Either bound may be open."""
        params: Dict[str, str] = {}
        if start is not None:
            params['startDate'] = encode_date(start)
        if end is not None:
            params['endDate'] = encode_date(end)
        return self.list(params=params or None)

    def check_connection(self) -> int:
        """Verify the service is reachable and answers with expenses.

        Returns:
            int: The number of expenses visible to the client.
        """
        logging.debug(f'Checking connection to {self.base_url}...')
        count = len(self.list())
        logging.info(f'Connected to {self.base_url}, {count} expenses available.')
        return count
