"""Expense record model, wire normalization and input validation.

Payloads received from the expense service are loosely shaped: the amount may arrive as
``value`` or ``amount``, the identifier as ``_id`` or ``id``, the date as ``date``,
``occurredAt`` or only as a ``createdAt`` timestamp. :meth:`ExpenseRecord.from_wire` resolves
every fallback once, when a payload enters the client, so that readers only ever see clean
values.
"""
import dataclasses
import datetime
import enum
import logging
import math
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from dateutil import parser as date_parser

from ..status import status


class Category(enum.StrEnum):
    """The fixed set of expense categories."""
    Food = 'food'
    Transport = 'transport'
    Housing = 'housing'
    Shopping = 'shopping'
    Health = 'health'
    Education = 'education'
    Other = 'other'

    @classmethod
    def resolve(cls, value: Any) -> 'Category':
        """Resolve a raw value to a category, mapping anything unknown to :attr:`Other`."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.Other

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        if isinstance(value, cls):
            return True
        return isinstance(value, str) and value.strip().lower() in {c.value for c in cls}


# Logical field -> wire key used when sending data to the service
DEFAULT_MAPPING: Dict[str, str] = {
    'id': '_id',
    'title': 'title',
    'description': 'description',
    'amount': 'value',
    'category': 'category',
    'occurred_at': 'date',
    'created_at': 'createdAt',
}

# Logical field -> wire keys also accepted when decoding
WIRE_ALIASES: Dict[str, Tuple[str, ...]] = {
    'id': ('_id', 'id'),
    'title': ('title',),
    'description': ('description',),
    'amount': ('value', 'amount'),
    'category': ('category',),
    'occurred_at': ('date', 'occurredAt', 'occurred_at'),
    'created_at': ('createdAt', 'created_at'),
}

DRAFT_FIELDS: Tuple[str, ...] = ('title', 'description', 'amount', 'category', 'occurred_at')

DateLike = Union[datetime.date, datetime.datetime, str]


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """Parse a wire date value into a naive UTC datetime.

    Args:
        value: An ISO 8601 string, a date or datetime, or a millisecond epoch timestamp.

    Returns:
        The parsed datetime, or None if the value is empty or unparsable.
    """
    if value is None or value == '':
        return None

    dt: Optional[datetime.datetime] = None
    if isinstance(value, datetime.datetime):
        dt = value
    elif isinstance(value, datetime.date):
        dt = datetime.datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            dt = datetime.datetime.fromtimestamp(value / 1000.0, tz=datetime.timezone.utc)
        except (OverflowError, OSError, ValueError):
            dt = None
    elif isinstance(value, str):
        try:
            dt = date_parser.isoparse(value.strip())
        except ValueError:
            try:
                dt = date_parser.parse(value.strip())
            except (ValueError, OverflowError):
                dt = None

    if dt is None:
        logging.debug(f'Unable to parse "{value}" as a date.')
        return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return dt


def coerce_amount(value: Any) -> float:
    """Coerce a raw amount to a non-negative float, using 0.0 for anything invalid."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        logging.debug(f'Invalid amount "{value}", using 0.')
        return 0.0
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        logging.debug(f'Out of range amount "{value}", using 0.')
        return 0.0
    return amount


def _lookup(payload: Mapping[str, Any], field: str, mapping: Mapping[str, str]) -> Tuple[bool, Any]:
    keys = [mapping.get(field, DEFAULT_MAPPING[field])]
    keys += [k for k in WIRE_ALIASES[field] if k not in keys]
    for key in keys:
        if key in payload:
            return True, payload[key]
    return False, None


def _text(value: Any) -> str:
    if value is None:
        return ''
    return value if isinstance(value, str) else str(value)


def encode_date(value: DateLike) -> str:
    """Return the ISO 8601 text sent to the service for a date value."""
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return str(value)


@dataclasses.dataclass(frozen=True)
class ExpenseRecord:
    """A normalized expense as held by the collection store.

    Attributes:
        id: Identifier assigned by the service.
        title: Display title, falling back to the description.
        description: Free text, empty when absent.
        amount: Non-negative amount.
        category: Resolved category.
        occurred_at: The date the expense happened, falling back to the creation timestamp.
        created_at: Server creation timestamp.
        present: Logical fields that were present in the payload this record was decoded from.
    """
    id: str
    title: str = ''
    description: str = ''
    amount: float = 0.0
    category: Category = Category.Other
    occurred_at: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None
    present: FrozenSet[str] = dataclasses.field(default=frozenset(), compare=False, repr=False)

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any], mapping: Optional[Mapping[str, str]] = None) -> 'ExpenseRecord':
        """Decode and normalize a service payload.

        Args:
            payload: A JSON object received from the service.
            mapping: Optional logical field to wire key mapping, see :data:`DEFAULT_MAPPING`.

        Returns:
            ExpenseRecord: The normalized record.

        Raises:
            TypeError: If payload is not a mapping.
        """
        if not isinstance(payload, Mapping):
            raise TypeError(f'Expected an expense object, got {type(payload).__name__}.')

        mapping = mapping or DEFAULT_MAPPING
        present = set()
        values: Dict[str, Any] = {}
        for field in WIRE_ALIASES:
            found, value = _lookup(payload, field, mapping)
            if found:
                values[field] = value
                present.add(field)

        description = _text(values.get('description')).strip()
        title = _text(values.get('title')).strip()
        if not title:
            present.discard('title')
            title = description

        created_at = parse_datetime(values.get('created_at'))
        occurred_at = parse_datetime(values.get('occurred_at'))
        if occurred_at is None:
            present.discard('occurred_at')
            occurred_at = created_at

        return cls(
            id=_text(values.get('id')),
            title=title,
            description=description,
            amount=coerce_amount(values.get('amount')),
            category=Category.resolve(values.get('category')),
            occurred_at=occurred_at,
            created_at=created_at,
            present=frozenset(present),
        )

    def merge(self, update: 'ExpenseRecord') -> 'ExpenseRecord':
        """Return a copy with the fields present in ``update`` applied on top of this record."""
        fields = {f: getattr(update, f) for f in update.present if f != 'id'}
        if not fields:
            return self
        return dataclasses.replace(self, **fields)

    @property
    def month(self) -> Optional[str]:
        """The ``YYYY-MM`` key of the record's date."""
        if self.occurred_at is None:
            return None
        return self.occurred_at.strftime('%Y-%m')


@dataclasses.dataclass(frozen=True)
class ExpenseDraft:
    """The fields sent to the service when creating an expense."""
    title: str = ''
    description: str = ''
    amount: Any = None
    category: Any = None
    occurred_at: Optional[DateLike] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'ExpenseDraft':
        """Build a draft from form data. ``date`` is accepted as an alias of ``occurred_at``."""
        kwargs = {k: data[k] for k in DRAFT_FIELDS if k in data}
        if 'occurred_at' not in kwargs and 'date' in data:
            kwargs['occurred_at'] = data['date']
        return cls(**kwargs)

    def to_wire(self, mapping: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Encode the draft as a request body."""
        return encode_fields({f: getattr(self, f) for f in DRAFT_FIELDS}, mapping)


def encode_fields(fields: Mapping[str, Any], mapping: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Encode logical fields as a request body.

    Args:
        fields: Logical field names and values.
        mapping: Optional logical field to wire key mapping.

    Returns:
        Dict[str, Any]: JSON-ready body keyed by wire names.
    """
    mapping = mapping or DEFAULT_MAPPING
    body: Dict[str, Any] = {}
    for field, value in fields.items():
        key = mapping.get(field, DEFAULT_MAPPING.get(field, field))
        if field == 'title' or field == 'description':
            value = _text(value).strip()
        elif field == 'amount':
            value = float(value)
        elif field == 'category':
            value = Category.resolve(value).value
        elif field == 'occurred_at':
            value = encode_date(value)
        body[key] = value
    return body


def _check_amount(amount: Any) -> Optional[str]:
    if amount is None or amount == '' or isinstance(amount, bool):
        return 'Amount must be greater than 0'
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return 'Amount must be greater than 0'
    if math.isnan(value) or math.isinf(value) or value <= 0:
        return 'Amount must be greater than 0'
    return None


def _check_date(value: Any) -> Optional[str]:
    if value is None or value == '':
        return 'Date is required'
    if isinstance(value, str) and parse_datetime(value) is None:
        return 'Date is not valid'
    return None


def _check_category(value: Any) -> Optional[str]:
    if value is None or value == '':
        return 'Category is required'
    if not Category.is_valid(value):
        return 'Unknown category'
    return None


def validate_draft(draft: ExpenseDraft) -> None:
    """Validate a draft before it is sent to the service.

    Raises:
        ValidationError: Listing every failing field.
    """
    errors: Dict[str, str] = {}
    if not _text(draft.title).strip():
        errors['title'] = 'Title is required'
    msg = _check_amount(draft.amount)
    if msg:
        errors['amount'] = msg
    msg = _check_category(draft.category)
    if msg:
        errors['category'] = msg
    msg = _check_date(draft.occurred_at)
    if msg:
        errors['occurred_at'] = msg

    if errors:
        raise status.ValidationError(errors)


def validate_partial(partial: Mapping[str, Any]) -> None:
    """Validate the fields of a partial update. Only the fields present are checked.

    Raises:
        ValidationError: If a field is unknown or carries an invalid value.
    """
    errors: Dict[str, str] = {}
    if not partial:
        errors['fields'] = 'Nothing to update'
    for field, value in partial.items():
        if field not in DRAFT_FIELDS:
            errors[field] = 'Unknown field'
        elif field == 'title' and not _text(value).strip():
            errors[field] = 'Title is required'
        elif field == 'amount':
            msg = _check_amount(value)
            if msg:
                errors[field] = msg
        elif field == 'category':
            msg = _check_category(value)
            if msg:
                errors[field] = msg
        elif field == 'occurred_at':
            msg = _check_date(value)
            if msg:
                errors[field] = msg

    if errors:
        raise status.ValidationError(errors)
