"""
Locale aware formatting of amounts and dates using Babel.

"""
import datetime
import logging
from typing import Dict, List, Optional, Union

from babel import Locale, UnknownLocaleError, dates, numbers

DEFAULT_LOCALE: str = 'en_US'

CURRENCY_MAP: Dict[str, str] = {
    'US': 'USD',
    'GB': 'GBP',
    'DE': 'EUR',
    'FR': 'EUR',
    'BE': 'EUR',
    'IT': 'EUR',
    'ES': 'EUR',
    'NL': 'EUR',
    'FI': 'EUR',
    'JP': 'JPY',
    'CA': 'CAD',
    'AU': 'AUD',
    'IN': 'INR',
    'BR': 'BRL',
    'CN': 'CNY',
    'KR': 'KRW',
    'DK': 'DKK',
    'SE': 'SEK',
    'NO': 'NOK',
    'HU': 'HUF',
    'MX': 'MXN',
    'ZA': 'ZAR',
    'TR': 'TRY',
}

LOCALE_MAP: List[str] = [
    'en_US',
    'en_GB',
    'en_AU',
    'en_CA',
    'en_IN',
    'de_DE',
    'es_ES',
    'es_MX',
    'fr_FR',
    'fr_BE',
    'it_IT',
    'nl_NL',
    'hu_HU',
    'ja_JP',
    'ko_KR',
    'pt_BR',
    'zh_CN',
]

DATE_FORMATS = ('short', 'medium', 'long')


def _parse_locale(locale: str) -> Locale:
    try:
        return Locale.parse(locale)
    except (UnknownLocaleError, ValueError, TypeError):
        logging.warning(f'Unknown locale "{locale}", using {DEFAULT_LOCALE}.')
        return Locale.parse(DEFAULT_LOCALE)


def get_currency_from_locale(locale: str) -> str:
    """
    Look up the currency used in the locale's territory.

    Args:
        locale (str): Locale string, e.g. 'fr_FR'.

    Returns:
        str: Currency code such as 'EUR'. Defaults to 'USD' if the territory is unknown.
    """
    parts = locale.split('_')
    if len(parts) < 2:
        return 'USD'
    return CURRENCY_MAP.get(parts[1].upper(), 'USD')


def format_float(value: float, locale: str = DEFAULT_LOCALE) -> str:
    """
    Format a number with the decimal and grouping symbols of the locale.

    Args:
        value (float): The number to format.
        locale (str): Locale string, e.g. 'en_US'.

    Returns:
        str: The formatted decimal string.
    """
    return numbers.format_decimal(value, locale=_parse_locale(locale))


def format_currency_value(value: float, locale: str = DEFAULT_LOCALE, currency: Optional[str] = None) -> str:
    """
    Format an amount as a currency string.

    Args:
        value (float): The amount to format.
        locale (str): Locale string, e.g. 'fr_FR'.
        currency (str): Currency code. When omitted the locale's own currency is used.

    Returns:
        str: The formatted currency string, e.g. '$1,234.50'.
    """
    currency = currency or get_currency_from_locale(locale)
    try:
        return numbers.format_currency(value, currency=currency, locale=_parse_locale(locale))
    except (numbers.UnknownCurrencyError, ValueError) as e:
        logging.error(f'Error formatting currency "{currency}": {e}')
        return format_float(value, locale)


def format_date(
        value: Union[datetime.date, datetime.datetime, None],
        locale: str = DEFAULT_LOCALE,
        fmt: str = 'medium'
) -> str:
    """
    Format a date for display.

    Args:
        value: The date to format. None gives an empty string.
        locale (str): Locale string, e.g. 'en_GB'.
        fmt (str): One of 'short', 'medium' or 'long'.

    Returns:
        str: The formatted date.

    Raises:
        ValueError: If fmt is not a known format.
    """
    if fmt not in DATE_FORMATS:
        raise ValueError(f'Invalid date format "{fmt}", must be one of {DATE_FORMATS}.')
    if value is None:
        return ''
    if isinstance(value, datetime.datetime):
        value = value.date()
    return dates.format_date(value, format=fmt, locale=_parse_locale(locale))
