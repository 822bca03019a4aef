"""Status definitions and exceptions for ExpenseClient.

This module provides:
    - Status: enumeration of possible application states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - ConnectivityError, RequestError, ValidationError: the error taxonomy of the remote store
      client and the collection store
    - Configuration exceptions raised by the settings library
"""
import enum
import logging
from typing import Dict, Mapping, Optional


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Config status
    ConfigNotFound = enum.auto()
    ConfigInvalid = enum.auto()
    BaseUrlNotConfigured = enum.auto()

    # Remote store status
    ServiceUnavailable = enum.auto()
    RequestFailed = enum.auto()

    # Local input status
    ValidationFailed = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.ConfigNotFound: 'Could not find the client config.',
    Status.ConfigInvalid: 'The client config seems to be incomplete, or contains invalid values.',
    Status.BaseUrlNotConfigured: 'Could not find a valid API address. Have you set up the base url in the settings?',

    Status.ServiceUnavailable: 'The expense service is unreachable. Please check your connection and try again.',
    Status.RequestFailed: 'The expense service rejected the request.',

    Status.ValidationFailed: 'The expense contains invalid values.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class BaseStatusException(Exception):
    """Base exception for status-based errors in ExpenseClient.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.
        message (str): The specific message if one was given, otherwise the status message.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: Optional[str] = None):
        self.status_message = get_message(self.status)
        self.message = message or self.status_message
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)

        from ..ui.actions import signals
        signals.error.emit(self.message)


class UnknownException(BaseStatusException):
    """Exception for an unknown error during status processing."""
    pass


class ConfigNotFoundException(BaseStatusException):
    """Exception raised when the client configuration file cannot be found."""
    status = Status.ConfigNotFound


class ConfigInvalidException(BaseStatusException):
    """Exception raised when the client configuration is invalid or malformed."""
    status = Status.ConfigInvalid


class BaseUrlNotConfiguredException(BaseStatusException):
    """Exception raised when the API base url is not configured."""
    status = Status.BaseUrlNotConfigured


class ConnectivityError(BaseStatusException):
    """Raised when no response was received from the remote store.

    Covers timeouts, refused connections and name resolution failures. Cached data stays valid
    and the caller may retry.
    """
    status = Status.ServiceUnavailable


class RequestError(BaseStatusException):
    """Raised when the remote store answered with an error response.

    Attributes:
        status_code (int): HTTP status of the response, or None when the response was
            received but could not be understood.
    """
    status = Status.RequestFailed

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ValidationError(BaseStatusException):
    """Raised before any network call when an expense fails local validation.

    Attributes:
        errors (Dict[str, str]): Field name to error message.
    """
    status = Status.ValidationFailed

    def __init__(self, errors: Mapping[str, str]):
        self.errors: Dict[str, str] = dict(errors)
        super().__init__('; '.join(f'{k}: {v}' for k, v in self.errors.items()))
