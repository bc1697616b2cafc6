"""Errors raised by the upload broker.

The handler turns every one of these into the same 400 envelope; the kind of
failure is carried by the message text.
"""


class UploadBrokerError(Exception):
    """Base class for expected broker failures."""


class RequestValidationError(UploadBrokerError):
    """Malformed body, unknown action, or missing/invalid request fields."""


class ConfigurationError(UploadBrokerError):
    """Credentials or identifiers the function needs are not configured."""


class StorageError(UploadBrokerError):
    """Object storage refused or could not satisfy a request."""
