"""Upload broker for course PDF materials: S3 presigned uploads plus Appwrite metadata."""

from .config import Settings
from .errors import (
    ConfigurationError,
    RequestValidationError,
    StorageError,
    UploadBrokerError,
)
from .handler import UploadBroker

__all__ = [
    "Settings",
    "UploadBroker",
    "UploadBrokerError",
    "RequestValidationError",
    "ConfigurationError",
    "StorageError",
]
