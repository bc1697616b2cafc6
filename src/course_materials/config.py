import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError

DEFAULT_APPWRITE_ENDPOINT = "https://fra.cloud.appwrite.io/v1"
DEFAULT_BUCKET = "niyukti-private-pdfs"
DEFAULT_EXPIRES_IN = 3600

_TRUTHY = {"1", "true", "yes", "on"}
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "WARN", "INFO", "DEBUG", "NOTSET"}


def _get(environ: Mapping[str, str], name: str) -> Optional[str]:
    # Empty strings count as unset
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    """
    Process configuration, read once from the environment at cold start.

    Validation is split per concern so the broker can report exactly which
    category is missing for the action being served.
    """

    aws_region: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    bucket_name: str = DEFAULT_BUCKET
    url_expires_in: int = DEFAULT_EXPIRES_IN
    appwrite_endpoint: str = DEFAULT_APPWRITE_ENDPOINT
    appwrite_project_id: Optional[str] = None
    appwrite_api_key: Optional[str] = None
    database_id: Optional[str] = None
    materials_collection_id: Optional[str] = None
    verify_uploads: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        expires_raw = _get(env, "UPLOAD_URL_EXPIRES_IN")
        try:
            expires_in = int(expires_raw) if expires_raw else DEFAULT_EXPIRES_IN
        except ValueError:
            raise ConfigurationError(
                f"UPLOAD_URL_EXPIRES_IN must be an integer number of seconds, got {expires_raw!r}"
            )

        log_level = (_get(env, "LOG_LEVEL") or "INFO").upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigurationError(
                f"LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}, got {log_level!r}"
            )

        return cls(
            aws_region=_get(env, "AWS_REGION"),
            aws_access_key_id=_get(env, "AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=_get(env, "AWS_SECRET_ACCESS_KEY"),
            bucket_name=_get(env, "S3_BUCKET_NAME") or DEFAULT_BUCKET,
            url_expires_in=expires_in,
            appwrite_endpoint=_get(env, "APPWRITE_ENDPOINT") or DEFAULT_APPWRITE_ENDPOINT,
            appwrite_project_id=(
                _get(env, "APPWRITE_PROJECT_ID") or _get(env, "APPWRITE_FUNCTION_PROJECT_ID")
            ),
            appwrite_api_key=_get(env, "APPWRITE_API_KEY"),
            database_id=_get(env, "DATABASE_ID"),
            materials_collection_id=_get(env, "MATERIALS_COLLECTION_ID"),
            verify_uploads=(_get(env, "VERIFY_UPLOADS") or "").lower() in _TRUTHY,
            log_level=log_level,
        )

    def check_storage(self):
        if not self.aws_access_key_id or not self.aws_secret_access_key:
            raise ConfigurationError("AWS credentials not configured")
        if not self.aws_region:
            raise ConfigurationError("AWS_REGION not configured")

    def check_database(self):
        if not self.appwrite_project_id or not self.appwrite_api_key:
            raise ConfigurationError("Database configuration not found: Appwrite project or API key missing")
        if not self.database_id or not self.materials_collection_id:
            raise ConfigurationError("Database configuration not found: DATABASE_ID or MATERIALS_COLLECTION_ID missing")

    def validate(self):
        """Fail fast when any category is missing. Called by the Lambda entry at import."""
        self.check_storage()
        self.check_database()
