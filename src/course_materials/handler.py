import base64
import binascii
import json
import logging
from typing import Optional

from .config import Settings
from .errors import RequestValidationError, StorageError, UploadBrokerError
from .file_keys import build_file_key
from .materials import MaterialRepository, build_material_record
from .storage import MaterialStorage

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS, GET",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Api-Key",
    "Access-Control-Max-Age": "86400",
}

GENERATE_URL = "generate-url"
SAVE_METADATA = "save-metadata"
UPLOAD_MATERIAL = "upload-material"
VALID_ACTIONS = (GENERATE_URL, SAVE_METADATA, UPLOAD_MATERIAL)


def _response(status_code: int, payload: dict) -> dict:
    return {
        "statusCode": status_code,
        "headers": dict(CORS_HEADERS),
        "body": json.dumps(payload, default=str),
    }


def _extract_method(event: dict) -> str:
    # HTTP API (v2) puts the method under requestContext.http, REST API (v1) at the top.
    # A direct invoke carries neither and is served as POST.
    http = (event.get("requestContext") or {}).get("http") or {}
    method = http.get("method") or event.get("httpMethod")
    return method.upper() if method else "POST"


def _parse_body(event: dict) -> dict:
    body = event.get("body")
    if body is None and "action" in event:
        # Direct invoke: fields at the top level of the event
        return event
    if body is None or body == "":
        return {}
    if isinstance(body, dict):
        return body

    if event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise RequestValidationError("Invalid JSON in request body")

    try:
        parsed = json.loads(body)
    except (TypeError, json.JSONDecodeError):
        raise RequestValidationError("Invalid JSON in request body")

    if not isinstance(parsed, dict):
        raise RequestValidationError("Request body must be a JSON object")
    return parsed


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(body: dict, action: str, fields) -> None:
    missing = [field for field in fields if _is_missing(body.get(field))]
    if missing:
        raise RequestValidationError(
            f"Missing required fields for {action} action: {', '.join(missing)}"
        )


def _valid_actions_hint() -> str:
    return f"Valid actions are: {', '.join(VALID_ACTIONS)}"


class UploadBroker:
    """
    Routes one API Gateway event to an upload action.

    Storage and database clients are created on first use, after the settings
    for that concern have been checked, and then reused for the life of the
    process.
    """

    def __init__(
        self,
        settings: Settings,
        storage: Optional[MaterialStorage] = None,
        repository: Optional[MaterialRepository] = None,
    ):
        self.settings = settings
        self._storage = storage
        self._repository = repository
        self._actions = {
            GENERATE_URL: self.generate_url,
            SAVE_METADATA: self.save_metadata,
            UPLOAD_MATERIAL: self.upload_material,
        }

    @property
    def storage(self) -> MaterialStorage:
        if self._storage is None:
            self.settings.check_storage()
            self._storage = MaterialStorage.from_settings(self.settings)
        return self._storage

    @property
    def repository(self) -> MaterialRepository:
        if self._repository is None:
            self.settings.check_database()
            self._repository = MaterialRepository.from_settings(self.settings)
        return self._repository

    def handle(self, event: dict) -> dict:
        method = _extract_method(event)

        if method == "OPTIONS":
            return _response(200, {"success": True})

        if method != "POST":
            return _response(405, {"success": False, "message": "Method not allowed. Use POST."})

        try:
            body = _parse_body(event)
            action = body.get("action")

            logger.info(
                "Request received: action=%s courseId=%s title=%s fileName=%s",
                action, body.get("courseId"), body.get("title"), body.get("fileName"),
            )

            if _is_missing(action):
                raise RequestValidationError(f"Action is required. {_valid_actions_hint()}")

            action_handler = self._actions.get(action)
            if action_handler is None:
                raise RequestValidationError(f"Unknown action: {action}. {_valid_actions_hint()}")

            return _response(200, action_handler(body))

        except UploadBrokerError as e:
            logger.error("Request failed: %s", e)
            return self._error_response(e)
        except Exception as e:
            logger.error("Unexpected error: %s", e, exc_info=True)
            return self._error_response(e)

    @staticmethod
    def _error_response(exc: Exception) -> dict:
        return _response(400, {
            "success": False,
            "message": str(exc),
            "error": f"{type(exc).__name__}: {exc}",
        })

    def _issue_upload_url(self, body: dict) -> dict:
        storage = self.storage
        file_key = build_file_key(body["courseId"], body["fileName"])
        upload_url = storage.presign_upload(file_key, body["fileType"])
        logger.info("File key: %s", file_key)
        return {
            "success": True,
            "uploadUrl": upload_url,
            "fileKey": file_key,
            "expiresIn": storage.expires_in,
            "bucket": storage.bucket,
            "region": storage.region,
        }

    def generate_url(self, body: dict) -> dict:
        _require(body, GENERATE_URL, ("fileName", "fileType", "courseId"))
        return self._issue_upload_url(body)

    def upload_material(self, body: dict) -> dict:
        """Same as generate-url; metadata must still be saved with a second call."""
        _require(body, UPLOAD_MATERIAL, ("courseId", "title", "fileName", "fileType", "week"))
        result = self._issue_upload_url(body)
        result["message"] = "Upload file to the URL, then call save-metadata action with the fileKey"
        result["nextStep"] = SAVE_METADATA
        return result

    def save_metadata(self, body: dict) -> dict:
        required = ("courseId", "title", "week", "s3FileKey")
        missing = [field for field in required if _is_missing(body.get(field))]
        if missing == ["s3FileKey"]:
            raise RequestValidationError(
                "s3FileKey is required for save-metadata action; "
                "upload the file with the URL from generate-url first"
            )
        _require(body, SAVE_METADATA, required)

        repository = self.repository
        record = build_material_record(body)

        if self.settings.verify_uploads and not self.storage.object_exists(record["s3FileKey"]):
            raise StorageError(f"Uploaded file not found in storage: {record['s3FileKey']}")

        document = repository.create(record)
        return {
            "success": True,
            "document": document,
            "message": "Material metadata saved successfully",
        }

