import logging
from datetime import datetime, timezone

from appwrite.client import Client
from appwrite.id import ID
from appwrite.services.databases import Databases

from .config import Settings
from .errors import RequestValidationError

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


def parse_int(value, field: str, default=None) -> int:
    """
    Parse an integer request field. Accepts ints, integral floats and numeric
    strings ("3", " 3 "); anything else is a validation error naming the field.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise RequestValidationError(f"{field} is required")
        return default
    if isinstance(value, bool):
        raise RequestValidationError(f"{field} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise RequestValidationError(f"{field} must be an integer, got {value!r}")
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise RequestValidationError(f"{field} must be an integer, got {value!r}")


def coerce_bool(value) -> bool:
    # "false"/"0" from form-encoded clients mean False
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return bool(value)


def build_material_record(body: dict, now: datetime = None) -> dict:
    """Map a save-metadata body onto the stored material document."""
    if now is None:
        now = datetime.now(timezone.utc)
    return {
        "courseId": body["courseId"],
        "courseName": body.get("courseName") or "",
        "title": body["title"],
        "description": body.get("description") or "",
        "materialType": body.get("materialType") or "pdf",
        "contentType": body.get("contentType") or "lecture",
        "s3FileKey": body["s3FileKey"],
        "fileName": body.get("fileName") or "",
        "week": parse_int(body.get("week"), "week"),
        "order": parse_int(body.get("order"), "order", default=0),
        "isPublic": coerce_bool(body.get("isPublic")),
        "uploadDate": now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }


def document_to_dict(document) -> dict:
    """
    Flatten an Appwrite document into the server JSON shape: system $-fields and
    the stored attributes side by side. The SDK returns a Document model whose
    attributes sit under `data`; plain dicts pass through unchanged.
    """
    if isinstance(document, dict):
        return document
    payload = document.to_dict()
    data = payload.pop("data", None)
    if isinstance(data, dict):
        payload.update(data)
    return payload


class MaterialRepository:
    """Writes material records to the Appwrite materials collection."""

    def __init__(self, databases, database_id: str, collection_id: str):
        self.databases = databases
        self.database_id = database_id
        self.collection_id = collection_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "MaterialRepository":
        client = (
            Client()
            .set_endpoint(settings.appwrite_endpoint)
            .set_project(settings.appwrite_project_id)
            .set_key(settings.appwrite_api_key)
        )
        return cls(Databases(client), settings.database_id, settings.materials_collection_id)

    def create(self, record: dict) -> dict:
        document = self.databases.create_document(
            database_id=self.database_id,
            collection_id=self.collection_id,
            document_id=ID.unique(),
            data=record,
        )
        stored = document_to_dict(document)
        logger.info("Material saved to database: documentId=%s", stored.get("$id"))
        return stored
