"""
Client side of the two-phase upload: ask the broker for a presigned URL,
PUT the file straight to S3, then confirm the metadata with the broker.
"""
import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)


class UploadClientError(Exception):
    pass


@dataclass(frozen=True)
class UploadProgress:
    status: str
    percent: int


@dataclass(frozen=True)
class UploadTicket:
    upload_url: str
    file_key: str
    expires_in: Optional[int] = None
    next_step: Optional[str] = None


def _as_dict(value) -> Optional[dict]:
    if isinstance(value, dict):
        return value
    if isinstance(value, (str, bytes)) and value:
        try:
            parsed = json.loads(value)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


# The broker's reply may arrive wrapped by the invoking platform. Each strategy
# returns the inner payload or None when its shape does not apply.
def _from_response_body(payload: dict) -> Optional[dict]:
    return _as_dict(payload.get("responseBody"))


def _from_response(payload: dict) -> Optional[dict]:
    return _as_dict(payload.get("response"))


def _from_raw(payload: dict) -> Optional[dict]:
    return payload


ENVELOPE_STRATEGIES = (_from_response_body, _from_response, _from_raw)


def unwrap_envelope(payload) -> dict:
    outer = _as_dict(payload)
    if outer is None:
        raise UploadClientError(f"Unexpected response from upload service: {payload!r}")
    for strategy in ENVELOPE_STRATEGIES:
        inner = strategy(outer)
        if inner is not None:
            return inner
    # _from_raw always matches a dict
    return outer


class UploadClient:
    def __init__(
        self,
        function_url: str,
        session: Optional[requests.Session] = None,
        headers: Optional[dict] = None,
        on_progress: Optional[Callable[[UploadProgress], None]] = None,
    ):
        self.function_url = function_url
        self.session = session or requests.Session()
        self.headers = dict(headers or {})
        self.on_progress = on_progress

    def _report(self, status: str, percent: int):
        logger.info("%s (%d%%)", status, percent)
        if self.on_progress:
            self.on_progress(UploadProgress(status, percent))

    def _call(self, payload: dict) -> dict:
        action = payload.get("action")
        try:
            response = self.session.post(self.function_url, json=payload, headers=self.headers)
        except requests.RequestException as e:
            logger.error("Upload service request failed: url=%s action=%s error=%s", self.function_url, action, e)
            raise UploadClientError(f"Could not reach upload service: {e}") from e

        try:
            raw = response.json()
        except ValueError:
            logger.error(
                "Upload service returned non-JSON response: status=%s body=%s",
                response.status_code, response.text[:500],
            )
            raise UploadClientError(
                f"Upload service returned a non-JSON response (status {response.status_code})"
            )

        try:
            data = unwrap_envelope(raw)
        except UploadClientError:
            logger.error(
                "Could not unwrap upload service response: action=%s status=%s type=%s",
                action, response.status_code, type(raw).__name__,
            )
            raise

        if data.get("success") is False or not response.ok:
            message = data.get("message") or f"Upload service failed with status {response.status_code}"
            logger.error("Upload service error: action=%s status=%s message=%s",
                         action, response.status_code, message)
            raise UploadClientError(message)
        return data

    def request_upload_url(self, file_name: str, file_type: str, course_id: str, action: str = "generate-url", **fields) -> UploadTicket:
        payload = {"action": action, "fileName": file_name, "fileType": file_type, "courseId": course_id}
        payload.update(fields)
        data = self._call(payload)

        upload_url = data.get("uploadUrl")
        file_key = data.get("fileKey")
        if not upload_url or not file_key:
            keys = sorted(data.keys())
            logger.error("Invalid upload URL response, available keys: %s", keys)
            raise UploadClientError(
                f"Invalid response from upload service: missing uploadUrl or fileKey. Available keys: {', '.join(keys)}"
            )
        return UploadTicket(upload_url, file_key, data.get("expiresIn"), data.get("nextStep"))

    def put_file(self, upload_url: str, content: bytes, content_type: str):
        try:
            response = self.session.put(upload_url, data=content, headers={"Content-Type": content_type})
        except requests.RequestException as e:
            logger.error("Storage upload request failed: url=%s error=%s", upload_url.split("?")[0], e)
            raise UploadClientError(f"Storage upload failed: {e}") from e
        if not response.ok:
            logger.error(
                "Storage upload failed: status=%s reason=%s body=%s",
                response.status_code, response.reason, response.text[:500],
            )
            raise UploadClientError(
                f"Storage upload failed with status {response.status_code}: {response.reason}"
            )

    def upload(self, content: bytes, file_name: str, course_id: str, content_type: str = None) -> str:
        """Get a URL and PUT the bytes to storage. Returns the file key to confirm later."""
        content_type = content_type or mimetypes.guess_type(file_name)[0] or "application/pdf"

        self._report("Getting upload URL...", 10)
        ticket = self.request_upload_url(file_name, content_type, course_id)
        self._report("Upload URL received", 20)

        self._report("Uploading file to storage...", 40)
        self.put_file(ticket.upload_url, content, content_type)
        self._report("Upload complete", 70)

        return ticket.file_key

    def save_metadata(self, course_id: str, title: str, week, s3_file_key: str, **fields) -> dict:
        payload = {
            "action": "save-metadata",
            "courseId": course_id,
            "title": title,
            "week": week,
            "s3FileKey": s3_file_key,
        }
        payload.update(fields)
        return self._call(payload)["document"]

    def upload_material(self, path: str, course_id: str, title: str, week, content_type: str = None, **fields) -> dict:
        """Full flow for a file on disk: URL, direct upload, then metadata."""
        file_name = os.path.basename(path)
        with open(path, "rb") as f:
            content = f.read()

        file_key = self.upload(content, file_name, course_id, content_type)

        self._report("Saving material details...", 85)
        document = self.save_metadata(course_id, title, week, file_key, fileName=file_name, **fields)
        self._report("Material uploaded", 100)
        return document
