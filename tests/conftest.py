"""Pytest configuration and shared fakes for the upload broker tests."""

import base64
import json
import sys
from pathlib import Path

import boto3
import pytest
from appwrite.client import Client
from appwrite.models import Document
from appwrite.services.databases import Databases

# Make src/ importable when the package is not installed
SRC_DIR = Path(__file__).parent.parent / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from course_materials.config import Settings  # noqa: E402
from course_materials.handler import UploadBroker  # noqa: E402
from course_materials.materials import MaterialRepository  # noqa: E402
from course_materials.storage import MaterialStorage  # noqa: E402


def server_document(document_id, database_id, collection_id, data):
    """JSON body Appwrite returns for a created document."""
    return {
        "$id": document_id,
        "$sequence": "1",
        "$databaseId": database_id,
        "$collectionId": collection_id,
        "$createdAt": "2025-03-01T12:30:00.000+00:00",
        "$updatedAt": "2025-03-01T12:30:00.000+00:00",
        "$permissions": [],
        **data,
    }


class FakeDatabases:
    """Stands in for appwrite.services.databases.Databases."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def create_document(self, database_id, collection_id, document_id, data, permissions=None):
        self.calls.append({
            "database_id": database_id,
            "collection_id": collection_id,
            "document_id": document_id,
            "data": data,
        })
        if self.error:
            raise self.error
        return Document.with_data(server_document(document_id, database_id, collection_id, data))


@pytest.fixture
def settings():
    return Settings(
        aws_region="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        appwrite_project_id="proj",
        appwrite_api_key="key",
        database_id="db",
        materials_collection_id="materials",
    )


@pytest.fixture
def s3_client():
    # Presigning is computed locally, no request leaves the process
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def databases():
    return FakeDatabases()


@pytest.fixture
def sdk_databases(monkeypatch):
    """Real SDK Databases whose HTTP call answers like the Appwrite server."""
    client = Client().set_endpoint("https://appwrite.example/v1").set_project("proj").set_key("key")
    requests_made = []

    def call(method, path="", headers=None, params=None, response_type="json"):
        requests_made.append({"method": method, "path": path, "params": params})
        return server_document(params["documentId"], "db", "materials", params["data"])

    monkeypatch.setattr(client, "call", call)
    databases = Databases(client)
    databases.requests_made = requests_made
    return databases


@pytest.fixture
def broker(settings, s3_client, databases):
    storage = MaterialStorage(s3_client, settings.bucket_name, settings.aws_region, settings.url_expires_in)
    repository = MaterialRepository(databases, settings.database_id, settings.materials_collection_id)
    return UploadBroker(settings, storage=storage, repository=repository)


def make_event(body=None, method="POST", version=2, encode=False):
    if isinstance(body, dict):
        body = json.dumps(body)
    if encode and body is not None:
        body = base64.b64encode(body.encode("utf-8")).decode("ascii")

    event = {"body": body, "isBase64Encoded": encode}
    if version == 2:
        event["requestContext"] = {"http": {"method": method}}
    else:
        event["httpMethod"] = method
    return event


def parse(response):
    return response["statusCode"], json.loads(response["body"])
