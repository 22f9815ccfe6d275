"""Cloud Firestore REST API client for reading and patching order documents."""

import base64
import logging
import os
import re
from datetime import datetime, timezone

import requests
from dateutil.parser import isoparse
from dotenv import load_dotenv

from courier_orders.base_store import SERVER_TIMESTAMP, Document, DocumentStore, StoreError

load_dotenv()

logger = logging.getLogger(__name__)

BASE_URL = "https://firestore.googleapis.com/v1"

# Firestore caps list pages at 300 documents.
_PAGE_SIZE = 300

_SIMPLE_FIELD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def decode_value(value: dict):
    """Convert a typed Firestore REST value into a plain Python value."""
    if "stringValue" in value:
        return value["stringValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "booleanValue" in value:
        return value["booleanValue"]
    if "nullValue" in value:
        return None
    if "timestampValue" in value:
        return isoparse(value["timestampValue"])
    if "geoPointValue" in value:
        point = value["geoPointValue"]
        return {
            "latitude": point.get("latitude", 0.0),
            "longitude": point.get("longitude", 0.0),
        }
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    return None


def decode_fields(fields: dict) -> dict:
    return {name: decode_value(value) for name, value in fields.items()}


def encode_value(value) -> dict:
    """Convert a plain Python value into a typed Firestore REST value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        stamp = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": stamp}
    if isinstance(value, bytes):
        return {"bytesValue": base64.b64encode(value).decode("ascii")}
    if isinstance(value, dict):
        return {"mapValue": {"fields": {k: encode_value(v) for k, v in value.items()}}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def field_path(name: str) -> str:
    """Quote a field name for use in an update mask or transform."""
    if _SIMPLE_FIELD.fullmatch(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


class FirestoreClient(DocumentStore):
    """Client for the Cloud Firestore v1 REST API."""

    def __init__(
        self,
        project_id: str | None = None,
        access_token: str | None = None,
        database: str | None = None,
    ):
        self.project_id = project_id or os.getenv("FIRESTORE_PROJECT_ID", "")
        self.access_token = access_token or os.getenv("FIRESTORE_ACCESS_TOKEN", "")
        self.database = database or os.getenv("FIRESTORE_DATABASE", "(default)")
        if not self.project_id or not self.access_token:
            raise ValueError(
                "FIRESTORE_PROJECT_ID and FIRESTORE_ACCESS_TOKEN must be set "
                "either as arguments or in a .env file."
            )
        self.database_name = f"projects/{self.project_id}/databases/{self.database}"
        self.base_url = f"{BASE_URL}/{self.database_name}/documents"
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
            }
        )

    def _document_name(self, path: str) -> str:
        return f"{self.database_name}/documents/{path.strip('/')}"

    def _relative_path(self, name: str) -> str:
        prefix = f"{self.database_name}/documents/"
        return name[len(prefix):] if name.startswith(prefix) else name

    def _to_document(self, raw: dict) -> Document:
        return Document(
            path=self._relative_path(raw["name"]),
            data=decode_fields(raw.get("fields", {})),
        )

    def _get(self, path: str, params: dict | None = None) -> requests.Response:
        url = f"{self.base_url}/{path.strip('/')}"
        try:
            return self.session.get(url, params=params)
        except requests.RequestException as exc:
            raise StoreError(f"GET {path} failed: {exc}") from exc

    def _post(self, suffix: str, body: dict) -> requests.Response:
        url = f"{self.base_url}{suffix}"
        try:
            resp = self.session.post(url, json=body)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise StoreError(f"POST {suffix} failed: {exc}") from exc
        return resp

    def _decode(self, resp: requests.Response, action: str, decoder):
        """Parse the JSON body of *resp* and pass it to *decoder*.

        Malformed bodies and undecodable values raise StoreError.
        """
        try:
            return decoder(resp.json())
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise StoreError(f"{action}: unreadable response: {exc}") from exc

    def get_document(self, path: str) -> dict | None:
        resp = self._get(path)
        if resp.status_code == 404:
            return None
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise StoreError(f"Reading {path} failed: {exc}") from exc
        return self._decode(
            resp, f"Reading {path}", lambda data: decode_fields(data.get("fields", {}))
        )

    def list_documents(self, collection: str) -> list[Document]:
        documents: list[Document] = []
        params: dict = {"pageSize": _PAGE_SIZE}

        def decode_page(data):
            page = [self._to_document(d) for d in data.get("documents", [])]
            return page, data.get("nextPageToken")

        while True:
            resp = self._get(collection, params)
            try:
                resp.raise_for_status()
            except requests.HTTPError as exc:
                raise StoreError(f"Listing {collection} failed: {exc}") from exc
            page, page_token = self._decode(resp, f"Listing {collection}", decode_page)
            documents.extend(page)

            if not page_token:
                break
            params = {"pageSize": _PAGE_SIZE, "pageToken": page_token}

        logger.debug(f"[FIRESTORE] Listed {len(documents)} document(s) in {collection}")
        return documents

    def query_collection_group(self, collection_id: str) -> list[Document]:
        body = {
            "structuredQuery": {
                "from": [{"collectionId": collection_id, "allDescendants": True}],
            }
        }
        resp = self._post(":runQuery", body)
        # runQuery streams one entry per result; entries without a
        # "document" only carry progress information.
        documents = self._decode(
            resp,
            f"Querying {collection_id}",
            lambda entries: [
                self._to_document(entry["document"])
                for entry in entries
                if "document" in entry
            ],
        )
        logger.debug(
            f"[FIRESTORE] Collection group {collection_id} returned {len(documents)} document(s)"
        )
        return documents

    def update_document(self, path: str, fields: dict) -> None:
        values = {k: v for k, v in fields.items() if v is not SERVER_TIMESTAMP}
        stamped = [k for k, v in fields.items() if v is SERVER_TIMESTAMP]

        try:
            encoded = {k: encode_value(v) for k, v in values.items()}
        except TypeError as exc:
            raise StoreError(f"Cannot update {path}: {exc}") from exc

        write: dict = {
            "update": {
                "name": self._document_name(path),
                "fields": encoded,
            },
            "updateMask": {"fieldPaths": [field_path(k) for k in values]},
            "currentDocument": {"exists": True},
        }
        if stamped:
            write["updateTransforms"] = [
                {"fieldPath": field_path(k), "setToServerValue": "REQUEST_TIME"}
                for k in stamped
            ]

        self._post(":commit", {"writes": [write]})
        logger.debug(f"[FIRESTORE] Updated {path} ({', '.join(fields)})")
