from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from courier_orders.base_store import SERVER_TIMESTAMP, StoreError
from courier_orders.firestore_client import (
    FirestoreClient,
    decode_fields,
    encode_value,
    field_path,
)
from courier_orders.order_service import OrderService

DOCS = "projects/demo/databases/(default)/documents"


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


@pytest.fixture
def client():
    c = FirestoreClient(project_id="demo", access_token="token")
    c.session = MagicMock()
    return c


def test_missing_credentials_raise(monkeypatch):
    monkeypatch.delenv("FIRESTORE_PROJECT_ID", raising=False)
    monkeypatch.delenv("FIRESTORE_ACCESS_TOKEN", raising=False)

    with pytest.raises(ValueError):
        FirestoreClient()


def test_decode_typed_fields():
    fields = {
        "customerName": {"stringValue": "Salma"},
        "total": {"integerValue": "120"},
        "tipAmount": {"doubleValue": 5.5},
        "paid": {"booleanValue": True},
        "driverId": {"nullValue": None},
        "createdAt": {"timestampValue": "2024-05-01T10:30:00.123456789Z"},
        "deliveryLocation": {"geoPointValue": {"latitude": 33.5, "longitude": -7.6}},
        "address": {"mapValue": {"fields": {"address": {"stringValue": "Ciel"}}}},
        "items": {"arrayValue": {"values": [{"mapValue": {"fields": {"price": {"integerValue": "3"}}}}]}},
        "empty": {"arrayValue": {}},
    }

    data = decode_fields(fields)

    assert data["customerName"] == "Salma"
    assert data["total"] == 120
    assert data["tipAmount"] == 5.5
    assert data["paid"] is True
    assert data["driverId"] is None
    assert data["createdAt"] == datetime(2024, 5, 1, 10, 30, 0, 123456, tzinfo=timezone.utc)
    assert data["deliveryLocation"] == {"latitude": 33.5, "longitude": -7.6}
    assert data["address"] == {"address": "Ciel"}
    assert data["items"] == [{"price": 3}]
    assert data["empty"] == []


def test_encode_values():
    assert encode_value(True) == {"booleanValue": True}
    assert encode_value(3) == {"integerValue": "3"}
    assert encode_value(22.5) == {"doubleValue": 22.5}
    assert encode_value(None) == {"nullValue": None}
    assert encode_value(datetime(2024, 5, 1, 10, 0)) == {"timestampValue": "2024-05-01T10:00:00Z"}
    assert encode_value({"a": ["x"]}) == {
        "mapValue": {"fields": {"a": {"arrayValue": {"values": [{"stringValue": "x"}]}}}}
    }
    with pytest.raises(TypeError):
        encode_value(object())


def test_field_path_quotes_special_names():
    assert field_path("updatedAt") == "updatedAt"
    assert field_path("delivery-note") == "`delivery-note`"


def test_get_document(client):
    client.session.get.return_value = _response(payload={
        "name": f"{DOCS}/users/u1/orders/o1",
        "fields": {"status": {"stringValue": "pending"}},
    })

    assert client.get_document("users/u1/orders/o1") == {"status": "pending"}
    client.session.get.assert_called_once_with(
        f"https://firestore.googleapis.com/v1/{DOCS}/users/u1/orders/o1", params=None
    )


def test_get_missing_document_returns_none(client):
    client.session.get.return_value = _response(status_code=404)

    assert client.get_document("users/u1/orders/nope") is None


def test_get_document_server_error(client):
    client.session.get.return_value = _response(status_code=500)

    with pytest.raises(StoreError):
        client.get_document("users/u1/orders/o1")


def test_network_error_becomes_store_error(client):
    client.session.get.side_effect = requests.ConnectionError("offline")

    with pytest.raises(StoreError):
        client.get_document("orders/o1")


def test_list_documents_follows_pages(client):
    client.session.get.side_effect = [
        _response(payload={
            "documents": [{"name": f"{DOCS}/orders/o1", "fields": {}}],
            "nextPageToken": "next",
        }),
        _response(payload={
            "documents": [{"name": f"{DOCS}/orders/o2", "fields": {"userId": {"stringValue": "u2"}}}],
        }),
    ]

    docs = client.list_documents("orders")

    assert [d.path for d in docs] == ["orders/o1", "orders/o2"]
    assert docs[1].id == "o2"
    assert docs[1].data == {"userId": "u2"}
    assert client.session.get.call_args_list[1].kwargs["params"] == {"pageSize": 300, "pageToken": "next"}


def test_query_collection_group(client):
    client.session.post.return_value = _response(payload=[
        {"readTime": "2024-05-01T00:00:00Z"},
        {"document": {"name": f"{DOCS}/users/u1/orders/o1", "fields": {}}},
        {"document": {"name": f"{DOCS}/orders/o3", "fields": {}}},
    ])

    docs = client.query_collection_group("orders")

    assert [d.path for d in docs] == ["users/u1/orders/o1", "orders/o3"]
    url = client.session.post.call_args.args[0]
    body = client.session.post.call_args.kwargs["json"]
    assert url.endswith("/documents:runQuery")
    assert body["structuredQuery"]["from"] == [{"collectionId": "orders", "allDescendants": True}]


def test_update_document_patches_existing_document(client):
    client.session.post.return_value = _response(payload={})

    client.update_document("orders/o1", {
        "status": "delivered",
        "updatedAt": SERVER_TIMESTAMP,
        "amountCollected": 22.5,
    })

    body = client.session.post.call_args.kwargs["json"]
    [write] = body["writes"]
    assert client.session.post.call_args.args[0].endswith("/documents:commit")
    assert write["update"]["name"] == f"{DOCS}/orders/o1"
    assert write["update"]["fields"] == {
        "status": {"stringValue": "delivered"},
        "amountCollected": {"doubleValue": 22.5},
    }
    assert write["updateMask"] == {"fieldPaths": ["status", "amountCollected"]}
    assert write["currentDocument"] == {"exists": True}
    assert write["updateTransforms"] == [
        {"fieldPath": "updatedAt", "setToServerValue": "REQUEST_TIME"}
    ]


def test_update_missing_document_raises_store_error(client):
    client.session.post.return_value = _response(status_code=404)

    with pytest.raises(StoreError):
        client.update_document("orders/o1", {"status": "delivered"})


def test_update_with_unstorable_value_raises_store_error(client):
    with pytest.raises(StoreError):
        client.update_document("orders/o1", {"status": object()})
    client.session.post.assert_not_called()


def _unparseable_response():
    resp = _response()
    resp.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
    return resp


def test_non_json_body_raises_store_error(client):
    client.session.get.return_value = _unparseable_response()

    with pytest.raises(StoreError):
        client.get_document("users/u1/orders/o1")
    with pytest.raises(StoreError):
        client.list_documents("orders")


def test_undecodable_values_raise_store_error(client):
    client.session.get.return_value = _response(payload={
        "fields": {"createdAt": {"timestampValue": "garbage"}},
    })
    client.session.post.return_value = _response(payload=[
        {"document": {"fields": {"total": {"integerValue": "12.5"}}}},
    ])

    with pytest.raises(StoreError):
        client.get_document("users/u1/orders/o1")
    with pytest.raises(StoreError):
        client.query_collection_group("orders")


def test_unreadable_responses_stay_inside_order_service(client):
    client.session.post.return_value = _unparseable_response()
    client.session.get.return_value = _response(payload={
        "fields": {"createdAt": {"timestampValue": "garbage"}},
    })
    service = OrderService(client, owner_collection="users", orders_collection="orders")

    assert service.fetch_all() == []
    assert service.fetch_one("u1", "o1") is None
