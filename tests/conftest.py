import pytest

from courier_orders.base_store import Document, DocumentStore, StoreError
from courier_orders.order_service import OrderService


class FakeStore(DocumentStore):
    """In-memory document store recording every call."""

    def __init__(self, documents=None):
        self.documents = dict(documents or {})
        self.fail_reads = False
        self.fail_writes = set()
        self.calls = []

    def get_document(self, path):
        self.calls.append(("get", path))
        if self.fail_reads:
            raise StoreError("read failed")
        data = self.documents.get(path)
        return dict(data) if data is not None else None

    def list_documents(self, collection):
        self.calls.append(("list", collection))
        if self.fail_reads:
            raise StoreError("read failed")
        return [
            Document(path=path, data=dict(data))
            for path, data in self.documents.items()
            if path.count("/") == 1 and path.startswith(f"{collection}/")
        ]

    def query_collection_group(self, collection_id):
        self.calls.append(("group", collection_id))
        if self.fail_reads:
            raise StoreError("read failed")
        return [
            Document(path=path, data=dict(data))
            for path, data in self.documents.items()
            if path.split("/")[-2] == collection_id
        ]

    def update_document(self, path, fields):
        self.calls.append(("update", path, dict(fields)))
        if path in self.fail_writes or path not in self.documents:
            raise StoreError(f"write to {path} failed")
        self.documents[path].update(fields)


@pytest.fixture
def store():
    return FakeStore({
        "users/u1/orders/o1": {
            "customerName": "Salma",
            "status": "pending",
            "coordinates": {"latitude": 33.5423, "longitude": -7.6532},
        },
        "users/u2/orders/o2": {
            "customerName": "Youssef",
            "deliveryAddress": "12 Rue Nassim",
            "status": "confirmed",
        },
        "orders/o3": {
            "customerName": "Karim",
            "userId": "u3",
            "grandTotal": 80,
        },
        "orders/o4": {
            "customerName": "Nadia",
        },
    })


@pytest.fixture
def service(store):
    return OrderService(store, owner_collection="users", orders_collection="orders")


@pytest.fixture
def make_service():
    def _make(documents):
        return OrderService(FakeStore(documents), owner_collection="users", orders_collection="orders")
    return _make
