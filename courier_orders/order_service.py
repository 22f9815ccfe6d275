"""Order lookup and status updates across both order storage locations.

Orders are filed either under the owning account
(``users/{userId}/orders/{orderId}``) or in the flat top-level
``orders`` collection. This module reads both as one logical store and
writes status changes to both, since callers cannot always tell which
location holds a given order.

Store failures never leave this module: reads degrade to an empty list
or None and writes to False, after logging the error.
"""

import logging
import os
from collections import Counter

from dotenv import load_dotenv

from courier_orders.base_store import SERVER_TIMESTAMP, DocumentStore, StoreError
from courier_orders.models import CanonicalOrder, OrderStatus
from courier_orders.order_mapper import map_order_fields

load_dotenv()

logger = logging.getLogger(__name__)


def compose_delivery_key(order: CanonicalOrder) -> str:
    """Return the ``{userId}_{orderId}`` key screens use to open an order."""
    return f"{order.user_id}_{order.id}"


def parse_delivery_key(key: str) -> tuple[str | None, str]:
    """Split a delivery key into ``(owner_id, order_id)``.

    A key without an underscore is a bare order id and yields
    ``(None, key)``.

    Raises:
        ValueError: If the key is empty or has more than two parts.
    """
    key = (key or "").strip()
    if not key:
        raise ValueError("Empty delivery key")
    if "_" not in key:
        return None, key
    parts = key.split("_")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Malformed delivery key: {key!r}")
    return parts[0], parts[1]


def filter_orders(
    orders: list[CanonicalOrder],
    query: str = "",
    status: str | None = None,
) -> list[CanonicalOrder]:
    """Filter orders by free-text search and exact status.

    The query matches case-insensitively against the customer name, the
    address and the order id.
    """
    result = list(orders)
    if query:
        needle = query.lower()
        result = [
            o for o in result
            if needle in o.customer_name.lower()
            or needle in o.address.lower()
            or needle in o.id.lower()
        ]
    if status:
        result = [o for o in result if o.status == status]
    return result


def count_by_status(orders: list[CanonicalOrder]) -> dict[str, int]:
    return dict(Counter(o.status for o in orders))


class OrderService:
    """Reads and updates courier orders held in a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        owner_collection: str | None = None,
        orders_collection: str | None = None,
    ):
        self.store = store
        self.owner_collection = owner_collection or os.getenv("COURIER_OWNER_COLLECTION", "users")
        self.orders_collection = orders_collection or os.getenv("COURIER_ORDERS_COLLECTION", "orders")

    def _owner_path(self, owner_id: str, order_id: str) -> str:
        return f"{self.owner_collection}/{owner_id}/{self.orders_collection}/{order_id}"

    def _flat_path(self, order_id: str) -> str:
        return f"{self.orders_collection}/{order_id}"

    def fetch_all(self) -> list[CanonicalOrder]:
        """Fetch every order from both locations.

        Orders filed under an owner take precedence: a flat-collection
        document with the same id is dropped. Flat documents take their
        owner from their ``userId`` field, or from their own id when it
        is missing.

        Returns:
            The merged orders, or an empty list if either read fails.
        """
        try:
            grouped = self.store.query_collection_group(self.orders_collection)
            flat = self.store.list_documents(self.orders_collection)
        except StoreError as exc:
            logger.error(f"[ORDERS] Failed to load orders: {exc}")
            return []

        orders: list[CanonicalOrder] = []
        for doc in grouped:
            segments = doc.segments
            # Top-level documents also match the group query; they are
            # handled with the flat listing below.
            if len(segments) < 4:
                continue
            orders.append(map_order_fields({**doc.data, "id": doc.id, "userId": segments[-3]}))

        seen = {order.id for order in orders}
        duplicates = 0
        for doc in flat:
            if doc.id in seen:
                duplicates += 1
                continue
            # Without a stored userId the owner falls back to the order id,
            # which is not necessarily a real account.
            owner = doc.data.get("userId") or doc.id
            orders.append(map_order_fields({**doc.data, "id": doc.id, "userId": owner}))

        logger.info(
            f"[ORDERS] {len(orders)} order(s) loaded "
            f"({len(seen)} owner-filed, {len(orders) - len(seen)} flat, {duplicates} duplicate(s) skipped)"
        )
        return orders

    def find_by_id(self, order_id: str) -> CanonicalOrder | None:
        """Search every order for *order_id* when no owner is known."""
        for order in self.fetch_all():
            if order.id == order_id:
                return order
        logger.info(f"[ORDERS] Order {order_id} not found")
        return None

    def fetch_one(self, owner_id: str | None, order_id: str) -> CanonicalOrder | None:
        """Fetch an order from its owner's subcollection.

        Falls back to a search across all orders when the owner id is
        missing, equals the order id, or the order is not filed under
        that owner.

        Returns:
            The order, or None if it does not exist anywhere.
        """
        if not order_id:
            logger.error("[ORDERS] fetch_one called without an order id")
            return None

        if owner_id and owner_id == order_id:
            logger.warning(f"[ORDERS] Owner id equals order id {order_id}, searching all orders")
            return self.find_by_id(order_id)

        if owner_id:
            try:
                data = self.store.get_document(self._owner_path(owner_id, order_id))
            except StoreError as exc:
                logger.error(f"[ORDERS] Failed to load order {order_id} for {owner_id}: {exc}")
                data = None
            if data is not None:
                return map_order_fields({**data, "id": order_id, "userId": owner_id})
            logger.info(f"[ORDERS] Order {order_id} not filed under {owner_id}, searching all orders")

        return self.find_by_id(order_id)

    def load_delivery(self, key: str) -> CanonicalOrder | None:
        """Load the order behind a ``{userId}_{orderId}`` or bare-id key."""
        try:
            owner_id, order_id = parse_delivery_key(key)
        except ValueError as exc:
            logger.error(f"[ORDERS] {exc}")
            return None
        if owner_id is None:
            return self.find_by_id(order_id)
        return self.fetch_one(owner_id, order_id)

    def update_status(
        self,
        owner_id: str | None,
        order_id: str,
        new_status: str,
        extra: dict | None = None,
    ) -> bool:
        """Set an order's status in both storage locations.

        The two writes are independent; there is no transaction across
        them. ``updatedAt`` is stamped by the store and *extra* is merged
        into the same patch.

        Returns:
            True if at least one of the writes succeeded.
        """
        if not order_id or not new_status:
            logger.error("[ORDERS] update_status needs an order id and a status")
            return False

        fields = {"status": new_status, "updatedAt": SERVER_TIMESTAMP, **(extra or {})}
        updated = False

        if owner_id and owner_id != order_id:
            try:
                self.store.update_document(self._owner_path(owner_id, order_id), fields)
                updated = True
            except StoreError as exc:
                logger.error(f"[ORDERS] Owner copy of {order_id} not updated: {exc}")

        try:
            self.store.update_document(self._flat_path(order_id), fields)
            updated = True
        except StoreError as exc:
            logger.error(f"[ORDERS] Flat copy of {order_id} not updated: {exc}")

        if updated:
            logger.info(f"[ORDERS] Order {order_id} set to {new_status}")
        else:
            logger.error(f"[ORDERS] Order {order_id} could not be set to {new_status}")
        return updated

    def accept_order(self, owner_id: str | None, order_id: str) -> bool:
        return self.update_status(
            owner_id, order_id, OrderStatus.CONFIRMED, {"acceptedAt": SERVER_TIMESTAMP}
        )

    def start_delivery(self, owner_id: str | None, order_id: str) -> bool:
        return self.update_status(
            owner_id, order_id, OrderStatus.IN_PROGRESS, {"startedAt": SERVER_TIMESTAMP}
        )

    def mark_delivered(
        self,
        owner_id: str | None,
        order_id: str,
        delivery_data: dict | None = None,
    ) -> bool:
        """Mark an order delivered, storing the courier's confirmation data."""
        extra = {"deliveredAt": SERVER_TIMESTAMP, **(delivery_data or {})}
        return self.update_status(owner_id, order_id, OrderStatus.DELIVERED, extra)
