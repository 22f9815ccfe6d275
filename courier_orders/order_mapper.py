"""Normalize raw order documents into CanonicalOrder objects.

Orders reach the courier app from two writers (the customer app and the
back office), so the same concept may live under different field names.
Every helper here is a pure function: it never raises for missing or
malformed fields and falls back to a fixed default instead.
"""

import math
from collections.abc import Mapping
from datetime import datetime, timezone

from courier_orders.models import (
    DEFAULT_COORDINATES,
    CanonicalOrder,
    Coordinates,
    OrderStatus,
    ShippingAddress,
    StandardizedItem,
)

_STATUS_LABELS = {
    OrderStatus.PENDING: "En Attente",
    OrderStatus.CONFIRMED: "Confirmée",
    OrderStatus.PROGRESS: "En Cours",
    OrderStatus.COMPLETED: "Terminée",
    OrderStatus.DELIVERED: "Livrée",
    OrderStatus.CANCELLED: "Annulée",
}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value, default: float = 0) -> float:
    """Coerce a loosely typed numeric field, returning *default* on failure."""
    if not value:
        return default
    if _is_number(value):
        return default if math.isnan(value) else value
    if isinstance(value, bool):
        return 1
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
        return default if math.isnan(number) else number
    return default


def _text(value) -> str:
    """Return *value* as display text; containers and empty values give ''."""
    if value is None or value is False or isinstance(value, (Mapping, list, tuple)):
        return ""
    return str(value)


def _first_text(*values) -> str:
    for value in values:
        text = _text(value)
        if text:
            return text
    return ""


def _mapping(value) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _point(candidate) -> Coordinates | None:
    """Return Coordinates when *candidate* holds numeric latitude/longitude."""
    if not isinstance(candidate, Mapping):
        return None
    lat = candidate.get("latitude")
    lon = candidate.get("longitude")
    if _is_number(lat) and _is_number(lon):
        return Coordinates(latitude=lat, longitude=lon)
    return None


def resolve_coordinates(raw: Mapping) -> tuple[Coordinates, bool]:
    """Find the delivery position of a raw order.

    Candidates are tried in order: ``coordinates``, ``deliveryLocation``,
    then a nested ``address`` object. The first one with numeric
    latitude and longitude wins.

    Returns:
        A ``(coordinates, found)`` tuple. When nothing usable is present
        the fixed default point is returned with ``found`` set to False.
    """
    for key in ("coordinates", "deliveryLocation", "address"):
        point = _point(raw.get(key))
        if point is not None:
            return point, True
    return DEFAULT_COORDINATES, False


def _image_uri(image) -> str:
    if isinstance(image, Mapping):
        return _text(image.get("uri"))
    if isinstance(image, str):
        return image
    return ""


def _sequence(item: Mapping, key: str, legacy_key: str) -> list:
    for candidate in (item.get(key), item.get(legacy_key)):
        if isinstance(candidate, (list, tuple)):
            return list(candidate)
    return []


def standardize_items(items) -> list[StandardizedItem]:
    """Standardize raw line items. Non-list input yields an empty list."""
    if not isinstance(items, (list, tuple)):
        return []

    standardized: list[StandardizedItem] = []
    for item in items:
        item = _mapping(item)
        price = _to_number(item.get("price")) or _to_number(item.get("priceAtPurchase"))
        quantity = _to_number(item.get("quantity"), default=1)
        standardized.append(
            StandardizedItem(
                id=_first_text(item.get("id"), item.get("productId")),
                name=_text(item.get("name")),
                price=price,
                quantity=quantity,
                image=_image_uri(item.get("image")),
                variations=_sequence(item, "variations", "selectedVariations"),
                addons=_sequence(item, "addons", "selectedAddons"),
                subtotal=_to_number(item.get("subtotal")) or price * quantity,
            )
        )
    return standardized


def _shipping_address(raw: Mapping) -> ShippingAddress | None:
    shipping = raw.get("shippingAddress")
    if not isinstance(shipping, Mapping):
        return None
    lat = shipping.get("latitude")
    lon = shipping.get("longitude")
    return ShippingAddress(
        region=_text(shipping.get("region")),
        latitude=lat if _is_number(lat) else None,
        longitude=lon if _is_number(lon) else None,
    )


def map_order_fields(raw: Mapping) -> CanonicalOrder:
    """Map a raw order document onto a CanonicalOrder.

    Args:
        raw: Document fields merged with ``id`` and ``userId``.

    Returns:
        The canonical order. Coordinates and status are always set.

    Raises:
        TypeError: If *raw* is not a mapping.
    """
    if not isinstance(raw, Mapping):
        raise TypeError(f"order record must be a mapping, not {type(raw).__name__}")

    address = _mapping(raw.get("address"))
    location = _mapping(raw.get("deliveryLocation"))
    coordinates, has_location = resolve_coordinates(raw)

    return CanonicalOrder(
        id=_text(raw.get("id")),
        user_id=_text(raw.get("userId")),
        driver_id=_text(raw.get("driverId")) or None,
        customer_name=_text(raw.get("customerName")),
        customer_phone=_first_text(raw.get("phoneNumber"), raw.get("customerPhone")),
        # A plain string under "address" is not a display address.
        address=_first_text(
            address.get("address"),
            raw.get("deliveryAddress"),
            location.get("address"),
        ),
        delivery_instructions=_first_text(
            address.get("instructions"),
            raw.get("additionalNote"),
            location.get("instructions"),
            raw.get("notes"),
        ),
        coordinates=coordinates,
        has_location=has_location,
        shipping_address=_shipping_address(raw),
        status=_text(raw.get("status")) or OrderStatus.PENDING,
        payment_status=_text(raw.get("paymentStatus")) or "unpaid",
        payment_method=_text(raw.get("paymentMethod")) or "cash_on_delivery",
        total=_to_number(raw.get("total")) or _to_number(raw.get("grandTotal")),
        subtotal=_to_number(raw.get("subtotal")),
        delivery_fee=_to_number(raw.get("deliveryFee")),
        tip_amount=_to_number(raw.get("tipAmount")),
        items=standardize_items(raw.get("items")),
        notes=_first_text(raw.get("notes"), raw.get("additionalNote")),
        date=raw.get("date") or datetime.now(timezone.utc),
        created_at=raw.get("createdAt"),
        updated_at=raw.get("updatedAt"),
        restaurant_id=_text(raw.get("restaurantId")),
        cuisine_name=_text(raw.get("cuisineName")),
        order_type=_first_text(raw.get("orderType"), raw.get("deliveryOption")) or "delivery",
    )


def status_display(status: str | None) -> str:
    """Return the French label shown on order cards."""
    if not status:
        return "Inconnu"
    return _STATUS_LABELS.get(status, status[:1].upper() + status[1:])
