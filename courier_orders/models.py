"""Shared data models for courier order handling and navigation."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class OrderStatus:
    """Status values written by the ordering and courier apps."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROGRESS = "progress"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def as_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


# Beni Mellal city centre, used when an order carries no usable position.
DEFAULT_COORDINATES = Coordinates(latitude=32.3373, longitude=-6.3498)


@dataclass
class ShippingAddress:
    """The optional ``shippingAddress`` object of an order."""

    region: str = ""
    latitude: float | None = None
    longitude: float | None = None

    def as_dict(self) -> dict:
        data: dict = {}
        if self.region:
            data["region"] = self.region
        if self.latitude is not None:
            data["latitude"] = self.latitude
        if self.longitude is not None:
            data["longitude"] = self.longitude
        return data


@dataclass
class StandardizedItem:
    """A single order line item with coerced numeric fields."""

    id: str = ""
    name: str = ""
    price: float = 0
    quantity: float = 1
    image: str = ""
    variations: list = field(default_factory=list)
    addons: list = field(default_factory=list)
    subtotal: float = 0

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "image": self.image,
            "variations": list(self.variations),
            "addons": list(self.addons),
            "subtotal": self.subtotal,
        }


@dataclass
class CanonicalOrder:
    """An order normalized from either storage location."""

    id: str
    user_id: str
    coordinates: Coordinates = DEFAULT_COORDINATES
    has_location: bool = False
    status: str = OrderStatus.PENDING
    driver_id: str | None = None
    customer_name: str = ""
    customer_phone: str = ""
    address: str = ""
    delivery_instructions: str = ""
    shipping_address: ShippingAddress | None = None
    payment_status: str = "unpaid"
    payment_method: str = "cash_on_delivery"
    total: float = 0
    subtotal: float = 0
    delivery_fee: float = 0
    tip_amount: float = 0
    items: list[StandardizedItem] = field(default_factory=list)
    notes: str = ""
    date: Any = field(default_factory=lambda: datetime.now(timezone.utc))
    created_at: Any = None
    updated_at: Any = None
    restaurant_id: str = ""
    cuisine_name: str = ""
    order_type: str = "delivery"

    def to_record(self) -> dict:
        """Render the order back into the raw field names of the store.

        Feeding the result to ``map_order_fields`` yields an equal order.
        """
        record: dict = {
            "id": self.id,
            "userId": self.user_id,
            "driverId": self.driver_id,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "address": {
                "address": self.address,
                "instructions": self.delivery_instructions,
            },
            "status": self.status,
            "paymentStatus": self.payment_status,
            "paymentMethod": self.payment_method,
            "total": self.total,
            "subtotal": self.subtotal,
            "deliveryFee": self.delivery_fee,
            "tipAmount": self.tip_amount,
            "items": [item.as_dict() for item in self.items],
            "notes": self.notes,
            "date": self.date,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "restaurantId": self.restaurant_id,
            "cuisineName": self.cuisine_name,
            "orderType": self.order_type,
        }
        # The fallback point is not written back, so has_location survives.
        if self.has_location:
            record["coordinates"] = self.coordinates.as_dict()
        if self.shipping_address is not None:
            record["shippingAddress"] = self.shipping_address.as_dict()
        return record


@dataclass(frozen=True)
class DeliveryRegion:
    """A named delivery zone with a reference centre."""

    name: str
    latitude: float
    longitude: float
    radius_m: float


@dataclass
class NavigationTarget:
    """The point handed to the external maps application."""

    latitude: float
    longitude: float
    region_name: str
    method: str
    distance_m: float | None = None
