"""Choose where to send a courier for a given order.

Raw GPS from the ordering app is often noisy, so the courier is routed
to the centre of one of the named delivery regions whenever one can be
identified. Strategies are tried in a fixed order and the first match
wins:

1. region declared on the shipping address
2. shipping address coordinates within ~100 m of a region centre
3. region name found in the delivery address text
4. region centre closest to the order coordinates
5. the order coordinates themselves
"""

import logging

from courier_orders.geo import haversine_m
from courier_orders.models import CanonicalOrder, DeliveryRegion, NavigationTarget
from courier_orders.regions import DELIVERY_REGIONS

logger = logging.getLogger(__name__)

# Degrees, applied to latitude and longitude separately.
COORDINATE_TOLERANCE = 0.001

METHOD_SHIPPING_REGION = "shipping_address_region"
METHOD_SHIPPING_COORDINATES = "shipping_coordinates_match"
METHOD_ADDRESS = "address_extraction"
METHOD_CLOSEST = "closest_region"
METHOD_FALLBACK = "fallback_original"

UNKNOWN_REGION = "Unknown"


def _target(
    region: DeliveryRegion,
    method: str,
    distance_m: float | None = None,
) -> NavigationTarget:
    return NavigationTarget(
        latitude=region.latitude,
        longitude=region.longitude,
        region_name=region.name,
        method=method,
        distance_m=distance_m,
    )


def _declared_region(order, regions):
    shipping = order.shipping_address
    if shipping is None or not shipping.region:
        return None
    return regions.get(shipping.region)


def _region_at_shipping_coordinates(order, regions):
    shipping = order.shipping_address
    if shipping is None or shipping.latitude is None or shipping.longitude is None:
        return None
    for region in regions.values():
        if (
            abs(shipping.latitude - region.latitude) < COORDINATE_TOLERANCE
            and abs(shipping.longitude - region.longitude) < COORDINATE_TOLERANCE
        ):
            return region
    return None


def _region_in_address(order, regions):
    address = order.address.lower()
    if not address:
        return None
    for region in regions.values():
        if region.name.lower() in address:
            return region
    return None


def _closest_region(order, regions):
    closest = None
    shortest = float("inf")
    for region in regions.values():
        distance = haversine_m(
            order.coordinates.latitude,
            order.coordinates.longitude,
            region.latitude,
            region.longitude,
        )
        if distance < shortest:
            shortest = distance
            closest = region
    return closest, shortest


def resolve_navigation_target(
    order: CanonicalOrder | None,
    regions: dict[str, DeliveryRegion] | None = None,
) -> NavigationTarget | None:
    """Resolve the navigation target for *order*.

    Args:
        order: The canonical order, or None.
        regions: Region table to match against. Defaults to
            ``DELIVERY_REGIONS``.

    Returns:
        A NavigationTarget, or None when the order carries no location
        information at all. The fixed fallback point assigned by the
        mapper does not count as location information.
    """
    if order is None:
        return None
    if regions is None:
        regions = DELIVERY_REGIONS

    region = _declared_region(order, regions)
    if region is not None:
        logger.debug(f"[NAVIGATION] Order {order.id}: shipping address region {region.name}")
        return _target(region, METHOD_SHIPPING_REGION)

    region = _region_at_shipping_coordinates(order, regions)
    if region is not None:
        logger.debug(f"[NAVIGATION] Order {order.id}: shipping coordinates match {region.name}")
        return _target(region, METHOD_SHIPPING_COORDINATES)

    region = _region_in_address(order, regions)
    if region is not None:
        logger.debug(f"[NAVIGATION] Order {order.id}: region {region.name} found in address")
        return _target(region, METHOD_ADDRESS)

    if not order.has_location:
        logger.warning(f"[NAVIGATION] Order {order.id}: no usable location")
        return None

    region, distance = _closest_region(order, regions)
    if region is not None:
        logger.debug(
            f"[NAVIGATION] Order {order.id}: closest region {region.name} ({round(distance)}m away)"
        )
        return _target(region, METHOD_CLOSEST, distance_m=distance)

    logger.debug(f"[NAVIGATION] Order {order.id}: using original coordinates")
    return NavigationTarget(
        latitude=order.coordinates.latitude,
        longitude=order.coordinates.longitude,
        region_name=UNKNOWN_REGION,
        method=METHOD_FALLBACK,
    )


def navigation_url(target: NavigationTarget, platform: str = "web") -> str:
    """Build the URL that opens *target* in a maps application.

    Args:
        target: The resolved navigation target.
        platform: "android", "ios" or "web".
    """
    query = f"{target.latitude},{target.longitude}"
    if platform == "android":
        return f"geo:0,0?q={query}"
    if platform == "ios":
        return f"maps:0,0?q={query}"
    if platform == "web":
        return f"https://www.google.com/maps/search/?api=1&query={query}"
    raise ValueError(f"Unsupported platform: {platform}")
