"""Named delivery regions served by the courier fleet (Casablanca area)."""

from courier_orders.models import DeliveryRegion

# Order matters: address matching returns the first region found.
DELIVERY_REGIONS: dict[str, DeliveryRegion] = {
    region.name: region
    for region in (
        DeliveryRegion("Hay Oulfa", 33.5423, -7.6532, 2000),
        DeliveryRegion("Hay Hassani", 33.5156, -7.6789, 2000),
        DeliveryRegion("Lissasfa", 33.5234, -7.6123, 2000),
        DeliveryRegion("Almaz", 33.5378, -7.6234, 2000),
        DeliveryRegion("Hay Laymoun", 33.5512, -7.6445, 2000),
        DeliveryRegion("Ciel", 33.5289, -7.6456, 2000),
        DeliveryRegion("Nassim", 33.5334, -7.6298, 2000),
        DeliveryRegion("Sidi Maarouf", 33.5167, -7.6234, 2000),
        DeliveryRegion("CFC", 33.5445, -7.6567, 2000),
    )
}
