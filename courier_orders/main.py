#!/usr/bin/env python3
"""CLI entry point for browsing courier orders and routing to customers."""

import argparse
import csv
import logging
import sys

from courier_orders.base_store import DocumentStore
from courier_orders.geo import center_point, distance_km, travel_time_minutes
from courier_orders.models import Coordinates
from courier_orders.navigation import navigation_url, resolve_navigation_target
from courier_orders.order_mapper import status_display
from courier_orders.order_service import (
    OrderService,
    compose_delivery_key,
    count_by_status,
    filter_orders,
)


def _print_orders(orders):
    """Print a summary line for each order to stdout."""
    print(f"\n{'=' * 70}")
    print("  ORDERS")
    counts = ", ".join(f"{status_display(s)}: {n}" for s, n in count_by_status(orders).items())
    print(f"  {len(orders)} order(s) | {counts}")
    located = [o.coordinates for o in orders if o.has_location]
    if located:
        centre = center_point(located)
        print(f"  Centred on {centre.latitude:.4f}, {centre.longitude:.4f}")
    print(f"{'=' * 70}\n")

    for order in orders:
        print(f"  {compose_delivery_key(order)}  [{status_display(order.status)}]")
        print(f"    Customer: {order.customer_name}")
        if order.address:
            print(f"    Address:  {order.address}")
        print(f"    Total:    {order.total:.2f} MAD")
        print()


def _print_order(order, target, platform, courier=None):
    """Print one order with its navigation target."""
    print(f"\n{'=' * 70}")
    print(f"  ORDER {order.id}  [{status_display(order.status)}]")
    print(f"{'=' * 70}\n")
    print(f"  Owner:    {order.user_id}")
    print(f"  Customer: {order.customer_name}")
    if order.customer_phone:
        print(f"  Phone:    {order.customer_phone}")
    print(f"  Address:  {order.address}")
    if order.delivery_instructions:
        print(f"  Notes:    {order.delivery_instructions}")
    print(f"  Payment:  {order.payment_method} ({order.payment_status})")
    print(f"  Total:    {order.total:.2f} MAD")
    for item in order.items:
        print(f"    {item.quantity:g} x {item.name} @ {item.price:.2f} = {item.subtotal:.2f}")
    print()

    if target is None:
        print("  Navigation unavailable: order has no location.")
        return
    print(f"  Navigate: {target.region_name} ({target.latitude}, {target.longitude})")
    print(f"    Method: {target.method}")
    if target.distance_m is not None:
        print(f"    Region centre {round(target.distance_m)} m from order position")
    if courier is not None:
        km = distance_km(courier.latitude, courier.longitude, target.latitude, target.longitude)
        print(f"    {km:.2f} km from courier, about {round(travel_time_minutes(km))} min")
    print(f"    {navigation_url(target, platform)}")
    print()


def _export_csv(orders, path):
    """Export the order list to a CSV file."""
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow([
            "key", "order_id", "user_id", "status", "customer", "phone",
            "address", "total", "latitude", "longitude",
            "region", "navigation_method",
        ])
        for order in orders:
            target = resolve_navigation_target(order)
            writer.writerow([
                compose_delivery_key(order), order.id, order.user_id, order.status,
                order.customer_name, order.customer_phone, order.address, order.total,
                order.coordinates.latitude if order.has_location else "",
                order.coordinates.longitude if order.has_location else "",
                target.region_name if target else "",
                target.method if target else "",
            ])
    print(f"Orders exported to {path}")


def _parse_point(value: str) -> Coordinates:
    """Parse a "LAT,LNG" command-line value."""
    try:
        lat, lng = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LNG, got {value!r}")
    return Coordinates(lat, lng)


def _build_store(args) -> DocumentStore:
    """Instantiate the Firestore client from CLI arguments and environment."""
    from courier_orders.firestore_client import FirestoreClient
    return FirestoreClient(
        project_id=args.project_id,
        access_token=args.access_token,
        database=args.database,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browse courier orders, resolve navigation targets and update statuses.",
    )
    parser.add_argument(
        "--order",
        metavar="KEY",
        help='Show one order, as "userId_orderId" or a bare order id.',
    )
    parser.add_argument(
        "--set-status",
        metavar="STATUS",
        help="Set the status of the order given with --order.",
    )
    parser.add_argument(
        "--search",
        default="",
        help="Filter the order list by customer name, address or id.",
    )
    parser.add_argument(
        "--status",
        help="Filter the order list by exact status.",
    )
    parser.add_argument(
        "--platform",
        default="web",
        choices=["web", "android", "ios"],
        help='Maps URL flavour for navigation links (default: "web").',
    )
    parser.add_argument(
        "--from",
        dest="courier",
        metavar="LAT,LNG",
        type=_parse_point,
        help="Courier position, to show distance and travel time to the order.",
    )
    parser.add_argument(
        "--csv",
        metavar="FILE",
        help="Export the order list to a CSV file.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    store_group = parser.add_argument_group("Firestore options")
    store_group.add_argument(
        "--project-id",
        help="Firebase project ID (overrides FIRESTORE_PROJECT_ID env var).",
    )
    store_group.add_argument(
        "--access-token",
        help="OAuth access token (overrides FIRESTORE_ACCESS_TOKEN env var).",
    )
    store_group.add_argument(
        "--database",
        help='Database ID (overrides FIRESTORE_DATABASE env var, default "(default)").',
    )
    return parser


def run(args, service: OrderService) -> int:
    """Execute the parsed command against *service* and return an exit code."""
    if args.set_status and not args.order:
        print("Error: --set-status requires --order.", file=sys.stderr)
        return 2

    if args.order:
        order = service.load_delivery(args.order)
        if order is None:
            print(f"Order {args.order} not found.", file=sys.stderr)
            return 1

        if args.set_status:
            if not service.update_status(order.user_id, order.id, args.set_status):
                print(f"Error: could not update order {order.id}.", file=sys.stderr)
                return 1
            print(f"Order {order.id} set to {status_display(args.set_status)}.")
            return 0

        target = resolve_navigation_target(order)
        _print_order(order, target, args.platform, courier=args.courier)
        return 0

    print("Fetching orders...")
    orders = filter_orders(service.fetch_all(), query=args.search, status=args.status)
    if not orders:
        print("No orders found.")
        return 0

    _print_orders(orders)
    if args.csv:
        _export_csv(orders, args.csv)
    return 0


def main():
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        store = _build_store(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    sys.exit(run(args, OrderService(store)))


if __name__ == "__main__":
    main()
