"""
Order workflow: cart validation, price snapshotting, order persistence and
stock decrements, plus status changes and role-scoped listing.
"""

import re
import random
import string
import logging
import time
from typing import List, Optional

from pymongo import ReturnDocument

from database import ORDERS, PRODUCTS, USERS, to_object_id, utcnow
from errors import (
    BelowMinimumOrderError,
    EmptyCartError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    MixedWholesalerError,
    NotAuthorizedError,
    OrderNotFoundError,
    ProductNotFoundError,
    ProductUnavailableError,
    ValidationError,
)
from schemas import Order, OrderItem
from security import can_manage, has_role, is_owner
from validation import validate_order_status, validate_payment_method

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = {"name": 1, "email": 1, "phone": 1}
WHOLESALER_FIELDS = {"name": 1, "business_info": 1, "phone": 1}
PRODUCT_FIELDS = {"name": 1, "unit": 1, "images": 1, "category": 1}

# Allowed moves; delivered and cancelled are terminal.
STATUS_TRANSITIONS = {
    "pending": {"processing", "shipped", "delivered", "cancelled"},
    "processing": {"shipped", "delivered", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}


def generate_order_number() -> str:
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"GEB{str(int(time.time() * 1000))[-6:]}{suffix}"


def create_order(database, customer_id, items, shipping_address=None, payment_method=None, notes=None):
    """
    Validate a cart and place it as a single-wholesaler order.

    Lines are checked in input order and the first failure aborts the
    whole request before anything is written. The order is persisted
    first and stock is decremented afterwards, each line with a guarded
    decrement so stock never goes below zero.
    """
    if not items:
        raise EmptyCartError()
    issues = validate_payment_method(payment_method)
    if issues:
        raise ValidationError(issues)

    order_items: List[OrderItem] = []
    wholesaler_id = None
    total_amount = 0.0
    requested = {}

    for item in items:
        product = database.get_document(PRODUCTS, item.product)
        if product is None:
            raise ProductNotFoundError(f"Product with ID {item.product} not found")
        if not product.get("is_active", True):
            raise ProductUnavailableError(f"Product {product['name']} is not available")
        if item.quantity < product.get("minimum_order", 1):
            raise BelowMinimumOrderError(
                f"Minimum order for {product['name']} is {product['minimum_order']} {product['unit']}"
            )
        # Lines repeating a product draw on the same stock.
        requested[product["_id"]] = requested.get(product["_id"], 0) + item.quantity
        if requested[product["_id"]] > product.get("available_quantity", 0):
            raise InsufficientStockError(
                f"Only {product['available_quantity']} {product['unit']} available for {product['name']}"
            )
        if wholesaler_id is not None and wholesaler_id != product["wholesaler"]:
            raise MixedWholesalerError()
        wholesaler_id = product["wholesaler"]

        line_total = round(product["price"] * item.quantity, 2)
        total_amount += line_total
        order_items.append(OrderItem(
            product=product["_id"],
            quantity=item.quantity,
            price=product["price"],
            total=line_total,
        ))

    order_doc = Order(
        order_number=generate_order_number(),
        customer=to_object_id(customer_id),
        wholesaler=wholesaler_id,
        items=order_items,
        total_amount=round(total_amount, 2),
        shipping_address=shipping_address,
        payment_method=payment_method or "cash",
        notes=notes,
    )
    order_id = database.create_document(ORDERS, order_doc)
    logger.info("Order %s created for customer %s (%s items, total %.2f)",
                order_doc.order_number, customer_id, len(order_items), order_doc.total_amount)

    _decrement_stock(database, order_id, order_items)

    return populate_order(database, database.get_document(ORDERS, order_id))


def _decrement_stock(database, order_id, order_items):
    applied = []
    for line in order_items:
        result = database[PRODUCTS].update_one(
            {"_id": line.product, "available_quantity": {"$gte": line.quantity}},
            {"$inc": {"available_quantity": -line.quantity}, "$set": {"updated_at": utcnow()}},
        )
        if result.modified_count == 1:
            applied.append(line)
            continue

        # Stock was taken by a concurrent order after validation.
        for done in applied:
            database[PRODUCTS].update_one({"_id": done.product}, {"$inc": {"available_quantity": done.quantity}})
        database.update_document(ORDERS, order_id, {
            "status": "cancelled",
            "notes": "Cancelled automatically: stock changed while the order was being placed",
        })
        logger.warning("Order %s cancelled, stock for product %s ran out during placement", order_id, line.product)
        raise InsufficientStockError(f"Stock for product {line.product} is no longer sufficient")


def get_order(database, order_id, caller) -> dict:
    order = database.get_document(ORDERS, order_id)
    if order is None:
        raise OrderNotFoundError()
    if not (is_owner(caller, order["customer"]) or can_manage(caller, order["wholesaler"])):
        raise NotAuthorizedError("Not authorized to view this order")
    return populate_order(database, order)


def update_order_status(database, order_id, new_status, caller) -> dict:
    order = database.get_document(ORDERS, order_id)
    if order is None:
        raise OrderNotFoundError()
    if not can_manage(caller, order["wholesaler"]):
        raise NotAuthorizedError("Not authorized to update this order")
    issues = validate_order_status(new_status)
    if issues:
        raise ValidationError(issues)

    current = order.get("status", "pending")
    if new_status != current:
        if new_status not in STATUS_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransitionError(f"Cannot change order status from {current} to {new_status}")
        order = database[ORDERS].find_one_and_update(
            {"_id": order["_id"], "status": current},
            {"$set": {"status": new_status, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if order is None:
            raise InvalidStatusTransitionError("Order status changed concurrently, reload and retry")
        logger.info("Order %s moved from %s to %s by %s", order_id, current, new_status, caller["_id"])
    return populate_order(database, order)


def order_filter(caller, scope: str, status: Optional[str] = None, search: Optional[str] = None) -> dict:
    """Build the store filter for a role-scoped order listing."""
    if scope == "customer":
        filter_dict = {"customer": caller["_id"]}
    elif scope == "wholesaler":
        filter_dict = {"wholesaler": caller["_id"]}
    elif scope == "all" and has_role(caller, "admin"):
        filter_dict = {}
    else:
        raise NotAuthorizedError()
    if status:
        issues = validate_order_status(status)
        if issues:
            raise ValidationError(issues)
        filter_dict["status"] = status
    if search:
        filter_dict["order_number"] = {"$regex": re.escape(search), "$options": "i"}
    return filter_dict


def list_orders(database, filter_dict, page=1, limit=10):
    docs, pagination = database.paginate(ORDERS, filter_dict, page, limit)
    return [populate_order(database, d) for d in docs], pagination


def populate_order(database, order: dict) -> dict:
    """Resolve customer, wholesaler and item products for display."""
    order = dict(order)
    order["customer"] = _summary(database, USERS, order.get("customer"), CUSTOMER_FIELDS)
    order["wholesaler"] = wholesaler_summary(database, order.get("wholesaler"))
    product_ids = [line["product"] for line in order.get("items", [])]
    products = {
        p["_id"]: p for p in database[PRODUCTS].find({"_id": {"$in": product_ids}}, PRODUCT_FIELDS)
    }
    order["items"] = [
        {**line, "product": products.get(line["product"], {"_id": line["product"]})}
        for line in order.get("items", [])
    ]
    return order


def wholesaler_summary(database, wholesaler_id):
    doc = _summary(database, USERS, wholesaler_id, WHOLESALER_FIELDS)
    if isinstance(doc, dict) and "name" in doc:
        info = doc.pop("business_info", None) or {}
        doc["business_name"] = info.get("business_name")
    return doc


def _summary(database, collection, doc_id, fields):
    if doc_id is None:
        return None
    doc = database[collection].find_one({"_id": doc_id}, fields)
    return doc if doc is not None else {"_id": doc_id}
