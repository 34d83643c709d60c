"""
Read-side aggregates for the admin dashboard. Computed fresh per request.
"""

from database import NEWEST_FIRST, ORDERS, PRODUCTS, USERS
from ordering import CUSTOMER_FIELDS, wholesaler_summary
from schemas import ORDER_STATUSES, ROLES


def user_counts(database) -> dict:
    counts = {role: 0 for role in ROLES}
    for row in database[USERS].aggregate([{"$group": {"_id": "$role", "count": {"$sum": 1}}}]):
        counts[row["_id"]] = row["count"]
    counts["total"] = sum(counts.values())
    return counts


def order_counts(database) -> dict:
    by_status = {status: {"count": 0, "amount": 0.0} for status in ORDER_STATUSES}
    pipeline = [{"$group": {"_id": "$status", "count": {"$sum": 1}, "amount": {"$sum": "$total_amount"}}}]
    for row in database[ORDERS].aggregate(pipeline):
        by_status[row["_id"]] = {"count": row["count"], "amount": round(row["amount"], 2)}
    return by_status


def total_revenue(database) -> float:
    """Sum of delivered order totals."""
    rows = list(database[ORDERS].aggregate([
        {"$match": {"status": "delivered"}},
        {"$group": {"_id": None, "total": {"$sum": "$total_amount"}}},
    ]))
    return round(rows[0]["total"], 2) if rows else 0


def top_products(database, limit=5):
    rows = list(database[ORDERS].aggregate([
        {"$unwind": "$items"},
        {"$group": {"_id": "$items.product", "order_count": {"$sum": 1}}},
        {"$sort": {"order_count": -1, "_id": 1}},
        {"$limit": limit},
    ]))
    products = {
        p["_id"]: p
        for p in database[PRODUCTS].find({"_id": {"$in": [r["_id"] for r in rows]}}, {"name": 1, "category": 1})
    }
    result = []
    for row in rows:
        product = products.get(row["_id"])
        if product is None:
            continue
        result.append({
            "_id": row["_id"],
            "name": product.get("name"),
            "category": product.get("category"),
            "order_count": row["order_count"],
        })
    return result


def recent_orders(database, limit=5):
    orders = database.get_documents(ORDERS, {}, limit=limit, sort=NEWEST_FIRST)
    for order in orders:
        order["customer"] = database[USERS].find_one({"_id": order["customer"]}, CUSTOMER_FIELDS)
        order["wholesaler"] = wholesaler_summary(database, order["wholesaler"])
    return orders


def dashboard_stats(database, top=5, recent=5) -> dict:
    users = user_counts(database)
    by_status = order_counts(database)
    stats = {
        "total_users": users["total"],
        "total_customers": users["customer"],
        "total_wholesalers": users["wholesaler"],
        "total_admins": users["admin"],
        "total_products": database.count_documents(PRODUCTS),
        "active_products": database.count_documents(PRODUCTS, {"is_active": True}),
        "total_orders": sum(s["count"] for s in by_status.values()),
        "pending_orders": by_status["pending"]["count"],
        "orders_by_status": by_status,
        "total_revenue": total_revenue(database),
    }
    return {
        "stats": stats,
        "recent_orders": recent_orders(database, recent),
        "top_products": top_products(database, top),
    }
