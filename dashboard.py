"""
Admin dashboard aggregations over orders, products and users.

Everything is computed on request from the stored documents; nothing here
is cached or written back.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import catalog
import config
import customers
import orders
from database import DocumentStore, now_utc
from pricing import round_half_up
from schemas import DashboardStats, RecentOrder, TopProduct


def dashboard_stats(store: DocumentStore, now: Optional[datetime] = None) -> DashboardStats:
    now = now or now_utc()
    placed = store.query(orders.ORDERS)
    total_revenue = sum(o.get("total_amount") or 0 for o in placed)

    window_start = now - timedelta(days=config.REVENUE_WINDOW_DAYS)
    recent = store.query(orders.ORDERS, [("created_at", ">=", window_start)])
    recent_revenue = sum(o.get("total_amount") or 0 for o in recent)
    revenue_growth = recent_revenue / total_revenue * 100 if total_revenue > 0 else 0

    return DashboardStats(
        total_revenue=total_revenue,
        total_orders=len(placed),
        total_products=store.count(catalog.PRODUCTS),
        total_customers=store.count(customers.USERS, [("role", "==", "customer")]),
        pending_orders=sum(1 for o in placed if o.get("order_status") == "processing"),
        completed_orders=sum(1 for o in placed if o.get("order_status") == "delivered"),
        low_stock_products=store.count(catalog.PRODUCTS, [("stock", "<", config.LOW_STOCK_THRESHOLD)]),
        revenue_growth=round_half_up(revenue_growth, 2),
    )


def recent_orders(store: DocumentStore, limit: int = 5) -> List[RecentOrder]:
    out = []
    for doc in store.query(orders.ORDERS, order_by=[("created_at", -1)], limit=limit):
        user = customers.get_user(store, doc["user_id"]) if doc.get("user_id") else None
        out.append(RecentOrder(
            id=doc["id"],
            customer_name=(user and (user.display_name or user.email)) or "Guest",
            amount=doc.get("total_amount") or 0,
            status=doc.get("order_status") or "processing",
            date=doc.get("created_at"),
        ))
    return out


def top_products(store: DocumentStore, limit: int = 5) -> List[TopProduct]:
    """Best sellers by units ordered, across every order regardless of status."""
    totals: Dict[str, Dict[str, float]] = {}
    for doc in store.query(orders.ORDERS):
        for item in doc.get("items") or []:
            snapshot = item.get("product") or {}
            product_id = item.get("product_id") or snapshot.get("id")
            if not product_id:
                continue
            quantity = item.get("quantity") or 0
            entry = totals.setdefault(product_id, {"sales": 0, "revenue": 0.0})
            entry["sales"] += quantity
            entry["revenue"] += quantity * (snapshot.get("price") or 0)

    ranked = sorted(totals.items(), key=lambda kv: kv[1]["sales"], reverse=True)[:limit]
    out = []
    for product_id, entry in ranked:
        product = catalog.get_product(store, product_id)
        out.append(TopProduct(
            id=product_id,
            name=product.name if product else "Unknown Product",
            sales=int(entry["sales"]),
            revenue=round_half_up(entry["revenue"]),
        ))
    return out
