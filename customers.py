"""
User documents, keyed by auth uid, and the customer admin views over them.

Only the blocked flag matters to the commerce core; roles are checked by the
API layer. Customer listings fold in totals from the customer's orders.
"""
import logging
from datetime import datetime
from typing import List, Optional

import orders
from database import DocumentStore, now_utc
from errors import NotFoundError
from pricing import round_half_up
from schemas import CustomerStats, CustomerSummary, User

logger = logging.getLogger(__name__)

USERS = "users"

_CUSTOMERS = ("role", "==", "customer")


def get_user(store: DocumentStore, user_id: str) -> Optional[User]:
    doc = store.get(USERS, user_id)
    return User.model_validate(doc) if doc else None


def upsert_user(store: DocumentStore, user: User) -> User:
    existing = get_user(store, user.id)
    if existing is not None and user.created_at is None:
        user.created_at = existing.created_at
    user.created_at = user.created_at or now_utc()
    store.set(USERS, user.id, user.model_dump(exclude={"id"}))
    return user


def is_user_blocked(store: DocumentStore, user_id: str) -> bool:
    user = get_user(store, user_id)
    return user is not None and user.is_blocked


def set_user_blocked(store: DocumentStore, user_id: str, blocked: bool) -> None:
    if get_user(store, user_id) is None:
        raise NotFoundError("User not found")
    store.update(USERS, user_id, {"is_blocked": blocked})
    logger.info(f"User {user_id} {'blocked' if blocked else 'unblocked'}")


# ---------------------- Customer admin ----------------------

def _with_order_totals(store: DocumentStore, doc: dict) -> CustomerSummary:
    customer = CustomerSummary.model_validate(doc)
    placed = store.query(orders.ORDERS, [("user_id", "==", customer.id)])
    customer.total_orders = len(placed)
    customer.total_spent = round_half_up(sum(o.get("total_amount") or 0 for o in placed))
    dates = [o["created_at"] for o in placed if o.get("created_at")]
    customer.last_order_date = max(dates) if dates else None
    return customer


def list_customers(store: DocumentStore) -> List[CustomerSummary]:
    docs = store.query(USERS, [_CUSTOMERS], order_by=[("created_at", -1)])
    return [_with_order_totals(store, d) for d in docs]


def get_customer(store: DocumentStore, user_id: str) -> Optional[CustomerSummary]:
    doc = store.get(USERS, user_id)
    return _with_order_totals(store, doc) if doc else None


def customer_stats(store: DocumentStore, now: Optional[datetime] = None) -> CustomerStats:
    now = now or now_utc()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return CustomerStats(
        total_customers=store.count(USERS, [_CUSTOMERS]),
        active_customers=store.count(USERS, [_CUSTOMERS, ("is_blocked", "==", False)]),
        blocked_customers=store.count(USERS, [_CUSTOMERS, ("is_blocked", "==", True)]),
        new_this_month=store.count(USERS, [_CUSTOMERS, ("created_at", ">=", month_start)]),
    )


def delete_customer(store: DocumentStore, user_id: str) -> None:
    """Remove the user document. Orders and reviews by the user are kept."""
    if get_user(store, user_id) is None:
        raise NotFoundError("User not found")
    store.delete(USERS, user_id)
    logger.info(f"Deleted customer {user_id}")
