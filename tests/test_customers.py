from datetime import timedelta

import pytest

import customers
import orders
from errors import NotFoundError
from schemas import User


def _user(store, uid, created_at, **extra):
    return customers.upsert_user(store, User(id=uid, created_at=created_at, **extra))


def _order(store, user_id, total, created_at):
    return store.add(orders.ORDERS, {
        "user_id": user_id,
        "items": [],
        "total_amount": total,
        "order_status": "processing",
        "payment_status": "pending",
        "created_at": created_at,
    })


def test_list_customers_newest_first_with_order_totals(store, now):
    _user(store, "old", now - timedelta(days=60), display_name="Old Timer")
    _user(store, "new", now - timedelta(days=1))
    _user(store, "boss", now, role="admin")
    _order(store, "old", 450.25, now - timedelta(days=10))
    _order(store, "old", 100.5, now - timedelta(days=2))

    listed = customers.list_customers(store)
    assert [c.id for c in listed] == ["new", "old"]

    old = listed[1]
    assert old.display_name == "Old Timer"
    assert old.total_orders == 2
    assert old.total_spent == 551
    assert old.last_order_date == now - timedelta(days=2)

    assert listed[0].total_orders == 0
    assert listed[0].total_spent == 0
    assert listed[0].last_order_date is None


def test_get_customer(store, now):
    _user(store, "u1", now)
    _order(store, "u1", 300, now)
    assert customers.get_customer(store, "u1").total_orders == 1
    assert customers.get_customer(store, "ghost") is None


def test_customer_stats(store, now):
    _user(store, "a", now - timedelta(days=40))
    _user(store, "b", now - timedelta(hours=2))
    _user(store, "c", now.replace(day=1, hour=0))
    _user(store, "admin", now, role="admin")
    customers.set_user_blocked(store, "a", True)

    stats = customers.customer_stats(store, now)
    assert stats.total_customers == 3
    assert stats.active_customers == 2
    assert stats.blocked_customers == 1
    assert stats.new_this_month == 2


def test_delete_customer(store, now):
    _user(store, "u1", now)
    _order(store, "u1", 300, now)
    customers.delete_customer(store, "u1")

    assert customers.get_user(store, "u1") is None
    assert store.count(orders.ORDERS) == 1
    with pytest.raises(NotFoundError):
        customers.delete_customer(store, "u1")
