from datetime import timedelta

import cart
import customers
import dashboard
import orders
from schemas import Address, User

ADDRESS = Address(street="7 Residency Road", district="Jaipur", city="Jaipur",
                  state="Rajasthan", zip_code="302001")


def _place(store, user_id, *lines):
    for product_id, quantity in lines:
        cart.add_to_cart(store, user_id, product_id, quantity)
    return orders.checkout(store, user_id, ADDRESS)


def _backdate(store, order_id, created_at):
    store.update(orders.ORDERS, order_id, {"created_at": created_at})


def test_dashboard_stats(store, now, make_product):
    kurta = make_product(name="Kurta", price=400, stock=50)
    lamp = make_product(name="Lamp", price=100, stock=3)
    customers.upsert_user(store, User(id="u1"))
    customers.upsert_user(store, User(id="staff", role="admin"))

    old = _place(store, "u1", (kurta, 1))
    _backdate(store, old, now - timedelta(days=90))
    recent = _place(store, "u1", (lamp, 1))
    _backdate(store, recent, now - timedelta(days=3))
    shipped = _place(store, "u2", (lamp, 2))
    _backdate(store, shipped, now - timedelta(days=1))
    orders.set_order_status(store, old, "delivered")
    orders.set_order_status(store, shipped, "shipped")

    stats = dashboard.dashboard_stats(store, now)
    assert stats.total_revenue == 700
    assert stats.total_orders == 3
    assert stats.total_products == 2
    assert stats.total_customers == 1
    assert stats.pending_orders == 1
    assert stats.completed_orders == 1
    assert stats.low_stock_products == 1
    assert stats.revenue_growth == 42.86


def test_dashboard_stats_without_orders(store, now):
    stats = dashboard.dashboard_stats(store, now)
    assert stats.total_revenue == 0
    assert stats.revenue_growth == 0


def test_recent_orders(store, now, make_product):
    pid = make_product(price=250)
    customers.upsert_user(store, User(id="u1", display_name="Kavya"))
    customers.upsert_user(store, User(id="u2", email="dev@example.com"))

    ids = []
    for i, user_id in enumerate(["u1", "u2", "u3"]):
        ids.append(_place(store, user_id, (pid, 1)))
        _backdate(store, ids[-1], now + timedelta(minutes=i))

    recent = dashboard.recent_orders(store, limit=2)
    assert [o.id for o in recent] == [ids[2], ids[1]]
    assert [o.customer_name for o in recent] == ["Guest", "dev@example.com"]
    assert recent[0].amount == 250
    assert recent[0].status == "processing"
    assert dashboard.recent_orders(store)[-1].customer_name == "Kavya"


def test_top_products(store, make_product):
    saree = make_product(name="Saree", price=1200.4)
    bangle = make_product(name="Bangle", price=99)
    gone = make_product(name="Discontinued", price=10)
    _place(store, "u1", (saree, 1), (bangle, 3))
    _place(store, "u2", (bangle, 2), (gone, 4))
    store.delete("products", gone)

    top = dashboard.top_products(store, limit=2)
    assert [(p.name, p.sales) for p in top] == [("Bangle", 5), ("Unknown Product", 4)]
    assert top[0].revenue == 495

    everything = {p.id: p for p in dashboard.top_products(store)}
    assert everything[saree].revenue == 1200
