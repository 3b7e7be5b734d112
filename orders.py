"""
Order formation

An order is a snapshot: items, total and address are copied in by value at
checkout and never follow later product or cart changes. Only the two
status fields change afterwards, and any status may follow any other.

Creating an order and clearing the cart are two separate writes with no
transaction around them. If the second write fails the order stands and
the cart keeps its items.
"""
import logging
from typing import Any, List, Mapping, Optional, Sequence, Union, get_args

import cart
import customers
import flash_sales
from database import DocumentStore, now_utc
from errors import NotFoundError, PermissionDeniedError, ValidationError
from schemas import Address, CartItem, Order, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

ORDERS = "orders"


def create_order(store: DocumentStore, user_id: str, items: Sequence[Union[CartItem, Mapping[str, Any]]],
                 total_amount: float, shipping_address: Union[Address, Mapping[str, Any]]) -> str:
    if customers.is_user_blocked(store, user_id):
        raise PermissionDeniedError("Your account has been blocked. You cannot place orders.")

    now = now_utc()
    order = Order.model_validate({
        "user_id": user_id,
        "items": [it.model_dump() if isinstance(it, CartItem) else dict(it) for it in items],
        "total_amount": total_amount,
        "shipping_address": shipping_address.model_dump() if isinstance(shipping_address, Address) else dict(shipping_address),
        "payment_status": "pending",
        "order_status": "processing",
        "created_at": now,
        "updated_at": now,
    })
    order_id = store.add(ORDERS, order.model_dump(exclude={"id"}))
    logger.info(f"Order {order_id} created for user {user_id} ({order.total_amount})")

    cart.clear_cart(store, user_id)
    return order_id


def checkout(store: DocumentStore, user_id: str, shipping_address: Address) -> str:
    """Turn the user's stored cart into an order and count flash-sale purchases."""
    current = cart.get_cart(store, user_id)
    if not current.items:
        raise ValidationError("Cart is empty")

    order_id = create_order(store, user_id, current.items, current.total_amount, shipping_address)

    for it in current.items:
        sale = flash_sales.get_sale_for_product(store, it.product_id)
        if sale is not None:
            flash_sales.record_sale(store, sale.id, it.quantity)
    return order_id


def get_order(store: DocumentStore, order_id: str) -> Optional[Order]:
    doc = store.get(ORDERS, order_id)
    return Order.model_validate(doc) if doc else None


def require_order(store: DocumentStore, order_id: str) -> Order:
    order = get_order(store, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def list_user_orders(store: DocumentStore, user_id: str) -> List[Order]:
    docs = store.query(ORDERS, [("user_id", "==", user_id)], order_by=[("created_at", -1)])
    return [Order.model_validate(d) for d in docs]


def list_orders(store: DocumentStore) -> List[Order]:
    return [Order.model_validate(d) for d in store.query(ORDERS, order_by=[("created_at", -1)])]


def set_order_status(store: DocumentStore, order_id: str, order_status: OrderStatus) -> None:
    if order_status not in get_args(OrderStatus):
        raise ValidationError(f"Invalid order status: {order_status}")
    # No transition rules: delivered may go back to processing
    store.update(ORDERS, order_id, {"order_status": order_status, "updated_at": now_utc()})
    logger.info(f"Order {order_id} status -> {order_status}")


def set_payment_status(store: DocumentStore, order_id: str, payment_status: PaymentStatus) -> None:
    if payment_status not in get_args(PaymentStatus):
        raise ValidationError(f"Invalid payment status: {payment_status}")
    store.update(ORDERS, order_id, {"payment_status": payment_status, "updated_at": now_utc()})
    logger.info(f"Order {order_id} payment -> {payment_status}")
