"""
Cart aggregator

One cart document per user, stored under the user id. Every mutation loads
the cart (an empty one if none is stored), rewrites the item list,
recomputes the totals from that list and writes the whole document back.

Quantity bounds (>= 1, <= stock) are the caller's contract and are not
checked here. Concurrent writers for the same user race; the last write wins.
"""
import logging
from typing import List, Tuple

import catalog
from database import DocumentStore, now_utc
from schemas import Cart, CartItem

logger = logging.getLogger(__name__)

CARTS = "carts"


def compute_totals(items: List[CartItem]) -> Tuple[float, int]:
    total_amount = sum(it.product.price * it.quantity for it in items)
    total_items = sum(it.quantity for it in items)
    return total_amount, total_items


def get_cart(store: DocumentStore, user_id: str) -> Cart:
    doc = store.get(CARTS, user_id)
    if not doc:
        return Cart(user_id=user_id, items=[], total_amount=0, total_items=0, updated_at=now_utc())
    doc.pop("id", None)
    return Cart.model_validate(doc)


def _save(store: DocumentStore, user_id: str, items: List[CartItem]) -> Cart:
    total_amount, total_items = compute_totals(items)
    cart = Cart(user_id=user_id, items=items, total_amount=total_amount,
                total_items=total_items, updated_at=now_utc())
    store.set(CARTS, user_id, cart.model_dump())
    return cart


def add_to_cart(store: DocumentStore, user_id: str, product_id: str, quantity: int = 1) -> Cart:
    product = catalog.require_product(store, product_id)
    items = get_cart(store, user_id).items
    for it in items:
        if it.product_id == product_id:
            it.quantity += quantity
            break
    else:
        items.append(CartItem(product_id=product_id, quantity=quantity, product=product))
    return _save(store, user_id, items)


def set_quantity(store: DocumentStore, user_id: str, product_id: str, quantity: int) -> Cart:
    if quantity <= 0:
        return remove_from_cart(store, user_id, product_id)
    items = get_cart(store, user_id).items
    for it in items:
        if it.product_id == product_id:
            it.quantity = quantity
    return _save(store, user_id, items)


def remove_from_cart(store: DocumentStore, user_id: str, product_id: str) -> Cart:
    items = [it for it in get_cart(store, user_id).items if it.product_id != product_id]
    return _save(store, user_id, items)


def clear_cart(store: DocumentStore, user_id: str) -> Cart:
    logger.debug(f"Clearing cart for user {user_id}")
    return _save(store, user_id, [])
