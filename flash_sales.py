"""
Flash sale engine

A flash sale is a time-boxed, stock-capped price override on one product.
Whether a sale is live is always derived: the admin `is_active` flag ANDed
with the time window and the stock cap. Nothing stored is trusted alone.

While a sale exists the product document also carries a marker
(`is_on_flash_sale`, `original_price`, `flash_sale_*`) and its `price` is the
sale price. The cleanup routines restore those products once the sale has
lapsed or sold out.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel

import catalog
from database import DocumentStore, Predicate, now_utc
from errors import NotFoundError, ValidationError
from pricing import round_half_up
from schemas import FlashSale, FlashSaleCreate, FlashSaleUpdate

logger = logging.getLogger(__name__)

FLASH_SALES = "flash_sales"

# sale field -> product marker field
_MARKER_SYNC = {
    "sale_price": "price",
    "original_price": "original_price",
    "end_date": "flash_sale_end_date",
    "discount_percentage": "flash_sale_discount_percentage",
    "stock_limit": "flash_sale_stock_limit",
}


class CleanupReport(BaseModel):
    cleaned: List[str] = []
    failed: Dict[str, str] = {}


# ---------------------- Derived values ----------------------

def is_sale_active(sale: FlashSale, now: Optional[datetime] = None) -> bool:
    now = now or now_utc()
    return (
        sale.is_active
        and sale.start_date <= now < sale.end_date
        and sale.sold_count < sale.stock_limit
    )


def remaining_stock(sale: FlashSale) -> int:
    return max(0, sale.stock_limit - sale.sold_count)


def time_remaining(sale: FlashSale, now: Optional[datetime] = None) -> int:
    """Milliseconds until the sale ends, never negative."""
    now = now or now_utc()
    return max(0, int((sale.end_date - now).total_seconds() * 1000))


def format_time_remaining(milliseconds: int) -> str:
    if milliseconds <= 0:
        return "ENDED"
    seconds = milliseconds // 1000
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def discount_percentage(original_price: float, sale_price: float) -> int:
    return int(round_half_up((original_price - sale_price) / original_price * 100))


def validate_sale(original_price: float, sale_price: float, start_date: datetime, end_date: datetime) -> None:
    if sale_price <= 0:
        raise ValidationError("Sale price must be greater than 0")
    if sale_price >= original_price:
        raise ValidationError("Sale price must be less than the original price")
    if end_date <= start_date:
        raise ValidationError("End date must be after the start date")


def _validate_stock_limit(stock_limit: int) -> None:
    if stock_limit < 1:
        raise ValidationError("Stock limit must be at least 1")


# ---------------------- Reads ----------------------

def _to_sale(doc: Dict[str, Any]) -> FlashSale:
    return FlashSale.model_validate(doc)


def get_sale(store: DocumentStore, sale_id: str) -> Optional[FlashSale]:
    doc = store.get(FLASH_SALES, sale_id)
    return _to_sale(doc) if doc else None


def require_sale(store: DocumentStore, sale_id: str) -> FlashSale:
    sale = get_sale(store, sale_id)
    if sale is None:
        raise NotFoundError("Flash sale not found")
    return sale


def list_all_sales(store: DocumentStore) -> List[FlashSale]:
    return [_to_sale(d) for d in store.query(FLASH_SALES, order_by=[("created_at", -1)])]


def _live_sales(store: DocumentStore, extra: Sequence[Predicate], now: datetime) -> List[FlashSale]:
    # The store can only range-filter one field, so end_date is filtered
    # server side and the start/stock conditions are applied here.
    docs = store.query(
        FLASH_SALES,
        [("is_active", "==", True), ("end_date", ">", now), *extra],
        order_by=[("end_date", 1)],
    )
    sales = [_to_sale(d) for d in docs]
    return [s for s in sales if s.start_date <= now and s.sold_count < s.stock_limit]


def list_active_sales(store: DocumentStore, now: Optional[datetime] = None) -> List[FlashSale]:
    return _live_sales(store, (), now or now_utc())


def get_sale_for_product(store: DocumentStore, product_id: str,
                         now: Optional[datetime] = None) -> Optional[FlashSale]:
    """The live sale for a product, or None when nothing is currently valid."""
    sales = _live_sales(store, [("product_id", "==", product_id)], now or now_utc())
    return sales[0] if sales else None


# ---------------------- Admin mutations ----------------------

def _marker(sale: FlashSale, now: datetime) -> Dict[str, Any]:
    # Stamped whatever is_active says, so expiry cleanup always finds the product
    return {
        "is_on_flash_sale": True,
        "original_price": sale.original_price,
        "price": sale.sale_price,
        "flash_sale_end_date": sale.end_date,
        "flash_sale_discount_percentage": sale.discount_percentage,
        "flash_sale_sold_count": sale.sold_count,
        "flash_sale_stock_limit": sale.stock_limit,
        "updated_at": now,
    }


def create_sale(store: DocumentStore, data: FlashSaleCreate, created_by: Optional[str] = None,
                now: Optional[datetime] = None) -> str:
    product = catalog.require_product(store, data.product_id)
    # A product already carrying a marker shows the sale price in `price`
    original_price = product.original_price if product.is_on_flash_sale and product.original_price else product.price

    validate_sale(original_price, data.sale_price, data.start_date, data.end_date)
    _validate_stock_limit(data.stock_limit)
    if data.stock_limit > product.stock:
        raise ValidationError(f"Stock limit cannot exceed available stock ({product.stock})")

    now = now or now_utc()
    sale = FlashSale(
        product_id=product.id,
        product_name=product.name,
        product_image=product.primary_image,
        original_price=original_price,
        sale_price=data.sale_price,
        discount_percentage=discount_percentage(original_price, data.sale_price),
        start_date=data.start_date,
        end_date=data.end_date,
        stock_limit=data.stock_limit,
        sold_count=0,
        is_active=data.is_active,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    sale_id = store.add(FLASH_SALES, sale.model_dump(exclude={"id"}))

    store.update(catalog.PRODUCTS, product.id, _marker(sale, now))
    logger.info(f"Created flash sale {sale_id} for product {product.id} ({sale.discount_percentage}% off)")
    return sale_id


def update_sale(store: DocumentStore, sale_id: str, changes: FlashSaleUpdate,
                now: Optional[datetime] = None) -> FlashSale:
    sale = require_sale(store, sale_id)
    updates = changes.model_dump(exclude_none=True)
    merged = sale.model_copy(update=updates)
    validate_sale(merged.original_price, merged.sale_price, merged.start_date, merged.end_date)
    _validate_stock_limit(merged.stock_limit)
    if "sale_price" in updates or "original_price" in updates:
        updates["discount_percentage"] = discount_percentage(merged.original_price, merged.sale_price)
        merged.discount_percentage = updates["discount_percentage"]

    now = now or now_utc()
    store.update(FLASH_SALES, sale_id, {**updates, "updated_at": now})

    if updates.get("is_active") is False:
        # Switched off: the product goes back to its list price
        product_updates = _restoration({"original_price": merged.original_price})
    elif updates.get("is_active") is True:
        product_updates = _marker(merged, now)
    else:
        product_updates = {_MARKER_SYNC[k]: v for k, v in updates.items() if k in _MARKER_SYNC}
        product_updates["updated_at"] = now
    store.update(catalog.PRODUCTS, sale.product_id, product_updates)
    return merged


def delete_sale(store: DocumentStore, sale_id: str) -> None:
    sale = require_sale(store, sale_id)
    store.delete(FLASH_SALES, sale_id)
    try:
        store.update(catalog.PRODUCTS, sale.product_id, _restoration({"original_price": sale.original_price}))
    except NotFoundError:
        logger.warning(f"Flash sale {sale_id} deleted but product {sale.product_id} no longer exists")
    logger.info(f"Deleted flash sale {sale_id}")


def record_sale(store: DocumentStore, sale_id: str, quantity: int = 1) -> None:
    """Count a purchase against the sale's stock cap.

    The increment itself is atomic, but availability was checked earlier by
    the caller, so concurrent buyers can push sold_count past stock_limit.
    """
    sale = require_sale(store, sale_id)
    if sale.sold_count + quantity > sale.stock_limit:
        logger.warning(f"Flash sale {sale_id} oversold: {sale.sold_count + quantity}/{sale.stock_limit}")
    store.increment(FLASH_SALES, sale_id, "sold_count", quantity)
    store.update(FLASH_SALES, sale_id, {"updated_at": now_utc()})

    product = catalog.get_product(store, sale.product_id)
    if product is not None and product.is_on_flash_sale:
        store.increment(catalog.PRODUCTS, sale.product_id, "flash_sale_sold_count", quantity)


# ---------------------- Cleanup ----------------------

def _restoration(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "is_on_flash_sale": False,
        "price": doc.get("original_price") or doc.get("price"),
        "original_price": None,
        "flash_sale_end_date": None,
        "flash_sale_discount_percentage": None,
        "flash_sale_sold_count": None,
        "flash_sale_stock_limit": None,
        "updated_at": now_utc(),
    }


def _restore_products(store: DocumentStore, predicates: Sequence[Predicate],
                      trigger: Optional[Callable[[Dict[str, Any]], bool]], label: str) -> CleanupReport:
    report = CleanupReport()
    for doc in store.query(catalog.PRODUCTS, predicates):
        if trigger is not None and not trigger(doc):
            continue
        try:
            store.update(catalog.PRODUCTS, doc["id"], _restoration(doc))
        except Exception as e:
            logger.exception(f"Failed to restore product {doc['id']} from {label} flash sale")
            report.failed[doc["id"]] = str(e)
        else:
            report.cleaned.append(doc["id"])
    if report.cleaned:
        logger.info(f"Cleaned up {len(report.cleaned)} {label} flash sales")
    return report


def _sold_out(doc: Dict[str, Any]) -> bool:
    limit = doc.get("flash_sale_stock_limit")
    return limit is not None and (doc.get("flash_sale_sold_count") or 0) >= limit


def cleanup_expired(store: DocumentStore, now: Optional[datetime] = None) -> CleanupReport:
    now = now or now_utc()
    return _restore_products(
        store,
        [("is_on_flash_sale", "==", True), ("flash_sale_end_date", "<=", now)],
        None,
        "expired",
    )


def cleanup_sold_out(store: DocumentStore) -> CleanupReport:
    return _restore_products(store, [("is_on_flash_sale", "==", True)], _sold_out, "sold out")


def cleanup_flash_sales(store: DocumentStore, now: Optional[datetime] = None) -> CleanupReport:
    expired = cleanup_expired(store, now)
    sold_out = cleanup_sold_out(store)
    return CleanupReport(
        cleaned=expired.cleaned + sold_out.cleaned,
        failed={**expired.failed, **sold_out.failed},
    )
