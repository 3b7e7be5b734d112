import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional, Dict, Any, Literal

from fastapi import Depends, FastAPI, File, Form, HTTPException, Header, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, EmailStr

import cart
import catalog
import config
import customers
import dashboard
import flash_sales
import orders
import pricing
import reviews
import uploads
from database import DocumentStore, db, get_store, now_utc
from errors import CommerceError
from schemas import (
    Address, Category, FlashSale, FlashSaleCreate, FlashSaleUpdate, OrderStatus, PaymentStatus,
    Product, ReviewCreate, ReviewStatus, ReviewUpdate, User,
)

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    run_flash_sale_cleanup()
    yield


app = FastAPI(title="Azad Bazaar API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CommerceError)
async def commerce_error_handler(request: Request, exc: CommerceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ---------------------- Utilities ----------------------

def require_admin(x_admin_key: Optional[str] = Header(None)):
    if x_admin_key != config.ADMIN_KEY:
        raise HTTPException(401, "Unauthorized")


def sale_view(sale: FlashSale) -> Dict[str, Any]:
    now = now_utc()
    remaining = flash_sales.time_remaining(sale, now)
    return {
        **sale.model_dump(),
        "is_live": flash_sales.is_sale_active(sale, now),
        "remaining_stock": flash_sales.remaining_stock(sale),
        "time_remaining_ms": remaining,
        "countdown": flash_sales.format_time_remaining(remaining),
    }


def product_view(product: Product, categories: Optional[Dict[str, Category]] = None) -> Dict[str, Any]:
    out = product.model_dump()
    out["category_name"] = catalog.category_name(product.category, categories)
    return out


# ---------------------- Models ----------------------

class UserBody(BaseModel):
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None


class CartItemBody(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CartQuantityBody(BaseModel):
    product_id: str
    quantity: int


class CheckoutBody(BaseModel):
    address: Address


class ReviewBody(ReviewCreate):
    user_name: Optional[str] = None
    user_email: Optional[str] = None


class ProductBody(BaseModel):
    name: str
    description: str = ""
    price: float = Field(..., gt=0)
    cost: float = Field(0, ge=0)
    stock: int = Field(0, ge=0)
    category: str
    image_urls: List[str] = []
    video_url: Optional[str] = None
    is_featured: bool = False


class CategoryBody(BaseModel):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class OrderStatusBody(BaseModel):
    order_status: OrderStatus


class PaymentStatusBody(BaseModel):
    payment_status: PaymentStatus


class ReviewStatusBody(BaseModel):
    status: ReviewStatus


class BlockBody(BaseModel):
    blocked: bool


# ---------------------- Root & Health ----------------------

@app.get("/")
def read_root():
    return {"message": "Azad Bazaar API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = db.name
            response["connection_status"] = "Connected"
            try:
                response["collections"] = db.list_collection_names()
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
        else:
            response["database"] = "⚠️ In-memory store"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


@app.get("/schema")
def get_schema():
    import schemas as s

    def model_fields(m):
        return {k: str(v.annotation) for k, v in getattr(m, "model_fields", {}).items()}
    return {
        "models": {
            "user": model_fields(s.User),
            "category": model_fields(s.Category),
            "product": model_fields(s.Product),
            "flash_sale": model_fields(s.FlashSale),
            "cart": model_fields(s.Cart),
            "order": model_fields(s.Order),
            "review": model_fields(s.Review),
        }
    }


def run_flash_sale_cleanup():
    try:
        report = flash_sales.cleanup_flash_sales(get_store())
    except Exception:
        logger.exception("Flash sale cleanup failed on startup")
        return
    if report.failed:
        logger.warning(f"Flash sale cleanup left {len(report.failed)} products untouched")


# ---------------------- Users ----------------------

@app.put("/users/{uid}")
def save_user(uid: str, body: UserBody, store: DocumentStore = Depends(get_store)):
    existing = customers.get_user(store, uid)
    user = existing or User(id=uid)
    user.email = body.email or user.email
    user.display_name = body.display_name or user.display_name
    return customers.upsert_user(store, user)


# ---------------------- Products & Categories ----------------------

@app.get("/categories")
def list_categories(q: Optional[str] = None, with_counts: bool = False, store: DocumentStore = Depends(get_store)):
    if with_counts:
        return catalog.categories_with_product_count(store)
    if q:
        return catalog.search_categories(store, q)
    return catalog.list_categories(store)


@app.get("/products")
def list_products(q: Optional[str] = None, category: Optional[str] = None, limit: Optional[int] = None,
                  store: DocumentStore = Depends(get_store)):
    if q:
        items = catalog.search_products(store, q)
    elif category:
        items = catalog.list_products_by_category(store, category)
    else:
        items = catalog.list_products(store, limit=limit)
    categories = catalog.category_lookup(store)
    return [product_view(p, categories) for p in items]


@app.get("/products/best-sellers")
def best_sellers(limit: int = 8, store: DocumentStore = Depends(get_store)):
    categories = catalog.category_lookup(store)
    return [product_view(p, categories) for p in catalog.best_sellers(store, limit)]


@app.get("/products/new-arrivals")
def new_arrivals(limit: int = 8, store: DocumentStore = Depends(get_store)):
    categories = catalog.category_lookup(store)
    return [product_view(p, categories) for p in catalog.new_arrivals(store, limit)]


@app.get("/products/{pid}")
def get_product(pid: str, store: DocumentStore = Depends(get_store)):
    product = catalog.require_product(store, pid)
    out = product_view(product, catalog.category_lookup(store))
    sale = flash_sales.get_sale_for_product(store, pid)
    out["flash_sale"] = sale_view(sale) if sale else None
    return out


@app.get("/products/{pid}/flash-sale")
def get_product_flash_sale(pid: str, store: DocumentStore = Depends(get_store)):
    sale = flash_sales.get_sale_for_product(store, pid)
    return sale_view(sale) if sale else None


# ---------------------- Flash Sales ----------------------

@app.get("/flash-sales")
def list_flash_sales(store: DocumentStore = Depends(get_store)):
    return [sale_view(s) for s in flash_sales.list_active_sales(store)]


# ---------------------- Reviews ----------------------

@app.get("/products/{pid}/reviews")
def product_reviews(pid: str, sort_by: Literal["recent", "helpful", "rating"] = "recent",
                    store: DocumentStore = Depends(get_store)):
    return reviews.list_product_reviews(store, pid, sort_by)


@app.get("/products/{pid}/reviews/summary")
def product_review_summary(pid: str, store: DocumentStore = Depends(get_store)):
    return reviews.get_review_summary(store, pid)


@app.get("/products/{pid}/reviews/eligibility")
def review_eligibility(pid: str, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    return reviews.can_review(store, pid, user_id)


@app.post("/reviews", status_code=201)
def add_review(body: ReviewBody, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    catalog.require_product(store, body.product_id)
    user = customers.get_user(store, user_id) or User(id=user_id)
    user.display_name = user.display_name or body.user_name
    user.email = user.email or body.user_email
    review_id = reviews.add_review(store, ReviewCreate(**body.model_dump(exclude={"user_name", "user_email"})), user)
    return {"id": review_id}


def _own_review(store: DocumentStore, rid: str, user_id: str):
    review = reviews.get_review(store, rid)
    if not review:
        raise HTTPException(404, "Review not found")
    if review.user_id != user_id:
        raise HTTPException(403, "Not your review")
    return review


@app.put("/reviews/{rid}")
def update_review(rid: str, body: ReviewUpdate, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    _own_review(store, rid, user_id)
    reviews.update_review(store, rid, body)
    return {"ok": True}


@app.delete("/reviews/{rid}")
def delete_review(rid: str, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    _own_review(store, rid, user_id)
    reviews.delete_review(store, rid)
    return {"ok": True}


@app.post("/reviews/{rid}/helpful")
def toggle_helpful(rid: str, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    review = reviews.toggle_helpful(store, rid, user_id)
    return {"helpful_count": review.helpful_count, "helpful_by": review.helpful_by}


# ---------------------- Cart ----------------------

@app.get("/cart")
def get_cart(user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    return cart.get_cart(store, user_id)


@app.get("/cart/summary")
def cart_summary(user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    return pricing.checkout_summary(cart.get_cart(store, user_id).total_amount)


@app.post("/cart/add")
def add_to_cart(item: CartItemBody, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    return cart.add_to_cart(store, user_id, item.product_id, item.quantity)


@app.post("/cart/update")
def update_cart_item(item: CartQuantityBody, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    return cart.set_quantity(store, user_id, item.product_id, item.quantity)


@app.post("/cart/remove")
def remove_from_cart(item: CartQuantityBody, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    return cart.remove_from_cart(store, user_id, item.product_id)


@app.post("/cart/clear")
def clear_cart(user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    return cart.clear_cart(store, user_id)


# ---------------------- Checkout & Orders ----------------------

@app.post("/checkout", status_code=201)
def checkout(body: CheckoutBody, user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    order_id = orders.checkout(store, user_id, body.address)
    order = orders.require_order(store, order_id)
    return {"order_id": order_id, "total_amount": order.total_amount, "currency": config.CURRENCY}


@app.get("/orders")
def list_orders(user_id: str = Query(...), store: DocumentStore = Depends(get_store)):
    return orders.list_user_orders(store, user_id)


@app.get("/orders/{oid_str}")
def get_order(oid_str: str, store: DocumentStore = Depends(get_store)):
    return orders.require_order(store, oid_str)


@app.get("/orders/track/{oid_str}")
def track_order(oid_str: str, store: DocumentStore = Depends(get_store)):
    o = orders.require_order(store, oid_str)
    return {
        "order_status": o.order_status,
        "payment_status": o.payment_status,
        "estimated_delivery": (o.created_at + timedelta(days=5)).date().isoformat() if o.created_at else None,
    }


# ---------------------- Admin: Catalog ----------------------

@app.post("/admin/products", status_code=201, dependencies=[Depends(require_admin)])
def admin_create_product(body: ProductBody, created_by: Optional[str] = None, store: DocumentStore = Depends(get_store)):
    product_id = catalog.create_product(store, Product(**body.model_dump()), created_by=created_by)
    return {"id": product_id}


@app.put("/admin/products/{pid}", dependencies=[Depends(require_admin)])
def admin_update_product(pid: str, body: Dict[str, Any], store: DocumentStore = Depends(get_store)):
    catalog.update_product(store, pid, body)
    return {"ok": True}


@app.delete("/admin/products/{pid}", dependencies=[Depends(require_admin)])
def admin_delete_product(pid: str, store: DocumentStore = Depends(get_store)):
    catalog.delete_product(store, pid)
    return {"ok": True}


@app.post("/admin/categories", status_code=201, dependencies=[Depends(require_admin)])
def admin_add_category(body: CategoryBody, store: DocumentStore = Depends(get_store)):
    return {"id": catalog.create_category(store, Category(**body.model_dump()))}


@app.put("/admin/categories/{cid}", dependencies=[Depends(require_admin)])
def admin_update_category(cid: str, body: CategoryBody, store: DocumentStore = Depends(get_store)):
    catalog.update_category(store, cid, body.model_dump(exclude_none=True))
    return {"ok": True}


@app.delete("/admin/categories/{cid}", dependencies=[Depends(require_admin)])
def admin_delete_category(cid: str, store: DocumentStore = Depends(get_store)):
    catalog.delete_category(store, cid)
    return {"ok": True}


@app.post("/admin/uploads", status_code=201, dependencies=[Depends(require_admin)])
async def admin_upload(file: UploadFile = File(...), kind: Literal["image", "video"] = Form("image")):
    content = await file.read()
    return {"url": uploads.upload(content, file.filename or "upload", kind)}


# ---------------------- Admin: Flash Sales ----------------------

@app.get("/admin/flash-sales", dependencies=[Depends(require_admin)])
def admin_list_flash_sales(store: DocumentStore = Depends(get_store)):
    return [sale_view(s) for s in flash_sales.list_all_sales(store)]


@app.post("/admin/flash-sales", status_code=201, dependencies=[Depends(require_admin)])
def admin_create_flash_sale(body: FlashSaleCreate, created_by: Optional[str] = None,
                            store: DocumentStore = Depends(get_store)):
    return {"id": flash_sales.create_sale(store, body, created_by=created_by)}


@app.put("/admin/flash-sales/{sid}", dependencies=[Depends(require_admin)])
def admin_update_flash_sale(sid: str, body: FlashSaleUpdate, store: DocumentStore = Depends(get_store)):
    return sale_view(flash_sales.update_sale(store, sid, body))


@app.delete("/admin/flash-sales/{sid}", dependencies=[Depends(require_admin)])
def admin_delete_flash_sale(sid: str, store: DocumentStore = Depends(get_store)):
    flash_sales.delete_sale(store, sid)
    return {"ok": True}


@app.post("/admin/flash-sales/cleanup", dependencies=[Depends(require_admin)])
def admin_cleanup_flash_sales(store: DocumentStore = Depends(get_store)):
    return flash_sales.cleanup_flash_sales(store)


# ---------------------- Admin: Orders, Reviews, Customers ----------------------

@app.get("/admin/orders", dependencies=[Depends(require_admin)])
def admin_list_orders(store: DocumentStore = Depends(get_store)):
    return orders.list_orders(store)


@app.put("/admin/orders/{oid_str}/status", dependencies=[Depends(require_admin)])
def admin_set_order_status(oid_str: str, body: OrderStatusBody, store: DocumentStore = Depends(get_store)):
    orders.set_order_status(store, oid_str, body.order_status)
    return {"ok": True}


@app.put("/admin/orders/{oid_str}/payment", dependencies=[Depends(require_admin)])
def admin_set_payment_status(oid_str: str, body: PaymentStatusBody, store: DocumentStore = Depends(get_store)):
    orders.set_payment_status(store, oid_str, body.payment_status)
    return {"ok": True}


@app.put("/admin/reviews/{rid}/status", dependencies=[Depends(require_admin)])
def admin_set_review_status(rid: str, body: ReviewStatusBody, store: DocumentStore = Depends(get_store)):
    reviews.set_review_status(store, rid, body.status)
    return {"ok": True}


@app.put("/admin/users/{uid}/block", dependencies=[Depends(require_admin)])
def admin_block_user(uid: str, body: BlockBody, store: DocumentStore = Depends(get_store)):
    customers.set_user_blocked(store, uid, body.blocked)
    return {"ok": True}


@app.get("/admin/customers", dependencies=[Depends(require_admin)])
def admin_list_customers(store: DocumentStore = Depends(get_store)):
    return customers.list_customers(store)


@app.get("/admin/customers/stats", dependencies=[Depends(require_admin)])
def admin_customer_stats(store: DocumentStore = Depends(get_store)):
    return customers.customer_stats(store)


@app.get("/admin/customers/{uid}", dependencies=[Depends(require_admin)])
def admin_get_customer(uid: str, store: DocumentStore = Depends(get_store)):
    customer = customers.get_customer(store, uid)
    if not customer:
        raise HTTPException(404, "User not found")
    return customer


@app.delete("/admin/customers/{uid}", dependencies=[Depends(require_admin)])
def admin_delete_customer(uid: str, store: DocumentStore = Depends(get_store)):
    customers.delete_customer(store, uid)
    return {"ok": True}


# ---------------------- Admin: Dashboard ----------------------

@app.get("/admin/dashboard", dependencies=[Depends(require_admin)])
def admin_dashboard(store: DocumentStore = Depends(get_store)):
    return dashboard.dashboard_stats(store)


@app.get("/admin/dashboard/recent-orders", dependencies=[Depends(require_admin)])
def admin_recent_orders(limit: int = 5, store: DocumentStore = Depends(get_store)):
    return dashboard.recent_orders(store, limit)


@app.get("/admin/dashboard/top-products", dependencies=[Depends(require_admin)])
def admin_top_products(limit: int = 5, store: DocumentStore = Depends(get_store)):
    return dashboard.top_products(store, limit)


# ---------------------- Seed Demo Data ----------------------

@app.post("/admin/seed", dependencies=[Depends(require_admin)])
def seed(store: DocumentStore = Depends(get_store)):
    if store.count(catalog.CATEGORIES) == 0:
        for name, slug in [("Electronics", "electronics"), ("Fashion", "fashion"), ("Home & Kitchen", "home-kitchen")]:
            catalog.create_category(store, Category(name=name, slug=slug))
    if store.count(catalog.PRODUCTS) == 0:
        categories = catalog.list_categories(store)
        for i in range(1, 13):
            category = categories[i % len(categories)]
            catalog.create_product(store, Product(
                name=f"Bazaar Essential {i}",
                description="Everyday quality at a fair price.",
                price=299 + i * 100,
                cost=150 + i * 60,
                stock=50,
                category=category.id,
                image_urls=[f"https://picsum.photos/seed/bazaar{i}/600/400"],
                is_featured=i <= 4,
            ), created_by="seed")
    if store.count(flash_sales.FLASH_SALES) == 0:
        first = catalog.list_products(store)[-1]
        now = now_utc()
        flash_sales.create_sale(store, FlashSaleCreate(
            product_id=first.id,
            sale_price=round(first.price * 0.6),
            start_date=now,
            end_date=now + timedelta(days=1),
            stock_limit=10,
        ), created_by="seed")
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
