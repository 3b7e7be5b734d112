"""
Catalog store: products and categories.

Plain CRUD over the "products" and "categories" collections plus a
client-side substring search (the store has no full-text index).
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from database import DocumentStore, now_utc
from errors import NotFoundError
from schemas import Category, Product

logger = logging.getLogger(__name__)

PRODUCTS = "products"
CATEGORIES = "categories"


def category_name(category: Union[str, Category, Mapping[str, Any], None],
                  categories: Optional[Mapping[str, Category]] = None) -> str:
    """Display name for a product's category field.

    The field holds either a reference (category id, or a bare name on older
    documents) or an embedded category. References are resolved through
    `categories` (id -> Category) when given; an unresolvable reference is
    shown as-is.
    """
    if category is None:
        return ""
    if isinstance(category, Category):
        return category.name
    if isinstance(category, Mapping):
        return category.get("name", "")
    if categories and category in categories:
        return categories[category].name
    return category


# ---------------------- Products ----------------------

def get_product(store: DocumentStore, product_id: str) -> Optional[Product]:
    doc = store.get(PRODUCTS, product_id)
    return Product.model_validate(doc) if doc else None


def require_product(store: DocumentStore, product_id: str) -> Product:
    product = get_product(store, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_products(store: DocumentStore, limit: Optional[int] = None) -> List[Product]:
    docs = store.query(PRODUCTS, order_by=[("created_at", -1)], limit=limit)
    return [Product.model_validate(d) for d in docs]


def list_products_by_category(store: DocumentStore, category: str) -> List[Product]:
    docs = store.query(PRODUCTS, [("category", "==", category)], order_by=[("created_at", -1)])
    return [Product.model_validate(d) for d in docs]


def search_products(store: DocumentStore, term: str) -> List[Product]:
    needle = term.lower()
    return [
        p for p in list_products(store)
        if needle in p.name.lower() or needle in (p.description or "").lower()
    ]


def create_product(store: DocumentStore, product: Product, created_by: Optional[str] = None) -> str:
    doc = product.model_dump(exclude={"id"})
    doc.update({
        "created_by": created_by or product.created_by,
        "created_at": now_utc(),
        "updated_at": now_utc(),
    })
    product_id = store.add(PRODUCTS, doc)
    logger.info(f"Created product {product_id} ({product.name})")
    return product_id


def update_product(store: DocumentStore, product_id: str, changes: Dict[str, Any]) -> None:
    changes = {k: v for k, v in changes.items() if k not in ("id", "created_at", "created_by")}
    if isinstance(changes.get("category"), Category):
        changes["category"] = changes["category"].model_dump()
    store.update(PRODUCTS, product_id, {**changes, "updated_at": now_utc()})


def delete_product(store: DocumentStore, product_id: str) -> None:
    store.delete(PRODUCTS, product_id)
    logger.info(f"Deleted product {product_id}")


def best_sellers(store: DocumentStore, limit: int = 8) -> List[Product]:
    """Featured products, else top sellers, else the newest products."""
    featured = store.query(PRODUCTS, [("is_featured", "==", True)], order_by=[("created_at", -1)], limit=limit)
    if featured:
        return [Product.model_validate(d) for d in featured]
    selling = store.query(PRODUCTS, [("sales_count", ">", 0)], order_by=[("sales_count", -1)], limit=limit)
    if selling:
        return [Product.model_validate(d) for d in selling]
    return list_products(store, limit=limit)


def new_arrivals(store: DocumentStore, limit: int = 8) -> List[Product]:
    return list_products(store, limit=limit)


# ---------------------- Categories ----------------------

def get_category(store: DocumentStore, category_id: str) -> Optional[Category]:
    doc = store.get(CATEGORIES, category_id)
    return Category.model_validate(doc) if doc else None


def list_categories(store: DocumentStore) -> List[Category]:
    return [Category.model_validate(d) for d in store.query(CATEGORIES, order_by=[("created_at", -1)])]


def category_lookup(store: DocumentStore) -> Dict[str, Category]:
    return {c.id: c for c in list_categories(store)}


def search_categories(store: DocumentStore, term: str) -> List[Category]:
    needle = term.lower()
    return [c for c in list_categories(store) if needle in c.name.lower()]


def create_category(store: DocumentStore, category: Category) -> str:
    doc = category.model_dump(exclude={"id"})
    doc.update({"created_at": now_utc(), "updated_at": now_utc()})
    return store.add(CATEGORIES, doc)


def update_category(store: DocumentStore, category_id: str, changes: Dict[str, Any]) -> None:
    changes = {k: v for k, v in changes.items() if k not in ("id", "created_at")}
    store.update(CATEGORIES, category_id, {**changes, "updated_at": now_utc()})


def delete_category(store: DocumentStore, category_id: str) -> None:
    store.delete(CATEGORIES, category_id)


def categories_with_product_count(store: DocumentStore) -> List[Dict[str, Any]]:
    out = []
    for c in list_categories(store):
        data = c.model_dump()
        data["product_count"] = store.count(PRODUCTS, [("category", "==", c.id)])
        out.append(data)
    return out
