"""
Database Schemas for Azad Bazaar

Each Pydantic model represents a collection in the document store.
Collection names are listed on every model; ids live outside the document
body and are exposed as `id`.
"""
from pydantic import AfterValidator, BaseModel, Field, EmailStr
from typing import Annotated, Optional, List, Literal, Dict, Union
from datetime import datetime, timezone

PaymentStatus = Literal["pending", "completed", "failed"]
OrderStatus = Literal["processing", "shipped", "delivered", "cancelled"]
ReviewStatus = Literal["pending", "approved", "rejected"]
Role = Literal["customer", "admin", "super-admin"]


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken to be UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


UTCDateTime = Annotated[datetime, AfterValidator(_as_utc)]


class Address(BaseModel):
    street: str
    district: str
    landmark: Optional[str] = None
    city: str
    state: str
    zip_code: str
    country: str = "India"


class User(BaseModel):
    """Collection name: "users" (document id = auth uid)"""
    id: Optional[str] = None
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None
    role: Role = "customer"
    is_blocked: bool = False
    created_at: Optional[UTCDateTime] = None


class Category(BaseModel):
    """Collection name: "categories" """
    id: Optional[str] = None
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None


class Product(BaseModel):
    """Collection name: "products" """
    id: Optional[str] = None
    name: str
    description: str = ""
    price: float = Field(..., gt=0)
    cost: float = Field(0, ge=0)
    stock: int = Field(0, ge=0)
    # Either a category id/name or an embedded category document
    category: Union[str, Category]
    image_urls: List[str] = []
    video_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None
    sales_count: Optional[int] = None
    is_featured: Optional[bool] = None

    # Flash sale marker, present only while the product is on sale
    is_on_flash_sale: Optional[bool] = None
    original_price: Optional[float] = None
    flash_sale_end_date: Optional[UTCDateTime] = None
    flash_sale_discount_percentage: Optional[int] = None
    flash_sale_sold_count: Optional[int] = None
    flash_sale_stock_limit: Optional[int] = None

    @property
    def primary_image(self) -> Optional[str]:
        return self.image_urls[0] if self.image_urls else None


class FlashSale(BaseModel):
    """Collection name: "flash_sales" """
    id: Optional[str] = None
    product_id: str
    # Snapshots of the product taken when the sale was created
    product_name: str
    product_image: Optional[str] = None
    original_price: float = Field(..., gt=0)
    sale_price: float = Field(..., gt=0)
    discount_percentage: int
    start_date: UTCDateTime
    end_date: UTCDateTime
    stock_limit: int = Field(..., ge=0)
    sold_count: int = 0
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None


class FlashSaleCreate(BaseModel):
    product_id: str
    sale_price: float
    start_date: UTCDateTime
    end_date: UTCDateTime
    stock_limit: int
    is_active: bool = True


class FlashSaleUpdate(BaseModel):
    original_price: Optional[float] = None
    sale_price: Optional[float] = None
    start_date: Optional[UTCDateTime] = None
    end_date: Optional[UTCDateTime] = None
    stock_limit: Optional[int] = None
    is_active: Optional[bool] = None


class CartItem(BaseModel):
    product_id: str
    quantity: int = 1
    product: Product


class Cart(BaseModel):
    """Collection name: "carts" (document id = user id)"""
    user_id: str
    items: List[CartItem] = []
    total_amount: float = 0
    total_items: int = 0
    updated_at: Optional[UTCDateTime] = None


class Order(BaseModel):
    """Collection name: "orders" """
    id: Optional[str] = None
    user_id: str
    items: List[CartItem]
    total_amount: float = Field(..., ge=0)
    shipping_address: Address
    payment_status: PaymentStatus = "pending"
    order_status: OrderStatus = "processing"
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None


class Review(BaseModel):
    """Collection name: "reviews" """
    id: Optional[str] = None
    product_id: str
    user_id: str
    user_name: str
    user_email: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = None
    comment: str
    images: List[str] = Field(default_factory=list, max_length=3)
    is_verified_purchase: bool = False
    helpful_count: int = 0
    helpful_by: List[str] = []
    status: ReviewStatus = "approved"
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None


class ReviewCreate(BaseModel):
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = None
    comment: str
    images: List[str] = Field(default_factory=list, max_length=3)
    status: ReviewStatus = "approved"


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = None
    comment: Optional[str] = None
    images: Optional[List[str]] = Field(None, max_length=3)


class ReviewSummary(BaseModel):
    average_rating: float = 0
    total_reviews: int = 0
    rating_distribution: Dict[int, int] = Field(default_factory=lambda: {5: 0, 4: 0, 3: 0, 2: 0, 1: 0})


class ReviewEligibility(BaseModel):
    can_review: bool
    is_verified_purchase: bool


class CheckoutSummary(BaseModel):
    subtotal: float
    tax: float
    shipping_fee: float
    grand_total: float
    amount_to_free_shipping: float = 0


class CustomerSummary(User):
    """A customer together with their order history totals."""
    total_orders: int = 0
    total_spent: float = 0
    last_order_date: Optional[UTCDateTime] = None


class CustomerStats(BaseModel):
    total_customers: int
    active_customers: int
    blocked_customers: int
    new_this_month: int


class DashboardStats(BaseModel):
    total_revenue: float
    total_orders: int
    total_products: int
    total_customers: int
    pending_orders: int
    completed_orders: int
    low_stock_products: int
    # Share of all-time revenue taken in the last 30 days, in percent
    revenue_growth: float


class RecentOrder(BaseModel):
    id: str
    customer_name: str
    amount: float
    status: OrderStatus
    date: Optional[UTCDateTime] = None


class TopProduct(BaseModel):
    id: str
    name: str
    sales: int
    revenue: float
