"""
Database Schemas for the KartMart storefront

Each Pydantic model corresponds to a MongoDB collection.
Collection name is the lowercase of the class name.

- User -> "user"
- Product -> "product"
- Order -> "order"
- Category -> "category"
- Coupon -> "coupon"

References between documents are stored as id strings.
"""

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

ProductCategory = Literal["electronics", "accessories", "clothing", "home", "sports", "books"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
Role = Literal["user", "admin"]


class Address(BaseModel):
    full_name: Optional[str] = None
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    phone: Optional[str] = None


class CartItem(BaseModel):
    product_id: str = Field(..., description="ID of the product")
    quantity: int = Field(1, ge=1, description="Quantity of the product")
    added_at: Optional[datetime] = None


class User(BaseModel):
    """Users collection schema"""
    first_name: str = Field(..., max_length=50, description="Given name")
    last_name: str = Field(..., max_length=50, description="Family name")
    email: EmailStr = Field(..., description="Email address, stored lower-cased")
    password_hash: str = Field(..., description="BCrypt password hash")
    role: Role = Field("user", description="Role: user or admin")
    phone: Optional[str] = None
    address: Optional[Address] = None
    is_active: bool = Field(True, description="Whether user is active")
    is_email_verified: bool = False
    email_verification_token: Optional[str] = None
    last_login: Optional[datetime] = None
    cart: List[CartItem] = Field(default_factory=list)
    wishlist: List[str] = Field(default_factory=list, description="Product ids")


class ProductImage(BaseModel):
    public_id: str
    url: str
    alt: Optional[str] = None


class Dimensions(BaseModel):
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


class Review(BaseModel):
    """Embedded in Product.reviews"""
    id: str
    user_id: str
    user_name: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., max_length=500)
    helpful: List[str] = Field(default_factory=list)
    verified: bool = False
    created_at: Optional[datetime] = None


class Product(BaseModel):
    """Products collection schema"""
    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    description: str = Field(..., min_length=1, max_length=2000)
    price: float = Field(..., ge=0, description="Price in dollars")
    compare_price: Optional[float] = Field(None, ge=0, description="Original price shown struck through")
    category: ProductCategory
    subcategory: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1, description="Stock keeping unit, unique")
    images: List[ProductImage] = Field(default_factory=list)
    specifications: Dict[str, str] = Field(default_factory=dict)
    features: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0, description="Units in stock")
    low_stock_threshold: int = Field(10, ge=0)
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    reviews: List[Review] = Field(default_factory=list)
    rating: float = Field(0, ge=0, le=5)
    num_reviews: int = Field(0, ge=0)
    is_active: bool = True
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    slug: Optional[str] = Field(None, description="URL-friendly unique identifier")
    view_count: int = 0
    sales_count: int = 0
    created_by: Optional[str] = None

    @field_validator("name", "brand", "sku")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class OrderItem(BaseModel):
    """Snapshot of a product at purchase time"""
    product_id: str
    name: str
    image: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class PaymentResult(BaseModel):
    id: str
    status: str
    update_time: str
    email_address: Optional[str] = None


class Order(BaseModel):
    """Orders collection schema"""
    order_number: str
    user_id: str
    order_items: List[OrderItem]
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: str = "stripe"
    payment_result: Optional[PaymentResult] = None
    items_price: float = Field(0, ge=0)
    tax_price: float = Field(0, ge=0)
    shipping_price: float = Field(0, ge=0)
    total_price: float = Field(0, ge=0)
    coupon_code: Optional[str] = None
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    status: OrderStatus = "pending"
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    notes: Optional[str] = None


class Category(BaseModel):
    """Categories collection schema"""
    name: str = Field(..., min_length=1, max_length=50)
    slug: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0


class Coupon(BaseModel):
    """Coupons collection schema (not applied at checkout)"""
    code: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: Literal["percentage", "fixed"] = "percentage"
    value: float = Field(..., ge=0)
    minimum_amount: float = Field(0, ge=0)
    maximum_discount: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    used_count: int = Field(0, ge=0)
    user_limit: int = Field(1, ge=0)
    applicable_categories: List[str] = Field(default_factory=list)
    applicable_products: List[str] = Field(default_factory=list)
    exclude_products: List[str] = Field(default_factory=list)
    is_active: bool = True
    valid_from: datetime
    valid_until: datetime
    created_by: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("valid_from", "valid_until")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_window(self):
        if self.valid_until < self.valid_from:
            raise ValueError("valid_until must not precede valid_from")
        return self
