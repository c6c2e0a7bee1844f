import logging
import re
from datetime import datetime
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from pymongo.errors import DuplicateKeyError

import checkout
from catalog import product_out, product_slug
from database import create_document, get_db
from routers.orders import user_summary
from schemas import (
    Category as CategorySchema,
    Coupon as CouponSchema,
    Dimensions,
    OrderStatus,
    Product as ProductSchema,
    ProductCategory,
    ProductImage,
    Role,
)
from security import public_user, require_admin
from utils import as_utc, envelope, oid, paginate, serialize, slugify, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

USER_LIST_FIELDS = {"password_hash": 0, "email_verification_token": 0, "cart": 0}


# Request models

class ProductCreate(BaseModel):
    """Fields an admin may set; rating, reviews and counters start from zero."""
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    price: float = Field(..., ge=0)
    compare_price: Optional[float] = Field(None, ge=0)
    category: ProductCategory
    subcategory: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    images: List[ProductImage] = Field(default_factory=list)
    specifications: Dict[str, str] = Field(default_factory=dict)
    features: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0)
    low_stock_threshold: int = Field(10, ge=0)
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    is_active: bool = True
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    slug: Optional[str] = None

    @field_validator("name", "brand", "sku")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    compare_price: Optional[float] = Field(None, ge=0)
    category: Optional[ProductCategory] = None
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    images: Optional[List[ProductImage]] = None
    specifications: Optional[Dict[str, str]] = None
    features: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    tags: Optional[List[str]] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None


class StatusUpdate(BaseModel):
    status: OrderStatus


class PaymentUpdate(BaseModel):
    is_paid: bool


class RoleUpdate(BaseModel):
    role: Role


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    slug: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class CouponCreate(CouponSchema):
    pass


class CouponUpdate(BaseModel):
    description: Optional[str] = None
    type: Optional[Literal["percentage", "fixed"]] = None
    value: Optional[float] = Field(None, ge=0)
    minimum_amount: Optional[float] = Field(None, ge=0)
    maximum_discount: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    user_limit: Optional[int] = Field(None, ge=0)
    applicable_categories: Optional[List[str]] = None
    applicable_products: Optional[List[str]] = None
    exclude_products: Optional[List[str]] = None
    is_active: Optional[bool] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    @field_validator("valid_from", "valid_until")
    @classmethod
    def assume_utc(cls, v):
        return as_utc(v)


# Helpers

def _regex(term: str) -> dict:
    return {"$regex": re.escape(term), "$options": "i"}


def _with_users(db, orders: List[dict]) -> List[dict]:
    out = []
    for o in orders:
        data = serialize(o)
        data["user"] = user_summary(db, data["user_id"])
        out.append(data)
    return out


def coupon_out(doc: dict) -> dict:
    data = serialize(doc)
    now = utcnow()
    valid_from = as_utc(data.get("valid_from"))
    valid_until = as_utc(data.get("valid_until"))
    usage_limit = data.get("usage_limit")
    data["is_valid"] = bool(
        data.get("is_active")
        and valid_from and valid_from <= now
        and valid_until and valid_until >= now
        and (usage_limit is None or data.get("used_count", 0) < usage_limit)
    )
    return data


# Dashboard

@router.get("/dashboard")
def dashboard(db=Depends(get_db)):
    revenue = list(db["order"].aggregate([
        {"$match": {"is_paid": True}},
        {"$group": {"_id": None, "total": {"$sum": "$total_price"}}},
    ]))
    recent = list(db["order"].find().sort("created_at", -1).limit(5))
    low_stock = db["product"].find(
        {"is_active": True, "$expr": {"$lte": ["$stock", "$low_stock_threshold"]}},
        {"reviews": 0},
    ).limit(10)
    top_selling = db["product"].find(
        {"is_active": True}, {"name": 1, "sales_count": 1, "price": 1, "images": 1}
    ).sort("sales_count", -1).limit(5)

    return envelope({
        "stats": {
            "total_products": db["product"].count_documents({"is_active": True}),
            "total_users": db["user"].count_documents({}),
            "total_orders": db["order"].count_documents({}),
            "total_revenue": round(revenue[0]["total"], 2) if revenue else 0,
        },
        "recent_orders": _with_users(db, recent),
        "low_stock_products": [product_out(p) for p in low_stock],
        "top_selling_products": [serialize(p) for p in top_selling],
    })


# Products

@router.get("/products")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    db=Depends(get_db),
):
    query = {}
    if search:
        query["$or"] = [{"name": _regex(search)}, {"brand": _regex(search)}, {"sku": _regex(search)}]
    if category and category != "all":
        query["category"] = category
    if status and status != "all":
        query["is_active"] = status == "active"

    products, pagination = paginate(
        db["product"], query, page, limit, sort=[("created_at", -1)], projection={"reviews": 0}
    )
    return envelope({"products": [product_out(p) for p in products], "pagination": pagination})


@router.post("/products", status_code=201)
def create_product(payload: ProductCreate, admin: dict = Depends(require_admin), db=Depends(get_db)):
    if db["product"].find_one({"sku": payload.sku}):
        raise HTTPException(status_code=400, detail=f"Product with SKU {payload.sku} already exists")

    product = ProductSchema(
        **payload.model_dump(exclude={"slug"}),
        slug=payload.slug or product_slug(payload.name, payload.sku),
        created_by=str(admin["_id"]),
    )
    try:
        product_id = create_document("product", product)
    except DuplicateKeyError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("Admin %s created product %s", admin["_id"], product_id)
    saved = db["product"].find_one({"_id": oid(product_id)})
    return envelope({"product": product_out(saved)}, "Product created successfully")


@router.get("/products/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    product = db["product"].find_one({"_id": oid(product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return envelope({"product": product_out(product)})


@router.put("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, db=Depends(get_db)):
    product = db["product"].find_one({"_id": oid(product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "sku" in data and data["sku"] != product.get("sku"):
        if db["product"].find_one({"sku": data["sku"], "_id": {"$ne": product["_id"]}}):
            raise HTTPException(status_code=400, detail=f"Product with SKU {data['sku']} already exists")
    if ("name" in data and data["name"] != product.get("name")) or not product.get("slug"):
        data["slug"] = product_slug(data.get("name", product["name"]), data.get("sku", product.get("sku")))
    data["updated_at"] = utcnow()

    db["product"].update_one({"_id": product["_id"]}, {"$set": data})
    saved = db["product"].find_one({"_id": product["_id"]})
    return envelope({"product": product_out(saved)}, "Product updated successfully")


@router.delete("/products/{product_id}")
def delete_product(product_id: str, db=Depends(get_db)):
    res = db["product"].delete_one({"_id": oid(product_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return envelope(message="Product deleted successfully")


# Orders

@router.get("/orders")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    search: Optional[str] = None,
    db=Depends(get_db),
):
    query = {}
    if status and status != "all":
        query["status"] = status
    if search:
        query["order_number"] = _regex(search)

    orders, pagination = paginate(db["order"], query, page, limit, sort=[("created_at", -1)])
    return envelope({"orders": _with_users(db, orders), "pagination": pagination})


@router.get("/orders/{order_id}")
def get_order(order_id: str, db=Depends(get_db)):
    order = db["order"].find_one({"_id": oid(order_id)})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return envelope({"order": _with_users(db, [order])[0]})


@router.put("/orders/{order_id}/status")
def update_order_status(order_id: str, payload: StatusUpdate, db=Depends(get_db)):
    order = checkout.set_status(db, order_id, payload.status)
    return envelope({"order": order}, "Order status updated successfully")


@router.put("/orders/{order_id}/payment")
def update_order_payment(order_id: str, payload: PaymentUpdate, db=Depends(get_db)):
    order = checkout.set_payment_status(db, order_id, payload.is_paid)
    return envelope({"order": order}, "Payment status updated successfully")


# Users

@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    db=Depends(get_db),
):
    query = {}
    if search:
        query["$or"] = [{"first_name": _regex(search)}, {"last_name": _regex(search)}, {"email": _regex(search)}]
    if role and role != "all":
        query["role"] = role

    users, pagination = paginate(
        db["user"], query, page, limit, sort=[("created_at", -1)], projection=USER_LIST_FIELDS
    )
    return envelope({"users": [public_user(u) for u in users], "pagination": pagination})


@router.put("/users/{user_id}/role")
def update_user_role(user_id: str, payload: RoleUpdate, db=Depends(get_db)):
    res = db["user"].update_one({"_id": oid(user_id)}, {"$set": {"role": payload.role, "updated_at": utcnow()}})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    user = db["user"].find_one({"_id": oid(user_id)}, USER_LIST_FIELDS)
    return envelope({"user": public_user(user)}, "User role updated successfully")


# Categories

@router.get("/categories")
def list_categories(db=Depends(get_db)):
    categories = db["category"].find().sort("name", 1)
    return envelope({"categories": [serialize(c) for c in categories]})


@router.post("/categories", status_code=201)
def create_category(payload: CategorySchema, db=Depends(get_db)):
    name = payload.name.strip()
    if db["category"].find_one({"name": name}):
        raise HTTPException(status_code=400, detail="Category already exists")

    category = payload.model_copy(update={"name": name, "slug": payload.slug or slugify(name)})
    category_id = create_document("category", category)
    saved = db["category"].find_one({"_id": oid(category_id)})
    return envelope({"category": serialize(saved)}, "Category created successfully")


@router.put("/categories/{category_id}")
def update_category(category_id: str, payload: CategoryUpdate, db=Depends(get_db)):
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in data and "slug" not in data:
        data["slug"] = slugify(data["name"])
    data["updated_at"] = utcnow()

    res = db["category"].update_one({"_id": oid(category_id)}, {"$set": data})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    saved = db["category"].find_one({"_id": oid(category_id)})
    return envelope({"category": serialize(saved)}, "Category updated successfully")


@router.delete("/categories/{category_id}")
def delete_category(category_id: str, db=Depends(get_db)):
    res = db["category"].delete_one({"_id": oid(category_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    return envelope(message="Category deleted successfully")


# Coupons

@router.get("/coupons")
def list_coupons(db=Depends(get_db)):
    coupons = db["coupon"].find().sort("created_at", -1)
    return envelope({"coupons": [coupon_out(c) for c in coupons]})


@router.post("/coupons", status_code=201)
def create_coupon(payload: CouponCreate, admin: dict = Depends(require_admin), db=Depends(get_db)):
    if db["coupon"].find_one({"code": payload.code}):
        raise HTTPException(status_code=400, detail=f"Coupon {payload.code} already exists")

    coupon = payload.model_copy(update={"created_by": str(admin["_id"])})
    coupon_id = create_document("coupon", coupon)
    saved = db["coupon"].find_one({"_id": oid(coupon_id)})
    return envelope({"coupon": coupon_out(saved)}, "Coupon created successfully")


@router.put("/coupons/{coupon_id}")
def update_coupon(coupon_id: str, payload: CouponUpdate, db=Depends(get_db)):
    coupon = db["coupon"].find_one({"_id": oid(coupon_id)})
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    valid_from = data.get("valid_from", as_utc(coupon.get("valid_from")))
    valid_until = data.get("valid_until", as_utc(coupon.get("valid_until")))
    if valid_from and valid_until and valid_until < valid_from:
        raise HTTPException(status_code=400, detail="valid_until must not precede valid_from")
    data["updated_at"] = utcnow()

    db["coupon"].update_one({"_id": coupon["_id"]}, {"$set": data})
    saved = db["coupon"].find_one({"_id": coupon["_id"]})
    return envelope({"coupon": coupon_out(saved)}, "Coupon updated successfully")


@router.delete("/coupons/{coupon_id}")
def delete_coupon(coupon_id: str, db=Depends(get_db)):
    res = db["coupon"].delete_one({"_id": oid(coupon_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return envelope(message="Coupon deleted successfully")
