"""
Order creation and payment state changes.

Order creation validates every line before anything is written. After the
order document is persisted, stock/sales counters and the purchaser's cart are
updated with separate writes; there is no transaction spanning these steps, so
a failure part-way leaves the order in place with stock or cart untouched.
Such failures are logged and surfaced as server errors.
"""
import logging
import os
from collections import OrderedDict
from typing import List, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

import payments
from config import SHIPPING_PRICE, TAX_RATE
from database import create_document
from schemas import Address, Order, OrderItem
from utils import oid, serialize, utcnow

logger = logging.getLogger(__name__)


class OrderLine(BaseModel):
    product: str = Field(..., description="Product id")
    name: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price the client saw")
    image: Optional[str] = None


class CreateOrderRequest(BaseModel):
    order_items: List[OrderLine] = Field(default_factory=list)
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: str = "stripe"
    coupon_code: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)


def round_money(value: float) -> float:
    return round(value + 1e-9, 2)


def compute_totals(items: List[OrderItem]) -> dict:
    items_price = round_money(sum(i.price * i.quantity for i in items))
    tax_price = round_money(items_price * TAX_RATE)
    shipping_price = round_money(SHIPPING_PRICE) if items else 0.0
    return {
        "items_price": items_price,
        "tax_price": tax_price,
        "shipping_price": shipping_price,
        "total_price": round_money(items_price + tax_price + shipping_price),
    }


def new_order_number() -> str:
    return "ORD-" + utcnow().strftime("%Y%m%d") + "-" + os.urandom(3).hex().upper()


def _validate_lines(db, lines: List[OrderLine]) -> List[OrderItem]:
    """Check every line against the catalog and build the order snapshot.

    Raises HTTPException on the first failing line; nothing is written.
    """
    requested = OrderedDict()
    for line in lines:
        requested[line.product] = requested.get(line.product, 0) + line.quantity

    products = {}
    for product_id in requested:
        product = db["product"].find_one({"_id": oid(product_id)})
        label = next((ln.name for ln in lines if ln.product == product_id and ln.name), product_id)
        if not product or not product.get("is_active", True):
            raise HTTPException(status_code=404, detail=f"Product {label} not found")
        if product.get("stock", 0) < requested[product_id]:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {product['name']}")
        products[product_id] = product

    items = []
    for line in lines:
        product = products[line.product]
        if round_money(float(product["price"])) != round_money(line.price):
            raise HTTPException(status_code=400, detail=f"Price has changed for {product['name']}")
        images = product.get("images") or []
        items.append(OrderItem(
            product_id=line.product,
            name=product["name"],
            image=images[0]["url"] if images else line.image,
            price=float(product["price"]),
            quantity=line.quantity,
        ))
    return items


def create_order(db, user: dict, payload: CreateOrderRequest) -> dict:
    if not payload.order_items:
        raise HTTPException(status_code=400, detail="No order items provided")

    items = _validate_lines(db, payload.order_items)
    user_id = str(user["_id"])

    order = Order(
        order_number=new_order_number(),
        user_id=user_id,
        order_items=items,
        shipping_address=payload.shipping_address,
        billing_address=payload.billing_address or payload.shipping_address,
        payment_method=payload.payment_method,
        coupon_code=payload.coupon_code.strip().upper() if payload.coupon_code else None,
        notes=payload.notes,
        **compute_totals(items),
    )
    order_id = create_document("order", order)
    logger.info("Order %s (%s) created for user %s", order.order_number, order_id, user_id)

    try:
        for item in items:
            res = db["product"].update_one(
                {"_id": oid(item.product_id), "stock": {"$gte": item.quantity}},
                {"$inc": {"stock": -item.quantity, "sales_count": item.quantity}},
            )
            if res.modified_count == 0:
                # stock moved between validation and decrement
                logger.error(
                    "Order %s: stock for product %s could not be decremented by %s",
                    order_id, item.product_id, item.quantity,
                )
        db["user"].update_one({"_id": user["_id"]}, {"$set": {"cart": []}})
    except PyMongoError:
        logger.exception("Order %s persisted but inventory/cart update failed", order_id)
        raise

    return serialize(db["order"].find_one({"_id": oid(order_id)}))


def get_order_for(db, order_id: str, user: dict) -> dict:
    """Load an order the user owns (admins may load any order)."""
    order = db["order"].find_one({"_id": oid(order_id)})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order["user_id"] != str(user["_id"]) and user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Not authorized to access this order")
    return order


def process_payment(db, user: dict, order_id: str, payment_method_id: str) -> dict:
    """Customer payment: charge the processor and mark the order paid."""
    order = db["order"].find_one({"_id": oid(order_id)})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order["user_id"] != str(user["_id"]):
        raise HTTPException(status_code=403, detail="Not authorized")
    if order.get("is_paid"):
        raise HTTPException(status_code=400, detail="Order already paid")

    try:
        result = payments.charge(order["total_price"], payment_method_id, order_id)
    except payments.PaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result["status"] != "succeeded":
        logger.warning("Payment %s for order %s ended in %s", result["id"], order_id, result["status"])
        raise HTTPException(status_code=400, detail="Payment failed")

    now = utcnow()
    update = {
        "is_paid": True,
        "paid_at": now,
        "payment_result": {
            "id": result["id"],
            "status": result["status"],
            "update_time": now.isoformat(),
            "email_address": user.get("email"),
        },
        "status": "processing",
        "updated_at": now,
    }
    db["order"].update_one({"_id": order["_id"]}, {"$set": update})
    logger.info("Order %s paid (%s)", order_id, result["id"])
    return serialize(db["order"].find_one({"_id": order["_id"]}))


def set_payment_status(db, order_id: str, is_paid: bool) -> dict:
    """Admin override of the payment flag, without the processor."""
    now = utcnow()
    update = {
        "is_paid": is_paid,
        "paid_at": now if is_paid else None,
        "status": "processing" if is_paid else "pending",
        "updated_at": now,
    }
    res = db["order"].update_one({"_id": oid(order_id)}, {"$set": update})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Order not found")
    logger.info("Order %s payment manually set to %s", order_id, is_paid)
    return serialize(db["order"].find_one({"_id": oid(order_id)}))


def set_status(db, order_id: str, status: str) -> dict:
    now = utcnow()
    update = {"status": status, "updated_at": now}
    if status == "delivered":
        update.update({"is_delivered": True, "delivered_at": now})
    res = db["order"].update_one({"_id": oid(order_id)}, {"$set": update})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize(db["order"].find_one({"_id": oid(order_id)}))


def clear_history(db, user: dict) -> int:
    res = db["order"].delete_many({"user_id": str(user["_id"])})
    return res.deleted_count
