from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import get_db
from security import get_current_user
from utils import envelope, oid, serialize, utcnow

router = APIRouter(prefix="/api/cart", tags=["cart"])

CART_PRODUCT_FIELDS = {
    "name": 1, "price": 1, "images": 1, "stock": 1, "is_active": 1, "description": 1, "brand": 1,
}


class CartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


def populate_cart(db, user: dict) -> List[dict]:
    """Attach product details to each cart line.

    Lines whose product was deleted or deactivated are dropped and the pruned
    cart is written back.
    """
    cart = user.get("cart", [])
    ids = [oid(item["product_id"]) for item in cart]
    products = {
        str(p["_id"]): p
        for p in db["product"].find({"_id": {"$in": ids}}, CART_PRODUCT_FIELDS)
    }

    kept, lines = [], []
    for item in cart:
        product = products.get(item["product_id"])
        if not product or not product.get("is_active", True):
            continue
        kept.append(item)
        lines.append({
            "product": serialize(product),
            "quantity": item["quantity"],
            "added_at": item.get("added_at"),
        })

    if len(kept) != len(cart):
        db["user"].update_one({"_id": user["_id"]}, {"$set": {"cart": kept}})
    return lines


def _load_product(db, product_id: str, require_active: bool = True) -> dict:
    product = db["product"].find_one({"_id": oid(product_id)})
    if not product or (require_active and not product.get("is_active", True)):
        raise HTTPException(status_code=404, detail="Product not found or inactive")
    return product


@router.get("")
def get_cart(user: dict = Depends(get_current_user), db=Depends(get_db)):
    return envelope({"cart": populate_cart(db, user)})


@router.post("/add")
def add_to_cart(payload: CartItemRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    product = _load_product(db, payload.product_id)
    stock = product.get("stock", 0)
    if stock < payload.quantity:
        raise HTTPException(status_code=400, detail=f"Only {stock} items available in stock")

    cart = user.get("cart", [])
    existing = next((item for item in cart if item["product_id"] == payload.product_id), None)
    if existing:
        new_quantity = existing["quantity"] + payload.quantity
        if new_quantity > stock:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot add more items. Only {stock} available in stock",
            )
        existing["quantity"] = new_quantity
    else:
        cart.append({"product_id": payload.product_id, "quantity": payload.quantity, "added_at": utcnow()})

    db["user"].update_one({"_id": user["_id"]}, {"$set": {"cart": cart}})
    user["cart"] = cart
    return envelope({"cart": populate_cart(db, user)}, "Item added to cart successfully")


@router.put("/update")
def update_cart_item(payload: CartItemRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    product = db["product"].find_one({"_id": oid(payload.product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if payload.quantity > product.get("stock", 0):
        raise HTTPException(status_code=400, detail=f"Only {product.get('stock', 0)} items available in stock")

    cart = user.get("cart", [])
    existing = next((item for item in cart if item["product_id"] == payload.product_id), None)
    if not existing:
        raise HTTPException(status_code=404, detail="Item not found in cart")
    existing["quantity"] = payload.quantity

    db["user"].update_one({"_id": user["_id"]}, {"$set": {"cart": cart}})
    user["cart"] = cart
    return envelope({"cart": populate_cart(db, user)}, "Cart updated successfully")


@router.delete("/remove/{product_id}")
def remove_from_cart(product_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    cart = user.get("cart", [])
    remaining = [item for item in cart if item["product_id"] != product_id]
    if len(remaining) == len(cart):
        raise HTTPException(status_code=404, detail="Item not found in cart")

    db["user"].update_one({"_id": user["_id"]}, {"$set": {"cart": remaining}})
    user["cart"] = remaining
    return envelope({"cart": populate_cart(db, user)}, "Item removed from cart successfully")


@router.delete("/clear")
def clear_cart(user: dict = Depends(get_current_user), db=Depends(get_db)):
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"cart": []}})
    return envelope({"cart": []}, "Cart cleared successfully")
