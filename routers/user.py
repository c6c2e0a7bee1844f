from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from catalog import product_out
from database import get_db
from security import get_current_user
from utils import envelope, oid

router = APIRouter(prefix="/api/user", tags=["user"])

WISHLIST_FIELDS = {"name": 1, "price": 1, "images": 1, "stock": 1, "is_active": 1, "brand": 1, "category": 1}
COMPARE_FIELDS = {
    "name": 1, "price": 1, "images": 1, "specifications": 1, "features": 1,
    "brand": 1, "category": 1, "rating": 1, "num_reviews": 1, "stock": 1,
}
MAX_COMPARE = 4


class WishlistRequest(BaseModel):
    product_id: str


class CompareRequest(BaseModel):
    product_ids: List[str] = Field(default_factory=list)


@router.get("/wishlist")
def get_wishlist(user: dict = Depends(get_current_user), db=Depends(get_db)):
    ids = [oid(pid) for pid in user.get("wishlist", [])]
    found = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}}, WISHLIST_FIELDS)}
    # keep the order items were added in
    wishlist = [
        product_out(found[pid]) for pid in user.get("wishlist", [])
        if pid in found and found[pid].get("is_active", True)
    ]
    return envelope({"wishlist": wishlist})


@router.post("/wishlist/add")
def add_to_wishlist(payload: WishlistRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    if payload.product_id in user.get("wishlist", []):
        raise HTTPException(status_code=400, detail="Product already in wishlist")
    if not db["product"].find_one({"_id": oid(payload.product_id)}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Product not found")

    db["user"].update_one({"_id": user["_id"]}, {"$addToSet": {"wishlist": payload.product_id}})
    wishlist = db["user"].find_one({"_id": user["_id"]}, {"wishlist": 1}).get("wishlist", [])
    return envelope({"wishlist": wishlist}, "Product added to wishlist")


@router.delete("/wishlist/remove/{product_id}")
def remove_from_wishlist(product_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    db["user"].update_one({"_id": user["_id"]}, {"$pull": {"wishlist": product_id}})
    wishlist = db["user"].find_one({"_id": user["_id"]}, {"wishlist": 1}).get("wishlist", [])
    return envelope({"wishlist": wishlist}, "Product removed from wishlist")


@router.post("/compare")
def compare_products(payload: CompareRequest, db=Depends(get_db)):
    if not payload.product_ids:
        raise HTTPException(status_code=400, detail="Product IDs are required")
    if len(payload.product_ids) > MAX_COMPARE:
        raise HTTPException(status_code=400, detail=f"Cannot compare more than {MAX_COMPARE} products")

    ids = [oid(pid) for pid in payload.product_ids]
    products = db["product"].find({"_id": {"$in": ids}, "is_active": True}, COMPARE_FIELDS)
    return envelope({"products": [product_out(p) for p in products]})
