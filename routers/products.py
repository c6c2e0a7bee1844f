import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from catalog import SORT_OPTIONS, compute_rating, listing_query, product_out
from database import get_db
from security import get_current_user
from utils import envelope, paginate, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

NO_REVIEWS = {"reviews": 0}


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=500)


def find_product(db, id_or_slug: str) -> Optional[dict]:
    if ObjectId.is_valid(id_or_slug):
        product = db["product"].find_one({"_id": ObjectId(id_or_slug)})
        if product:
            return product
    return db["product"].find_one({"slug": id_or_slug.lower()})


@router.get("")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    brand: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    rating: Optional[float] = Query(None, ge=0, le=5),
    in_stock: bool = False,
    sort: str = "newest",
    db=Depends(get_db),
):
    query = listing_query(search, category, subcategory, brand, min_price, max_price, rating, in_stock)
    products, pagination = paginate(
        db["product"], query, page, limit,
        sort=SORT_OPTIONS.get(sort, SORT_OPTIONS["newest"]),
        projection=NO_REVIEWS,
    )

    price_range = list(db["product"].aggregate([
        {"$match": {"is_active": True}},
        {"$group": {"_id": None, "min": {"$min": "$price"}, "max": {"$max": "$price"}}},
    ]))
    filters = {
        "categories": sorted(db["product"].distinct("category", {"is_active": True})),
        "brands": sorted(db["product"].distinct("brand", {"is_active": True})),
        "price_range": (
            {"min": price_range[0]["min"], "max": price_range[0]["max"]}
            if price_range and price_range[0]["min"] is not None else {"min": 0, "max": 1000}
        ),
    }
    return envelope({
        "products": [product_out(p) for p in products],
        "pagination": pagination,
        "filters": filters,
    })


@router.get("/featured")
def featured_products(db=Depends(get_db)):
    items = db["product"].find({"is_featured": True, "is_active": True}, NO_REVIEWS).limit(8)
    return envelope({"products": [product_out(p) for p in items]})


@router.get("/search-suggestions")
def search_suggestions(q: str = "", db=Depends(get_db)):
    if len(q.strip()) < 2:
        return envelope({"suggestions": []})

    matches = db["product"].find(
        {"$text": {"$search": q}, "is_active": True},
        {"name": 1, "category": 1, "brand": 1},
    ).limit(5)
    suggestions = [
        {"id": str(p["_id"]), "text": p["name"], "category": p.get("category"), "brand": p.get("brand")}
        for p in matches
    ]
    return envelope({"suggestions": suggestions})


@router.get("/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    product = find_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    related = db["product"].find({
        "category": product.get("category"),
        "_id": {"$ne": product["_id"]},
        "is_active": True,
    }, NO_REVIEWS).limit(4)
    return envelope({
        "product": product_out(product),
        "related_products": [product_out(p) for p in related],
    })


@router.post("/{product_id}/reviews", status_code=201)
def add_review(product_id: str, payload: ReviewRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    product = find_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    user_id = str(user["_id"])
    pid = str(product["_id"])
    review = {
        "id": str(ObjectId()),
        "user_id": user_id,
        "user_name": f"{user.get('first_name', '')} {user.get('last_name', '')}".strip(),
        "rating": payload.rating,
        "comment": payload.comment,
        "helpful": [],
        "verified": db["order"].count_documents({"user_id": user_id, "order_items.product_id": pid}) > 0,
        "created_at": utcnow(),
    }
    res = db["product"].update_one(
        {"_id": product["_id"], "reviews.user_id": {"$ne": user_id}},
        {"$push": {"reviews": review}},
    )
    if res.modified_count == 0:
        raise HTTPException(status_code=400, detail="You have already reviewed this product")

    reviews = db["product"].find_one({"_id": product["_id"]}, {"reviews": 1}).get("reviews", [])
    db["product"].update_one(
        {"_id": product["_id"]},
        {"$set": {**compute_rating(reviews), "updated_at": utcnow()}},
    )
    logger.info("User %s reviewed product %s", user_id, pid)
    return envelope({"review": review}, "Review added successfully")
