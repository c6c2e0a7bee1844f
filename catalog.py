"""
Product catalog rules: slugs, computed fields and review aggregation.
"""
import time
from typing import List, Optional

from utils import serialize, slugify


def product_slug(name: str, sku: Optional[str]) -> str:
    base = slugify(name) or "product"
    suffix = sku.strip().lower() if sku else str(int(time.time() * 1000))
    return f"{base}-{suffix}"


def is_low_stock(product: dict) -> bool:
    stock = product.get("stock", 0)
    return 0 < stock <= product.get("low_stock_threshold", 10)


def discount_percentage(product: dict) -> int:
    price = product.get("price") or 0
    compare_price = product.get("compare_price")
    if compare_price and compare_price > price:
        return round((compare_price - price) / compare_price * 100)
    return 0


def product_out(doc: dict) -> dict:
    """Serialize a product document together with its computed fields."""
    data = serialize(doc)
    if data is None:
        return None
    if "stock" in data:
        data["in_stock"] = data["stock"] > 0
        data["is_low_stock"] = is_low_stock(data)
    if "price" in data:
        data["discount_percentage"] = discount_percentage(data)
    return data


def compute_rating(reviews: List[dict]) -> dict:
    """Mean review rating rounded to one decimal, and the review count."""
    if not reviews:
        return {"rating": 0, "num_reviews": 0}
    total = sum(r["rating"] for r in reviews)
    return {"rating": round(total / len(reviews), 1), "num_reviews": len(reviews)}


SORT_OPTIONS = {
    "price_asc": [("price", 1)],
    "price_desc": [("price", -1)],
    "rating": [("rating", -1)],
    "newest": [("created_at", -1)],
    "popular": [("sales_count", -1)],
}


def listing_query(
    search: Optional[str] = None,
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    brand: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    rating: Optional[float] = None,
    in_stock: bool = False,
) -> dict:
    query = {"is_active": True}
    if search:
        query["$text"] = {"$search": search}
    if category and category != "all":
        query["category"] = category
    if subcategory:
        query["subcategory"] = subcategory
    if brand:
        query["brand"] = brand
    if min_price is not None or max_price is not None:
        query["price"] = {}
        if min_price is not None:
            query["price"]["$gte"] = min_price
        if max_price is not None:
            query["price"]["$lte"] = max_price
    if rating is not None:
        query["rating"] = {"$gte": rating}
    if in_stock:
        query["stock"] = {"$gt": 0}
    return query
