"""
Seed the catalog with sample categories and products.

    python seed.py

Existing products and categories are dropped first.
"""
import logging
import sys

import database
from catalog import product_slug
from schemas import Category, Product

logger = logging.getLogger("kartmart.seed")

SEED_CATEGORIES = [
    Category(name="Electronics", slug="electronics", description="Latest electronic gadgets and devices", sort_order=1),
    Category(name="Accessories", slug="accessories", description="Fashion and lifestyle accessories", sort_order=2),
    Category(name="Clothing", slug="clothing", description="Fashion apparel for all occasions", sort_order=3),
    Category(name="Home", slug="home", description="Home and kitchen essentials", sort_order=4),
]

SEED_PRODUCTS = [
    Product(
        name="Premium Wireless Headphones",
        description="High-quality wireless headphones with active noise cancellation, "
                    "premium comfort, and up to 30 hours of battery life.",
        price=299.99,
        compare_price=349.99,
        category="electronics",
        subcategory="headphones",
        brand="AudioTech",
        sku="AT-WH-001",
        images=[{
            "public_id": "sample_headphones",
            "url": "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=600",
            "alt": "Premium Wireless Headphones",
        }],
        specifications={
            "Driver Size": "40mm",
            "Frequency Response": "20Hz - 20kHz",
            "Battery Life": "30 hours",
            "Connectivity": "Bluetooth 5.0",
        },
        features=["Active Noise Cancellation", "30-hour battery life", "Fast charging capability"],
        stock=50,
        is_featured=True,
    ),
    Product(
        name="Smart Watch Pro",
        description="Advanced smartwatch with health monitoring features, GPS tracking, "
                    "and seamless smartphone integration.",
        price=399.99,
        category="electronics",
        subcategory="wearables",
        brand="TechWear",
        sku="TW-SW-002",
        images=[{
            "public_id": "sample_smartwatch",
            "url": "https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=600",
            "alt": "Smart Watch Pro",
        }],
        specifications={"Display": "1.4-inch AMOLED", "Battery Life": "7 days", "Water Resistance": "5ATM"},
        features=["Heart rate monitoring", "Built-in GPS", "Sleep tracking"],
        stock=8,
        is_featured=True,
    ),
    Product(
        name="Leather Laptop Sleeve",
        description="Slim full-grain leather sleeve with a soft microfiber lining for 13-15 inch laptops.",
        price=59.99,
        category="accessories",
        subcategory="bags",
        brand="CarryCo",
        sku="CC-LS-003",
        images=[{
            "public_id": "sample_sleeve",
            "url": "https://images.unsplash.com/photo-1553062407-98eeb64c6a62?w=600",
            "alt": "Leather Laptop Sleeve",
        }],
        features=["Full-grain leather", "Microfiber lining", "Magnetic closure"],
        stock=120,
    ),
    Product(
        name="Organic Cotton Hoodie",
        description="Relaxed-fit hoodie made from certified organic cotton with a brushed fleece interior.",
        price=79.0,
        compare_price=95.0,
        category="clothing",
        subcategory="hoodies",
        brand="GreenThread",
        sku="GT-HD-004",
        images=[{
            "public_id": "sample_hoodie",
            "url": "https://images.unsplash.com/photo-1556821840-3a63f95609a7?w=600",
            "alt": "Organic Cotton Hoodie",
        }],
        features=["Organic cotton", "Kangaroo pocket", "Ribbed cuffs"],
        stock=35,
    ),
    Product(
        name="Pour-Over Coffee Kit",
        description="Glass carafe, stainless filter and gooseneck kettle for slow, clean coffee at home.",
        price=89.5,
        category="home",
        subcategory="kitchen",
        brand="BrewHaus",
        sku="BH-PO-005",
        images=[{
            "public_id": "sample_coffee",
            "url": "https://images.unsplash.com/photo-1495474472287-4d71bcdd2085?w=600",
            "alt": "Pour-Over Coffee Kit",
        }],
        features=["Borosilicate glass", "Reusable filter", "Temperature-stable kettle"],
        stock=0,
    ),
]


def seed():
    if database.db is None:
        logger.error("DATABASE_URL and DATABASE_NAME must be set to seed the database")
        return 1

    database.db["product"].drop()
    database.db["category"].drop()
    logger.info("Cleared existing products and categories")

    for category in SEED_CATEGORIES:
        database.create_document("category", category)
    logger.info("Seeded %d categories", len(SEED_CATEGORIES))

    for product in SEED_PRODUCTS:
        database.create_document("product", product.model_copy(update={
            "slug": product.slug or product_slug(product.name, product.sku),
        }))
    logger.info("Seeded %d products", len(SEED_PRODUCTS))

    database.ensure_indexes()
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    sys.exit(seed())
