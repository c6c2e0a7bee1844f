import os

# Must be set before the application modules read their configuration
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["DATABASE_URL"] = ""
os.environ["DATABASE_NAME"] = ""

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import chat
import database
import main
from catalog import product_slug
from schemas import Product, User
from security import create_access_token, hash_password

ADDRESS = {"street": "1 Main St", "city": "Springfield", "zip_code": "12345", "country": "US"}


@pytest.fixture
def db(monkeypatch):
    mock = mongomock.MongoClient()["kartmart_test"]
    monkeypatch.setattr(database, "db", mock)
    return mock


@pytest.fixture
def client(db):
    main.limiter.reset()
    main.auth_limiter.reset()
    chat.store.clear()
    return TestClient(main.app)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="user", password="secret123", **overrides):
        counter["n"] += 1
        fields = {
            "first_name": "Test",
            "last_name": f"User{counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "password_hash": hash_password(password),
            "role": role,
        }
        fields.update(overrides)
        user_id = database.create_document("user", User(**fields))
        return db["user"].find_one({"_id": ObjectId(user_id)})

    return _make


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "name": f"Product {counter['n']}",
            "description": "A product used in tests",
            "price": 10.0,
            "category": "electronics",
            "subcategory": "gadgets",
            "brand": "Acme",
            "sku": f"SKU-{counter['n']:03d}",
            "stock": 10,
        }
        fields.update(overrides)
        product = Product(**fields)
        if not product.slug:
            product = product.model_copy(update={"slug": product_slug(product.name, product.sku)})
        database.create_document("product", product)
        return db["product"].find_one({"sku": fields["sku"]})

    return _make


def headers_for(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user['_id']))}"}


@pytest.fixture
def address():
    return dict(ADDRESS)


@pytest.fixture
def auth_headers():
    return headers_for


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", email="admin@example.com")


@pytest.fixture
def user_headers(user):
    return headers_for(user)


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)
