def test_wishlist_add_and_list(client, make_product, user_headers):
    first, second = make_product(name="First"), make_product(name="Second")

    client.post("/api/user/wishlist/add", json={"product_id": str(second["_id"])}, headers=user_headers)
    res = client.post("/api/user/wishlist/add", json={"product_id": str(first["_id"])}, headers=user_headers)

    assert res.json()["data"]["wishlist"] == [str(second["_id"]), str(first["_id"])]

    listed = client.get("/api/user/wishlist", headers=user_headers).json()["data"]["wishlist"]
    assert [p["name"] for p in listed] == ["Second", "First"]
    assert listed[0]["in_stock"] is True


def test_wishlist_duplicate_is_rejected(client, db, user, make_product, user_headers):
    p = make_product()
    body = {"product_id": str(p["_id"])}

    client.post("/api/user/wishlist/add", json=body, headers=user_headers)
    res = client.post("/api/user/wishlist/add", json=body, headers=user_headers)

    assert res.status_code == 400
    assert res.json()["message"] == "Product already in wishlist"
    assert db["user"].find_one({"_id": user["_id"]})["wishlist"] == [str(p["_id"])]


def test_wishlist_unknown_product(client, user_headers):
    res = client.post("/api/user/wishlist/add", json={"product_id": "0" * 24}, headers=user_headers)
    assert res.status_code == 404


def test_wishlist_hides_inactive_products(client, db, make_product, user_headers):
    p = make_product()
    client.post("/api/user/wishlist/add", json={"product_id": str(p["_id"])}, headers=user_headers)
    db["product"].update_one({"_id": p["_id"]}, {"$set": {"is_active": False}})

    assert client.get("/api/user/wishlist", headers=user_headers).json()["data"]["wishlist"] == []


def test_wishlist_remove(client, make_product, user_headers):
    p = make_product()
    client.post("/api/user/wishlist/add", json={"product_id": str(p["_id"])}, headers=user_headers)

    res = client.delete(f"/api/user/wishlist/remove/{p['_id']}", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["data"]["wishlist"] == []


def test_wishlist_requires_login(client):
    assert client.get("/api/user/wishlist").status_code == 401


def test_compare_products(client, make_product):
    a = make_product(specifications={"Weight": "1kg"})
    b = make_product()
    inactive = make_product(is_active=False)

    res = client.post(
        "/api/user/compare",
        json={"product_ids": [str(a["_id"]), str(b["_id"]), str(inactive["_id"])]},
    )

    assert res.status_code == 200
    products = res.json()["data"]["products"]
    assert sorted(p["id"] for p in products) == sorted([str(a["_id"]), str(b["_id"])])
    assert {"specifications", "features", "rating"} <= set(products[0])


def test_compare_limits(client, make_product):
    res = client.post("/api/user/compare", json={"product_ids": []})
    assert res.status_code == 400
    assert res.json()["message"] == "Product IDs are required"

    ids = [str(make_product()["_id"]) for _ in range(5)]
    res = client.post("/api/user/compare", json={"product_ids": ids})
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot compare more than 4 products"
