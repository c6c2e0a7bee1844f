def add(client, headers, product, quantity=1):
    return client.post(
        "/api/cart/add", json={"product_id": str(product["_id"]), "quantity": quantity}, headers=headers
    )


def test_cart_requires_login(client):
    res = client.get("/api/cart")
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Not authorized, no token"}


def test_add_item_populates_product(client, make_product, user_headers):
    p = make_product(name="Mug", price=12.0, stock=5)

    res = add(client, user_headers, p, 2)

    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Item added to cart successfully"
    line = body["data"]["cart"][0]
    assert line["quantity"] == 2
    assert line["product"]["name"] == "Mug"
    assert line["product"]["price"] == 12.0


def test_adding_same_product_merges_quantity(client, db, user, make_product, user_headers):
    p = make_product(stock=5)

    add(client, user_headers, p, 2)
    res = add(client, user_headers, p, 2)

    assert [line["quantity"] for line in res.json()["data"]["cart"]] == [4]
    assert len(db["user"].find_one({"_id": user["_id"]})["cart"]) == 1


def test_add_beyond_stock_is_rejected(client, make_product, user_headers):
    p = make_product(stock=3)

    res = add(client, user_headers, p, 4)
    assert res.status_code == 400
    assert res.json()["message"] == "Only 3 items available in stock"

    add(client, user_headers, p, 2)
    res = add(client, user_headers, p, 2)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot add more items. Only 3 available in stock"


def test_add_inactive_product_is_rejected(client, make_product, user_headers):
    p = make_product(is_active=False)
    res = add(client, user_headers, p)
    assert res.status_code == 404
    assert res.json()["message"] == "Product not found or inactive"


def test_update_quantity(client, make_product, user_headers):
    p = make_product(stock=5)
    add(client, user_headers, p, 1)

    res = client.put("/api/cart/update", json={"product_id": str(p["_id"]), "quantity": 5}, headers=user_headers)
    assert res.json()["data"]["cart"][0]["quantity"] == 5

    res = client.put("/api/cart/update", json={"product_id": str(p["_id"]), "quantity": 6}, headers=user_headers)
    assert res.status_code == 400


def test_update_item_not_in_cart(client, make_product, user_headers):
    p = make_product()
    res = client.put("/api/cart/update", json={"product_id": str(p["_id"]), "quantity": 1}, headers=user_headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Item not found in cart"


def test_remove_item(client, make_product, user_headers):
    a, b = make_product(), make_product()
    add(client, user_headers, a)
    add(client, user_headers, b)

    res = client.delete(f"/api/cart/remove/{a['_id']}", headers=user_headers)
    assert [line["product"]["id"] for line in res.json()["data"]["cart"]] == [str(b["_id"])]

    res = client.delete(f"/api/cart/remove/{a['_id']}", headers=user_headers)
    assert res.status_code == 404


def test_clear_cart(client, db, user, make_product, user_headers):
    add(client, user_headers, make_product())

    res = client.delete("/api/cart/clear", headers=user_headers)

    assert res.json()["data"] == {"cart": []}
    assert db["user"].find_one({"_id": user["_id"]})["cart"] == []


def test_get_cart_drops_deactivated_products(client, db, user, make_product, user_headers):
    keep, gone = make_product(), make_product()
    add(client, user_headers, keep)
    add(client, user_headers, gone)
    db["product"].update_one({"_id": gone["_id"]}, {"$set": {"is_active": False}})

    res = client.get("/api/cart", headers=user_headers)

    assert [line["product"]["id"] for line in res.json()["data"]["cart"]] == [str(keep["_id"])]
    stored = db["user"].find_one({"_id": user["_id"]})["cart"]
    assert [item["product_id"] for item in stored] == [str(keep["_id"])]


def test_invalid_product_id(client, user_headers):
    res = client.post("/api/cart/add", json={"product_id": "nope", "quantity": 1}, headers=user_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid id"
