import pytest


@pytest.fixture
def category(client, admin):
    _, headers = admin
    res = client.post("/api/categories", json={"name": "Outdoor Gear"}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["category"]


def _product_body(cat, **overrides):
    body = {
        "name": "Trail Boots",
        "price": 100,
        "category": cat["id"],
        "images": ["https://img.test/boots.png"],
        "stock": 5,
    }
    body.update(overrides)
    return body


def _create(client, headers, body):
    res = client.post("/api/products", json=body, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["product"]


def test_create_product_from_json(client, admin, category):
    _, headers = admin
    product = _create(client, headers, _product_body(
        category,
        discountPrice="80",
        specifications=["color:red", "color:blue"],
        badges="NEW, bogus, sale",
        colorVariants=[{"name": "Black", "hex": "#000"}, "Sand"],
    ))
    assert product["slug"] == "trail-boots"
    assert product["price"] == 100
    assert product["discountPrice"] == 80
    assert product["specifications"] == [{"key": "color", "value": "blue"}]
    assert product["badges"] == ["new", "sale"]
    assert product["colorVariants"] == [{"name": "Black", "code": "#000"}, {"name": "Sand"}]
    assert product["category"] == {"id": category["id"], "name": "Outdoor Gear", "slug": "outdoor-gear"}
    assert product["ratings"] == {"average": 0, "totalReviews": 0}


def test_create_product_from_multipart(client, admin, category, storage):
    _, headers = admin
    res = client.post(
        "/api/products",
        data={
            "name": "Camp Stove",
            "price": "45.5",
            "category": "outdoor-gear",
            "specifications[0][key]": "fuel",
            "specifications[0][value]": "gas",
            "badges[0]": "featured",
        },
        files=[("images", ("stove.png", b"fake-png", "image/png"))],
        headers=headers,
    )
    assert res.status_code == 201, res.text
    product = res.json()["product"]
    assert product["price"] == 45.5
    assert product["images"] == ["https://cdn.test/products/stove.png"]
    assert product["specifications"] == [{"key": "fuel", "value": "gas"}]
    assert product["badges"] == ["featured"]
    assert storage.saved == ["https://cdn.test/products/stove.png"]


def test_create_product_validation(client, admin, category):
    _, headers = admin

    res = client.post("/api/products", json=_product_body(category, name="  "), headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Product name is required"

    res = client.post("/api/products", json=_product_body(category, price="cheap"), headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Valid product price is required"

    res = client.post("/api/products", json=_product_body(category, discountPrice=150), headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Discount price cannot exceed price"

    res = client.post("/api/products", json=_product_body(category, images=[]), headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "At least one product image is required"

    res = client.post("/api/products", json=_product_body(category, category="nowhere"), headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Category not found"


def test_too_many_uploaded_images(client, admin, category):
    _, headers = admin
    files = [("images", (f"{i}.png", b"x", "image/png")) for i in range(4)]
    res = client.post("/api/products", data={"name": "Tent", "price": "10"}, files=files, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "You can upload up to 3 images per product"


def test_rejects_non_image_upload(client, admin):
    _, headers = admin
    files = [("images", ("notes.txt", b"x", "text/plain"))]
    res = client.post("/api/products", data={"name": "Tent", "price": "10"}, files=files, headers=headers)
    assert res.status_code == 400


def test_duplicate_slug_conflicts(client, admin, category):
    _, headers = admin
    _create(client, headers, _product_body(category))
    res = client.post("/api/products", json=_product_body(category, name="Trail  Boots!"), headers=headers)
    assert res.status_code == 409
    assert res.json()["message"] == "Product slug must be unique"


def test_only_admin_creates_products(client, alice, category):
    _, headers = alice
    res = client.post("/api/products", json=_product_body(category), headers=headers)
    assert res.status_code == 403


def test_list_products_is_public_and_filters(client, admin, category):
    _, headers = admin
    _create(client, headers, _product_body(category, badges=["sale"]))
    _create(client, headers, _product_body(category, name="Rain Jacket", price=250))

    res = client.get("/api/products")
    assert res.status_code == 200
    data = res.json()
    assert data["total"] == 2
    assert "reviews" not in data["products"][0]

    assert client.get("/api/products?search=jack").json()["total"] == 1
    assert client.get("/api/products?minPrice=200").json()["products"][0]["name"] == "Rain Jacket"
    assert client.get("/api/products?badge=SALE").json()["total"] == 1
    assert client.get("/api/products?category=outdoor-gear").json()["total"] == 2
    assert client.get("/api/products?category=unknown").json()["total"] == 0
    assert client.get("/api/products?search=(").json()["total"] == 0


def test_get_product_by_id_or_slug(client, admin, alice, category):
    _, admin_headers = admin
    _, alice_headers = alice
    product = _create(client, admin_headers, _product_body(category))

    res = client.get("/api/products/trail-boots")
    assert res.status_code == 200
    assert res.json()["isLoved"] is False

    client.patch(f"/api/products/{product['id']}/love", headers=alice_headers)
    res = client.get(f"/api/products/{product['id']}", headers=alice_headers)
    assert res.json()["isLoved"] is True

    assert client.get("/api/products/missing-slug").status_code == 404


def test_update_product(client, admin, category):
    _, headers = admin
    product = _create(client, headers, _product_body(category, discountPrice=90))
    url = f"/api/products/{product['id']}"

    res = client.put(url, json={}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Provide at least one field to update"
    res = client.put(url, json={"unknown": 1}, headers=headers)
    assert res.status_code == 400

    res = client.put(url, json={"price": 50}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Discount price cannot exceed price"

    res = client.put(url, json={"name": "Summit Boots", "price": 120, "badges": [], "isActive": "true"},
                     headers=headers)
    assert res.status_code == 200
    updated = res.json()["product"]
    assert updated["slug"] == "summit-boots"
    assert updated["price"] == 120
    assert updated["badges"] == []

    res = client.put(url, json={"images": []}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Product must retain at least one image"

    res = client.put(url, json={"category": ""}, headers=headers)
    assert res.json()["product"]["category"] is None


def test_delete_product_is_soft(client, admin, category, mongo_db):
    _, headers = admin
    product = _create(client, headers, _product_body(category))
    assert client.delete(f"/api/products/{product['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/products/{product['id']}").status_code == 404
    assert mongo_db["product"].count_documents({}) == 1


def test_review_upserts_per_user(client, admin, alice, bob, category):
    _, admin_headers = admin
    _, alice_headers = alice
    _, bob_headers = bob
    product = _create(client, admin_headers, _product_body(category))
    url = f"/api/products/{product['id']}/review"

    client.post(url, json={"rating": 3, "comment": "ok"}, headers=alice_headers)
    res = client.post(url, json={"rating": 5, "comment": "great"}, headers=alice_headers)
    assert res.status_code == 200
    reviewed = res.json()["product"]
    assert reviewed["ratings"] == {"average": 5, "totalReviews": 1}
    assert reviewed["reviews"][0]["user"]["name"] == "Alice"
    assert reviewed["reviews"][0]["comment"] == "great"

    res = client.post(url, json={"rating": 4}, headers=bob_headers)
    assert res.json()["product"]["ratings"] == {"average": 4.5, "totalReviews": 2}


def test_review_rating_bounds(client, admin, alice, category):
    _, admin_headers = admin
    _, alice_headers = alice
    product = _create(client, admin_headers, _product_body(category))
    url = f"/api/products/{product['id']}/review"
    for rating in (0, 6, "x", None):
        res = client.post(url, json={"rating": rating}, headers=alice_headers)
        assert res.status_code == 400
        assert res.json()["message"] == "Rating must be between 1 and 5"

    res = client.post("/api/products/bad-id/review", json={"rating": 3}, headers=alice_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid product id"


def test_love_toggle(client, admin, alice, category):
    _, admin_headers = admin
    _, alice_headers = alice
    product = _create(client, admin_headers, _product_body(category))
    url = f"/api/products/{product['id']}/love"

    first = client.patch(url, headers=alice_headers).json()
    assert (first["loved"], first["loveCount"]) == (True, 1)
    second = client.patch(url, headers=alice_headers).json()
    assert (second["loved"], second["loveCount"]) == (False, 0)
