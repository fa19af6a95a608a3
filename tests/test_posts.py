def _create_post(client, headers, description="Sunset at the beach", category="travel"):
    res = client.post("/api/posts", json={"description": description, "category": category}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["post"]


def test_create_post_requires_description(client, alice):
    _, headers = alice
    res = client.post("/api/posts", json={"description": "   ", "category": "travel"}, headers=headers)
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Post description is required"}

    res = client.post("/api/posts", json={"category": "travel"}, headers=headers)
    assert res.status_code == 400


def test_create_and_fetch_post(client, alice):
    user, headers = alice
    post = _create_post(client, headers, description="  trimmed  ")
    assert post["description"] == "trimmed"
    assert post["author"] == str(user["_id"])
    assert post["loveCount"] == 0

    res = client.get(f"/api/posts/{post['id']}", headers=headers)
    assert res.status_code == 200
    fetched = res.json()["post"]
    assert fetched["author"]["name"] == "Alice"
    assert "uid" not in fetched["author"]


def test_invalid_post_id(client, alice):
    _, headers = alice
    res = client.get("/api/posts/not-an-id", headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid id"


def test_non_owner_cannot_update_post(client, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    post = _create_post(client, alice_headers, description="original")

    res = client.patch(f"/api/posts/{post['id']}", json={"description": "hijacked"}, headers=bob_headers)
    assert res.status_code == 403

    res = client.get(f"/api/posts/{post['id']}", headers=alice_headers)
    assert res.json()["post"]["description"] == "original"


def test_owner_and_admin_can_update_post(client, alice, admin):
    _, alice_headers = alice
    _, admin_headers = admin
    post = _create_post(client, alice_headers)

    res = client.patch(f"/api/posts/{post['id']}", json={"description": "edited"}, headers=alice_headers)
    assert res.status_code == 200
    assert res.json()["post"]["description"] == "edited"

    res = client.patch(f"/api/posts/{post['id']}", json={"category": "food"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["post"]["category"] == "food"


def test_update_post_needs_a_field(client, alice):
    _, headers = alice
    post = _create_post(client, headers)
    res = client.patch(f"/api/posts/{post['id']}", json={}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Provide at least one field to update"

    res = client.patch(f"/api/posts/{post['id']}", json={"description": None}, headers=headers)
    assert res.status_code == 400


def test_love_toggle_round_trip(client, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    post = _create_post(client, alice_headers)
    url = f"/api/posts/{post['id']}/love"

    first = client.patch(url, headers=bob_headers).json()
    assert first["isLoved"] is True
    assert first["loveCount"] == 1

    client.patch(url, headers=alice_headers)
    second = client.patch(url, headers=bob_headers).json()
    assert second["isLoved"] is False
    assert second["loveCount"] == 1

    third = client.patch(url, headers=alice_headers).json()
    assert third == {"success": True, "message": "Post unloved", "loveCount": 0, "isLoved": False}


def test_list_posts_paginates_and_filters_by_category(client, alice):
    _, headers = alice
    for i in range(3):
        _create_post(client, headers, description=f"post {i}", category="travel")
    _create_post(client, headers, description="lunch", category="food")

    res = client.get("/api/posts?page=1&limit=2", headers=headers).json()
    assert res["totalPosts"] == 4
    assert res["totalPages"] == 2
    assert len(res["posts"]) == 2
    assert res["posts"][0]["author"]["email"] == "alice@example.com"

    res = client.get("/api/posts/category/food", headers=headers).json()
    assert res["totalPosts"] == 1
    assert res["posts"][0]["description"] == "lunch"


def test_delete_post_hides_it_and_removes_comments(client, alice, bob, mongo_db):
    _, alice_headers = alice
    _, bob_headers = bob
    post = _create_post(client, alice_headers)
    client.post(f"/api/posts/comment/{post['id']}", json={"content": "nice"}, headers=bob_headers)

    assert client.delete(f"/api/posts/{post['id']}", headers=bob_headers).status_code == 403

    res = client.delete(f"/api/posts/{post['id']}", headers=alice_headers)
    assert res.status_code == 200
    assert client.get(f"/api/posts/{post['id']}", headers=alice_headers).status_code == 404
    assert mongo_db["comment"].count_documents({}) == 0
    assert mongo_db["post"].count_documents({"isActive": False}) == 1


def test_comments_and_replies(client, alice, bob, mongo_db):
    _, alice_headers = alice
    _, bob_headers = bob
    post = _create_post(client, alice_headers)
    url = f"/api/posts/comment/{post['id']}"

    assert client.post(url, json={"content": " "}, headers=bob_headers).status_code == 400

    top = client.post(url, json={"content": "first!"}, headers=bob_headers)
    assert top.status_code == 201
    top = top.json()["comment"]
    assert top["parentComment"] is None

    reply = client.post(url, json={"content": "thanks", "parentCommentId": top["id"]}, headers=alice_headers)
    assert reply.status_code == 201

    comments = client.get(url, headers=alice_headers).json()
    assert [c["content"] for c in comments["comments"]] == ["first!"]
    assert comments["comments"][0]["author"]["name"] == "Bob"

    replies = client.get(f"/api/posts/comment/replies/{top['id']}", headers=alice_headers).json()["replies"]
    assert [r["content"] for r in replies] == ["thanks"]

    stored = client.get(f"/api/posts/{post['id']}", headers=alice_headers).json()["post"]
    assert stored["commentsCount"] == 2


def test_reply_requires_existing_parent(client, alice):
    _, headers = alice
    post = _create_post(client, headers)
    other = _create_post(client, headers)
    top = client.post(f"/api/posts/comment/{other['id']}", json={"content": "elsewhere"}, headers=headers).json()

    res = client.post(f"/api/posts/comment/{post['id']}",
                      json={"content": "reply", "parentCommentId": top["comment"]["id"]}, headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Parent comment not found"
