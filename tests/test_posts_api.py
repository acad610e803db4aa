from datetime import datetime, timedelta

from conftest import bearer, login, signup


def _create(client, token, **overrides):
    body = {"title": "Launch day", "content": "We ship tomorrow.", "platform": "instagram"}
    body.update(overrides)
    return client.post("/posts", json=body, headers=bearer(token))


def _me(client, token):
    return client.get("/auth/me", headers=bearer(token)).json()["user"]


def test_create_post_returns_full_record(client, user_token):
    resp = _create(client, user_token, scheduledAt="2030-05-01T09:30:00Z", media="https://cdn.example.com/a.png")
    assert resp.status_code == 201
    post = resp.json()["post"]
    assert post["id"]
    assert post["title"] == "Launch day"
    assert post["content"] == "We ship tomorrow."
    assert post["platform"] == "instagram"
    assert post["scheduledAt"] == "2030-05-01T09:30:00.000Z"
    assert post["isPublished"] is False
    assert post["user"] == _me(client, user_token)["id"]
    assert post["media"] == "https://cdn.example.com/a.png"
    assert post["createdAt"] == post["updatedAt"]


def test_scheduled_at_defaults_to_now(client, user_token):
    post = _create(client, user_token).json()["post"]
    scheduled = datetime.fromisoformat(post["scheduledAt"].replace("Z", "+00:00"))
    created = datetime.fromisoformat(post["createdAt"].replace("Z", "+00:00"))
    assert abs(created - scheduled) < timedelta(seconds=5)


def test_scheduled_at_accepts_epoch_millis(client, user_token):
    post = _create(client, user_token, scheduledAt=1893456000000).json()["post"]
    assert post["scheduledAt"] == "2030-01-01T00:00:00.000Z"


def test_invalid_scheduled_at_is_rejected(client, user_token):
    resp = _create(client, user_token, scheduledAt="next tuesday")
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_scheduled_at"


def test_scheduled_at_outside_utc_range_is_rejected(client, user_token):
    for value in ("0001-01-01T00:00:00+01:00", "9999-12-31T23:59:59-05:00"):
        resp = _create(client, user_token, scheduledAt=value)
        assert resp.status_code == 400, value
        assert resp.json()["code"] == "invalid_scheduled_at"


def test_non_timestamp_scheduled_at_is_rejected(client, user_token):
    for value in (True, False, ["2030-01-01"], {"at": 1}):
        resp = _create(client, user_token, scheduledAt=value)
        assert resp.status_code == 400, value
        assert resp.json()["code"] == "invalid_scheduled_at"
    assert client.get("/posts", headers=bearer(user_token)).json()["posts"] == []


def test_client_cannot_set_owner_or_published(client, user_token, other_token):
    other_id = _me(client, other_token)["id"]
    resp = _create(client, user_token, user=other_id, isPublished=True)
    post = resp.json()["post"]
    assert post["user"] == _me(client, user_token)["id"]
    assert post["isPublished"] is False


def test_unknown_platform_lists_allowed(client, user_token):
    resp = _create(client, user_token, platform="snapchat")
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "invalid_platform"
    assert "facebook, instagram, youtube, tiktok" in body["detail"]
    assert body["details"]["allowed"] == ["facebook", "instagram", "youtube", "tiktok"]


def test_platform_is_case_insensitive(client, user_token):
    assert _create(client, user_token, platform="YouTube").json()["post"]["platform"] == "youtube"


def test_missing_fields_are_rejected(client, user_token):
    resp = client.post("/posts", json={"title": "Launch day"}, headers=bearer(user_token))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Title, content, and platform are required."


def test_title_and_content_limits(client, user_token):
    assert _create(client, user_token, title="ab").json()["code"] == "invalid_title"
    assert _create(client, user_token, title="x" * 101).json()["code"] == "invalid_title"
    assert _create(client, user_token, title="x" * 100).status_code == 201
    assert _create(client, user_token, content="y" * 2001).json()["code"] == "invalid_content"
    assert _create(client, user_token, content="y" * 2000).status_code == 201


def test_whitespace_is_trimmed(client, user_token):
    post = _create(client, user_token, title="  Launch day  ", content="  hi  ").json()["post"]
    assert post["title"] == "Launch day"
    assert post["content"] == "hi"

    # Padding does not count towards the minimum length.
    assert _create(client, user_token, title="  ab  ").status_code == 400


def test_non_http_media_is_rejected(client, user_token):
    resp = _create(client, user_token, media="file:///etc/passwd")
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_media"


def test_list_empty_is_ok(client, user_token):
    resp = client.get("/posts", headers=bearer(user_token))
    assert resp.status_code == 200
    assert resp.json()["posts"] == []


def test_list_is_own_posts_newest_first(client, user_token, other_token):
    first = _create(client, user_token, title="First post").json()["post"]
    second = _create(client, user_token, title="Second post").json()["post"]
    _create(client, other_token, title="Bob post")

    posts = client.get("/posts", headers=bearer(user_token)).json()["posts"]
    assert [p["id"] for p in posts] == [second["id"], first["id"]]


def test_get_post(client, user_token):
    post = _create(client, user_token).json()["post"]
    resp = client.get(f"/posts/{post['id']}", headers=bearer(user_token))
    assert resp.status_code == 200
    assert resp.json()["post"] == post


def test_get_missing_post_is_404(client, user_token):
    resp = client.get("/posts/does-not-exist", headers=bearer(user_token))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Post not found."


def test_any_authenticated_user_can_read_a_post(client, user_token, other_token):
    post = _create(client, user_token).json()["post"]
    assert client.get(f"/posts/{post['id']}", headers=bearer(other_token)).status_code == 200


def test_owner_updates_post(client, user_token):
    post = _create(client, user_token, scheduledAt="2030-05-01T09:30:00Z").json()["post"]
    resp = client.put(
        f"/posts/{post['id']}",
        json={"title": "New title", "content": "New body", "platform": "tiktok", "scheduledAt": "2040-01-01T00:00:00Z"},
        headers=bearer(user_token),
    )
    assert resp.status_code == 200
    updated = resp.json()["post"]
    assert updated["title"] == "New title"
    assert updated["content"] == "New body"
    assert updated["platform"] == "tiktok"
    # Not mutable through update.
    assert updated["scheduledAt"] == post["scheduledAt"]
    assert updated["user"] == post["user"]
    assert updated["isPublished"] is False
    assert updated["createdAt"] == post["createdAt"]


def test_update_validates_like_create(client, user_token):
    post = _create(client, user_token).json()["post"]
    resp = client.put(
        f"/posts/{post['id']}",
        json={"title": "New title", "content": "New body", "platform": "myspace"},
        headers=bearer(user_token),
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_platform"


def test_other_user_cannot_update(client, user_token, other_token):
    post = _create(client, user_token).json()["post"]
    resp = client.put(
        f"/posts/{post['id']}",
        json={"title": "Hijacked", "content": "x", "platform": "facebook"},
        headers=bearer(other_token),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You can only update your own posts."
    assert client.get(f"/posts/{post['id']}", headers=bearer(user_token)).json()["post"]["title"] == "Launch day"


def test_admin_can_update_any_post(client, user_token, admin_token):
    post = _create(client, user_token).json()["post"]
    resp = client.put(
        f"/posts/{post['id']}",
        json={"title": "Moderated", "content": "x", "platform": "facebook"},
        headers=bearer(admin_token),
    )
    assert resp.status_code == 200
    assert resp.json()["post"]["user"] == post["user"]


def test_update_missing_post_is_404(client, user_token):
    resp = client.put(
        "/posts/does-not-exist",
        json={"title": "New title", "content": "x", "platform": "facebook"},
        headers=bearer(user_token),
    )
    assert resp.status_code == 404


def test_owner_deletes_post(client, user_token):
    post = _create(client, user_token).json()["post"]
    resp = client.delete(f"/posts/{post['id']}", headers=bearer(user_token))
    assert resp.status_code == 200
    assert resp.json()["message"] == "Post deleted successfully."
    assert client.get(f"/posts/{post['id']}", headers=bearer(user_token)).status_code == 404
    assert client.delete(f"/posts/{post['id']}", headers=bearer(user_token)).status_code == 404


def test_other_user_cannot_delete(client, user_token, other_token):
    post = _create(client, user_token).json()["post"]
    resp = client.delete(f"/posts/{post['id']}", headers=bearer(other_token))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Not authorized to delete this post."
    assert client.get(f"/posts/{post['id']}", headers=bearer(user_token)).status_code == 200


def test_admin_can_delete_any_post(client, user_token, admin_token):
    post = _create(client, user_token).json()["post"]
    assert client.delete(f"/posts/{post['id']}", headers=bearer(admin_token)).status_code == 200


def test_posts_require_auth(client):
    assert client.post("/posts", json={"title": "abc", "content": "x", "platform": "facebook"}).status_code == 401
    assert client.get("/posts/anything").status_code == 401
    assert client.delete("/posts/anything").status_code == 401


def test_full_session(client):
    assert signup(client, "carol@example.com", name="Carol").status_code == 201
    token = login(client, "carol@example.com")

    created = client.post(
        "/posts",
        json={"title": "Morning update", "content": "Coffee first.", "platform": "facebook"},
        headers=bearer(token),
    )
    assert created.status_code == 201
    post_id = created.json()["post"]["id"]

    listed = client.get("/posts", headers=bearer(token)).json()["posts"]
    assert [p["id"] for p in listed] == [post_id]

    updated = client.put(
        f"/posts/{post_id}",
        json={"title": "Evening update", "content": "Tea now.", "platform": "facebook"},
        headers=bearer(token),
    )
    assert updated.json()["post"]["title"] == "Evening update"

    assert client.delete(f"/posts/{post_id}", headers=bearer(token)).status_code == 200
    assert client.get("/posts", headers=bearer(token)).json()["posts"] == []
