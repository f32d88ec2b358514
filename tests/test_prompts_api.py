from datetime import timedelta

from tests.utils.auth import build_auth_headers


def _save(client, user_id: int, title: str, headers=None):
    return client.post(
        "/api/prompts",
        headers=headers or build_auth_headers(user_id),
        json={
            "userId": user_id,
            "title": title,
            "content": f"Content of {title}",
            "iaType": "ChatGPT",
            "category": "Marketing",
            "level": "Avançado",
        },
    )


def test_prompt_round_trip_newest_first(client, make_user):
    user = make_user()
    ids = []
    for title in ("first", "second", "third"):
        resp = _save(client, user.id, title)
        assert resp.status_code == 200
        ids.append(resp.json()["id"])

    resp = client.get(f"/api/prompts/{user.id}", headers=build_auth_headers(user.id))
    assert resp.status_code == 200
    items = resp.json()
    assert [p["id"] for p in items] == list(reversed(ids))
    newest = items[0]
    assert newest["title"] == "third"
    assert newest["ia_type"] == "ChatGPT"
    assert newest["category"] == "Marketing"
    assert newest["level"] == "Avançado"
    assert newest["is_favorite"] is False
    assert newest["user_id"] == user.id


def test_prompt_list_is_per_user(client, make_user):
    owner = make_user()
    other = make_user()
    _save(client, owner.id, "mine")
    resp = client.get(f"/api/prompts/{other.id}", headers=build_auth_headers(other.id))
    assert resp.json() == []
    resp = client.get(f"/api/prompts/{owner.id}", headers=build_auth_headers(other.id))
    assert resp.status_code == 401


def test_delete_prompt(client, make_user):
    user = make_user()
    headers = build_auth_headers(user.id)
    keep = _save(client, user.id, "keep").json()["id"]
    drop = _save(client, user.id, "drop").json()["id"]

    resp = client.delete(f"/api/prompts/{drop}", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    ids = [p["id"] for p in client.get(f"/api/prompts/{user.id}", headers=headers).json()]
    assert ids == [keep]


def test_delete_missing_prompt_is_noop(client, make_user):
    user = make_user()
    resp = client.delete("/api/prompts/987654", headers=build_auth_headers(user.id))
    assert resp.status_code == 200
    assert resp.json() == {"success": True}


def test_delete_other_users_prompt_leaves_it(client, make_user):
    owner = make_user()
    intruder = make_user()
    prompt_id = _save(client, owner.id, "private").json()["id"]
    client.delete(f"/api/prompts/{prompt_id}", headers=build_auth_headers(intruder.id))
    items = client.get(f"/api/prompts/{owner.id}", headers=build_auth_headers(owner.id)).json()
    assert [p["id"] for p in items] == [prompt_id]


def test_toggle_favorite(client, make_user):
    user = make_user()
    headers = build_auth_headers(user.id)
    prompt_id = _save(client, user.id, "fav").json()["id"]

    resp = client.patch(
        f"/api/prompts/{prompt_id}/favorite", headers=headers, json={"isFavorite": True}
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    items = client.get(f"/api/prompts/{user.id}", headers=headers).json()
    assert items[0]["is_favorite"] is True

    client.patch(
        f"/api/prompts/{prompt_id}/favorite", headers=headers, json={"isFavorite": False}
    )
    items = client.get(f"/api/prompts/{user.id}", headers=headers).json()
    assert items[0]["is_favorite"] is False


def test_favorite_missing_prompt(client, make_user):
    user = make_user()
    resp = client.patch(
        "/api/prompts/987654/favorite",
        headers=build_auth_headers(user.id),
        json={"isFavorite": True},
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "NOT_FOUND"


def test_saving_requires_authentication(client, make_user):
    user = make_user()
    resp = client.post(
        "/api/prompts",
        json={"userId": user.id, "title": "t", "content": "c"},
    )
    assert resp.status_code == 401


def test_expired_user_is_sent_to_checkout(client, clock, make_user):
    user = make_user(
        trial_ends_at=clock.now - timedelta(hours=1),
        subscription_ends_at=clock.now - timedelta(days=2),
    )
    for title in ("a", "b", "c"):
        resp = _save(client, user.id, title)
        assert resp.status_code == 402
        detail = resp.json()["detail"]
        assert detail["code"] == "SUBSCRIPTION_REQUIRED"
        assert detail["checkout_url"] == "/checkout"
    items = client.get(f"/api/prompts/{user.id}", headers=build_auth_headers(user.id)).json()
    assert items == []


def test_gate_rechecks_every_request(client, clock, make_user):
    user = make_user(trial_ends_at=clock.now + timedelta(minutes=1))
    assert _save(client, user.id, "during trial").status_code == 200
    clock.advance(minutes=1)
    assert _save(client, user.id, "at expiry").status_code == 402


def test_subscriber_passes_gate(client, clock, make_user):
    user = make_user(
        trial_ends_at=clock.now - timedelta(days=5),
        subscription_ends_at=clock.now + timedelta(days=10),
    )
    assert _save(client, user.id, "paid").status_code == 200


def test_invalid_prompt_body(client, make_user):
    user = make_user()
    resp = client.post(
        "/api/prompts",
        headers=build_auth_headers(user.id),
        content=b"{not json",
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "BAD_REQUEST"
