"""Fusion routes — HTTP contract of /api/v1/fusions.

Invariants:
    - POST returns 201 with {fusion, reward, consumed_pieces} for success and failure
    - Domain errors use the typed envelope: INVALID_INPUT / CONFLICT at 400
    - Malformed bodies are 400 VALIDATION_ERROR
"""

from uuid import uuid4


async def _seed_pair(make_user, make_piece, grant, rarity="common"):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A", rarity))
    b = await grant(user_id, await make_piece("star", "B", rarity))
    return user_id, a, b


async def test_successful_fusion_returns_201(client, make_user, make_piece, grant):
    user_id, a, b = await _seed_pair(make_user, make_piece, grant, "legendary")

    res = await client.post("/api/v1/fusions", json={
        "user_id": str(user_id), "entry_id_1": str(a), "entry_id_2": str(b),
    })

    assert res.status_code == 201
    body = res.json()
    assert body["fusion"]["is_success"] is True
    assert body["fusion"]["score_value"] == 500
    assert body["fusion"]["input_piece_1"]["entry_id"] == str(a)
    assert body["fusion"]["input_piece_2"]["half"] == "B"
    assert body["reward"]["status"] == "pending"
    assert body["reward"]["reward_value"] == {
        "type": "coins", "value": 1000, "description": "Legendary fusion bonus",
    }
    assert body["consumed_pieces"] == [str(a), str(b)]


async def test_failed_fusion_is_recorded(client, make_user, make_piece, grant):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A"))
    b = await grant(user_id, await make_piece("heart", "B"))

    res = await client.post("/api/v1/fusions", json={
        "user_id": str(user_id), "entry_id_1": str(a), "entry_id_2": str(b),
    })

    assert res.status_code == 201
    body = res.json()
    assert body["fusion"]["is_success"] is False
    assert body["reward"] is None
    assert body["consumed_pieces"] == []


async def test_self_fusion_is_invalid_input(client, make_user, make_piece, grant):
    user_id, a, _ = await _seed_pair(make_user, make_piece, grant)

    res = await client.post("/api/v1/fusions", json={
        "user_id": str(user_id), "entry_id_1": str(a), "entry_id_2": str(a),
    })

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_INPUT"


async def test_consumed_entry_conflicts(client, make_user, make_piece, grant):
    user_id, a, b = await _seed_pair(make_user, make_piece, grant)
    payload = {"user_id": str(user_id), "entry_id_1": str(a), "entry_id_2": str(b)}

    assert (await client.post("/api/v1/fusions", json=payload)).status_code == 201
    res = await client.post("/api/v1/fusions", json=payload)

    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "CONFLICT"
    assert error["retryable"] is True


async def test_malformed_body_is_validation_error(client):
    res = await client.post("/api/v1/fusions", json={"user_id": "not-a-uuid"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_get_history_and_stats(client, make_user, make_piece, grant):
    user_id, a, b = await _seed_pair(make_user, make_piece, grant)
    created = await client.post("/api/v1/fusions", json={
        "user_id": str(user_id), "entry_id_1": str(a), "entry_id_2": str(b),
    })
    fusion_id = created.json()["fusion"]["id"]

    one = await client.get(f"/api/v1/fusions/{fusion_id}", params={"user_id": str(user_id)})
    assert one.status_code == 200
    assert one.json()["fusion"]["input_piece_1"]["shape_family"] == "star"

    history = await client.get("/api/v1/fusions", params={"user_id": str(user_id)})
    assert [f["id"] for f in history.json()["fusions"]] == [fusion_id]

    stats = await client.get(f"/api/v1/fusions/stats/{user_id}")
    assert stats.json()["successful_fusions"] == 1
    assert stats.json()["total_score"] == 20


async def test_foreign_fusion_is_not_found(client, make_user, make_piece, grant):
    user_id, a, b = await _seed_pair(make_user, make_piece, grant)
    created = await client.post("/api/v1/fusions", json={
        "user_id": str(user_id), "entry_id_1": str(a), "entry_id_2": str(b),
    })
    fusion_id = created.json()["fusion"]["id"]

    res = await client.get(f"/api/v1/fusions/{fusion_id}", params={"user_id": str(uuid4())})
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"
