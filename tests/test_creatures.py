import pytest

from tests.conftest import login

GOBLIN = {"name": "Goblin Boss", "category": "Monster", "tags": ["goblinoid", "boss"], "armor_class": 17, "hit_points": "21"}
LICH = {"name": "Vess the Lich", "category": "NPC", "tags": "undead, boss, undead", "is_private": True, "description": "Secret villain"}


@pytest.fixture()
def bestiary(client, seed):
    login(client, "dm")
    ids = {}
    for payload in (GOBLIN, LICH, {"name": "Dire Wolf", "category": "Beast"}):
        r = client.post(f"/api/campaigns/{seed['campaign']}/creatures", json=payload)
        assert r.status_code == 201, r.json
        ids[payload["name"]] = r.json["creature"]["id"]
    client.post("/auth/logout")
    return ids


def test_private_creatures_are_hidden_from_players(client, seed, bestiary):
    login(client, "player")
    r = client.get(f"/api/campaigns/{seed['campaign']}/creatures")
    assert [c["name"] for c in r.json["creatures"]] == ["Dire Wolf", "Goblin Boss"]
    assert r.json["can_manage"] is False
    assert client.get(f"/api/creatures/{bestiary['Vess the Lich']}").status_code == 404
    assert client.get(f"/api/creatures/{bestiary['Goblin Boss']}").json["creature"]["armor_class"] == 17
    client.post("/auth/logout")

    login(client, "dm")
    r = client.get(f"/api/campaigns/{seed['campaign']}/creatures")
    assert [c["name"] for c in r.json["creatures"]] == ["Dire Wolf", "Goblin Boss", "Vess the Lich"]
    assert r.json["categories"] == ["Beast", "Monster", "NPC"]
    lich = client.get(f"/api/creatures/{bestiary['Vess the Lich']}").json["creature"]
    assert lich["tags"] == ["undead", "boss"]
    assert lich["is_private"] is True


def test_creature_filters(client, seed, bestiary):
    login(client, "dm")
    url = f"/api/campaigns/{seed['campaign']}/creatures"
    assert [c["name"] for c in client.get(f"{url}?search=GOBLIN").json["creatures"]] == ["Goblin Boss"]
    assert [c["name"] for c in client.get(f"{url}?search=villain").json["creatures"]] == ["Vess the Lich"]
    assert [c["name"] for c in client.get(f"{url}?category=Beast").json["creatures"]] == ["Dire Wolf"]
    assert [c["name"] for c in client.get(f"{url}?tags=Boss").json["creatures"]] == ["Goblin Boss", "Vess the Lich"]


def test_creature_validation(client, seed):
    login(client, "dm")
    r = client.post(
        f"/api/campaigns/{seed['campaign']}/creatures",
        json={"name": " ", "armor_class": "tough", "strength": 10.5, "avatar_url": "ftp://x/y.png"},
    )
    assert r.status_code == 400
    assert r.json["errors"] == [
        "Name is required.",
        "Avatar URL must be an http(s) URL or an absolute path.",
        "Armor class must be a whole number.",
        "Strength must be a whole number.",
    ]

    r = client.post(f"/api/campaigns/{seed['campaign']}/creatures", json={"name": "Commoner"})
    assert r.json["creature"]["category"] == "NPC"
    assert r.json["creature"]["tags"] == []


def test_only_dms_edit_and_delete_creatures(client, seed, bestiary):
    wolf_id = bestiary["Dire Wolf"]
    login(client, "player")
    assert client.post(f"/api/creatures/{wolf_id}/edit", json={"name": "Good Dog"}).status_code == 403
    assert client.post(f"/api/creatures/{wolf_id}/delete").status_code == 403
    client.post("/auth/logout")

    login(client, "dm")
    r = client.post(f"/api/creatures/{wolf_id}/edit", json={"name": "Dire Wolf", "category": "Beast", "hit_points": 37})
    assert r.status_code == 200
    assert r.json["creature"]["hit_points"] == 37

    assert client.post(f"/api/creatures/{wolf_id}/delete").status_code == 200
    assert client.get(f"/api/creatures/{wolf_id}").status_code == 404
