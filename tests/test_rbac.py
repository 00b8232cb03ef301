import pytest

from app.questboard.rbac import require_campaign_access
from tests.conftest import keep_id_for, login

FACILITY = {"name": "Smithy", "upkeep_amount": 10, "upkeep_currency": "gp"}


def test_anonymous_gets_401(client, seed):
    r = client.get(f"/api/campaigns/{seed['campaign']}/keep")
    assert r.status_code == 401
    assert r.json["errors"] == ["Authentication required."]


def test_non_member_is_forbidden(client, seed):
    login(client, "outsider")
    r = client.get(f"/api/campaigns/{seed['campaign']}/keep")
    assert r.status_code == 403


def test_player_can_read_but_not_manage(client, seed):
    login(client, "player")
    r = client.get(f"/api/campaigns/{seed['campaign']}/keep")
    assert r.status_code == 200
    assert r.json["can_manage"] is False
    keep_id = r.json["keep"]["id"]

    r = client.post(f"/api/keeps/{keep_id}/facilities", json=FACILITY)
    assert r.status_code == 403
    assert r.json["errors"] == ["Unauthorized - DM or Admin access required."]

    r = client.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": 1})
    assert r.status_code == 403

    r = client.get(f"/api/keeps/{keep_id}/check-ins")
    assert r.status_code == 200


def test_dm_can_manage(client, seed):
    login(client, "dm")
    keep_id = keep_id_for(client, seed["campaign"])
    r = client.post(f"/api/keeps/{keep_id}/facilities", json=FACILITY)
    assert r.status_code == 201


def test_admin_passes_without_membership(client, seed):
    login(client, "admin")
    r = client.get(f"/api/campaigns/{seed['campaign']}/keep")
    assert r.json["can_manage"] is True
    r = client.post(f"/api/keeps/{r.json['keep']['id']}/facilities", json=FACILITY)
    assert r.status_code == 201


def test_nested_resources_resolve_to_their_campaign(client, seed):
    login(client, "dm")
    keep_id = keep_id_for(client, seed["campaign"])
    facility_id = client.post(f"/api/keeps/{keep_id}/facilities", json=FACILITY).json["facility"]["id"]
    client.post("/auth/logout")

    login(client, "player")
    r = client.post(f"/api/facilities/{facility_id}/delete")
    assert r.status_code == 403
    client.post("/auth/logout")

    login(client, "outsider")
    r = client.get(f"/api/keeps/{keep_id}/check-ins")
    assert r.status_code == 403


def test_missing_resources_are_404(client, seed):
    login(client, "admin")
    assert client.get("/api/campaigns/999/keep").status_code == 404
    assert client.post("/api/facilities/999/edit", json=FACILITY).status_code == 404
    assert client.post("/api/hirelings/999/delete").status_code == 404
    assert client.get("/api/keeps/999/check-ins").status_code == 404


def test_decorator_rejects_unknown_configuration():
    with pytest.raises(ValueError):
        require_campaign_access("owner")
    with pytest.raises(ValueError):
        require_campaign_access(resource="dragon")
