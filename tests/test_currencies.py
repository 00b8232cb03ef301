from app.questboard.db import session_scope
from app.questboard.models import Campaign, CampaignMember
from tests.conftest import keep_id_for, login


def test_members_can_list_currencies(client, seed):
    login(client, "player")
    r = client.get(f"/api/campaigns/{seed['campaign']}/currencies")
    assert r.status_code == 200
    assert [c["abbreviation"] for c in r.json["currencies"]] == ["gp", "sp"]

    r = client.post(f"/api/campaigns/{seed['campaign']}/currencies", json={"name": "Gems", "abbreviation": "gem"})
    assert r.status_code == 403


def test_create_currency_validates_and_rejects_duplicates(client, seed):
    login(client, "dm")
    url = f"/api/campaigns/{seed['campaign']}/currencies"

    r = client.post(url, json={"name": "", "abbreviation": ""})
    assert r.status_code == 400
    assert r.json["errors"] == ["Currency name is required.", "Currency abbreviation is required."]

    r = client.post(url, json={"name": "Other Gold", "abbreviation": "gp"})
    assert r.status_code == 409

    r = client.post(url, json={"name": "Dragon Scales", "abbreviation": "ds", "description": "Rare"})
    assert r.status_code == 201
    assert r.json["currency"]["description"] == "Rare"


def test_default_currencies_only_seed_empty_campaigns(app, client, seed):
    with session_scope(app) as s:
        campaign = Campaign(name="Fresh")
        s.add(campaign)
        s.flush()
        s.add(CampaignMember(campaign_id=campaign.id, user_id=seed["dm"], role="DM"))
        fresh_id = campaign.id

    login(client, "dm")
    r = client.post(f"/api/campaigns/{fresh_id}/currencies/defaults")
    assert sorted(c["abbreviation"] for c in r.json["currencies"]) == ["cp", "ep", "gp", "pp", "sp"]

    r = client.post(f"/api/campaigns/{fresh_id}/currencies/defaults")
    assert len(r.json["currencies"]) == 5

    r = client.post(f"/api/campaigns/{seed['campaign']}/currencies/defaults")
    assert [c["abbreviation"] for c in r.json["currencies"]] == ["gp", "sp"]


def _currency_id(client, campaign_id, abbreviation):
    r = client.get(f"/api/campaigns/{campaign_id}/currencies")
    return next(c["id"] for c in r.json["currencies"] if c["abbreviation"] == abbreviation)


def test_rename_relabels_keep_but_not_history(client, seed):
    login(client, "dm")
    keep_id = keep_id_for(client, seed["campaign"])
    client.post(f"/api/keeps/{keep_id}/facilities", json={"name": "Mine", "profit_amount": 3, "profit_currency": "gp"})
    client.post(f"/api/keeps/{keep_id}/hirelings", json={"name": "Miner", "salary_amount": 1, "salary_currency": "gp"})
    client.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": 1})

    gp_id = _currency_id(client, seed["campaign"], "gp")
    r = client.post(f"/api/currencies/{gp_id}/edit", json={"name": "Gold Crowns", "abbreviation": "gc"})
    assert r.status_code == 200
    assert r.json["currency"]["abbreviation"] == "gc"

    keep = client.get(f"/api/campaigns/{seed['campaign']}/keep").json["keep"]
    assert keep["facilities"][0]["profit_currency"] == "gc"
    assert keep["hirelings"][0]["salary_currency"] == "gc"

    (entry,) = client.get(f"/api/keeps/{keep_id}/check-ins").json["check_ins"]
    assert "gp" in entry["net_profit"]
    assert "gc" not in entry["net_profit"]


def test_rename_to_existing_abbreviation_conflicts(client, seed):
    login(client, "dm")
    gp_id = _currency_id(client, seed["campaign"], "gp")
    r = client.post(f"/api/currencies/{gp_id}/edit", json={"name": "Gold", "abbreviation": "sp"})
    assert r.status_code == 409


def test_delete_refused_while_in_use(client, seed):
    login(client, "dm")
    keep_id = keep_id_for(client, seed["campaign"])
    facility_id = client.post(
        f"/api/keeps/{keep_id}/facilities", json={"name": "Mint", "upkeep_amount": 2, "upkeep_currency": "sp"}
    ).json["facility"]["id"]
    sp_id = _currency_id(client, seed["campaign"], "sp")

    r = client.post(f"/api/currencies/{sp_id}/delete")
    assert r.status_code == 409

    client.post(f"/api/facilities/{facility_id}/delete")
    r = client.post(f"/api/currencies/{sp_id}/delete")
    assert r.status_code == 200
    r = client.get(f"/api/campaigns/{seed['campaign']}/currencies")
    assert [c["abbreviation"] for c in r.json["currencies"]] == ["gp"]
