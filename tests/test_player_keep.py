import pytest

from app.questboard.db import session_scope
from app.questboard.errors import ValidationError
from app.questboard.models import AuditEvent, KeepCheckIn, PlayerKeep, User
from app.questboard.modules.player_keep import service as keep_service
from app.questboard.modules.player_keep.service import record_check_in
from tests.conftest import keep_id_for, login

SMITHY = {"name": "Smithy", "upkeep_amount": 10, "upkeep_currency": "gp", "profit_amount": 5, "profit_currency": "gp"}


@pytest.fixture()
def dm(client, seed):
    login(client, "dm")
    return client


@pytest.fixture()
def keep_id(dm, seed):
    return keep_id_for(dm, seed["campaign"])


def test_keep_is_created_once_per_campaign(dm, seed, keep_id):
    assert keep_id_for(dm, seed["campaign"]) == keep_id
    r = dm.get(f"/api/campaigns/{seed['campaign']}/keep")
    assert [c["abbreviation"] for c in r.json["currencies"]] == ["gp", "sp"]
    assert r.json["history"]["check_ins"] == []


def test_keep_details_edit(dm, keep_id):
    r = dm.post(f"/api/keeps/{keep_id}/edit", json={"icon_url": "javascript:alert(1)"})
    assert r.status_code == 400

    r = dm.post(f"/api/keeps/{keep_id}/edit", json={"icon_url": "https://example.com/keep.png", "description": "  Old fort  "})
    assert r.status_code == 200
    assert r.json["keep"]["icon_url"] == "https://example.com/keep.png"
    assert r.json["keep"]["description"] == "Old fort"

    # Absent keys are left alone
    r = dm.post(f"/api/keeps/{keep_id}/edit", json={"notes": "Roof leaks"})
    assert r.json["keep"]["description"] == "Old fort"


def test_facility_crud(dm, keep_id):
    r = dm.post(f"/api/keeps/{keep_id}/facilities", json=SMITHY)
    assert r.status_code == 201
    facility = r.json["facility"]
    assert facility["upkeep_amount"] == 10
    assert facility["profit_currency"] == "gp"

    r = dm.post(f"/api/facilities/{facility['id']}/edit", json={**SMITHY, "name": "Forge", "profit_amount": ""})
    assert r.status_code == 200
    assert r.json["facility"]["name"] == "Forge"
    assert r.json["facility"]["profit_amount"] is None
    assert r.json["facility"]["profit_currency"] is None

    r = dm.post(f"/api/facilities/{facility['id']}/delete")
    assert r.status_code == 200
    assert dm.post(f"/api/facilities/{facility['id']}/delete").status_code == 404


@pytest.mark.parametrize(
    "payload, error",
    [
        ({"upkeep_amount": 1, "upkeep_currency": "gp"}, "Please enter facility name."),
        ({**SMITHY, "upkeep_amount": -1}, "Upkeep amount cannot be negative."),
        ({**SMITHY, "upkeep_amount": "lots"}, "Upkeep amount must be a number."),
        ({**SMITHY, "profit_currency": ""}, "Profit currency is required when an amount is set."),
        ({**SMITHY, "upkeep_currency": "zz"}, "Unknown currency 'zz' for upkeep."),
        ({**SMITHY, "crafting_items": [{"name": "Sword", "weeks": 0}]}, "Please enter item name and valid craft time."),
    ],
)
def test_facility_validation(dm, keep_id, payload, error):
    r = dm.post(f"/api/keeps/{keep_id}/facilities", json=payload)
    assert r.status_code == 400
    assert error in r.json["errors"]


def test_hireling_crud(dm, seed, keep_id):
    payload = {"name": "Scout", "salary_amount": 8, "salary_currency": "sp", "profit_amount": 12, "profit_currency": "gp"}
    r = dm.post(f"/api/keeps/{keep_id}/hirelings", json=payload)
    assert r.status_code == 201
    hireling_id = r.json["hireling"]["id"]

    r = dm.post(f"/api/hirelings/{hireling_id}/edit", json={**payload, "salary_amount": 9})
    assert r.json["hireling"]["salary_amount"] == 9

    r = dm.post(f"/api/hirelings/{hireling_id}/edit", json={**payload, "salary_currency": "dragon"})
    assert r.status_code == 400

    assert dm.post(f"/api/hirelings/{hireling_id}/delete").status_code == 200
    r = dm.get(f"/api/campaigns/{seed['campaign']}/keep")
    assert r.json["keep"]["hirelings"] == []


def test_preview_writes_nothing(app, dm, keep_id):
    dm.post(f"/api/keeps/{keep_id}/facilities", json=SMITHY)
    r = dm.post(f"/api/keeps/{keep_id}/check-ins/preview", json={"weeks": 4})
    assert r.status_code == 200
    assert r.json["weeks"] == 4
    assert r.json["net_profit"] == {"gp": -20, "sp": 0}
    assert [c["currency"] for c in r.json["currencies"]] == ["gp"]

    with session_scope(app) as s:
        assert s.query(KeepCheckIn).count() == 0


@pytest.mark.parametrize("weeks", [0, -2, "1.5", "soon", None])
def test_invalid_weeks_rejected(dm, keep_id, weeks):
    r = dm.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": weeks})
    assert r.status_code == 400
    assert r.json["errors"] == ["Please enter a valid number of weeks."]


def test_check_in_snapshot_survives_facility_delete(app, dm, keep_id):
    facility_id = dm.post(f"/api/keeps/{keep_id}/facilities", json=SMITHY).json["facility"]["id"]

    r = dm.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": 4})
    assert r.status_code == 201
    check_in = r.json["check_in"]
    assert check_in["weeks_away"] == 4
    assert check_in["breakdown"]["gp"]["total_upkeep"] == 40
    assert check_in["net_profit"]["gp"] == -20

    dm.post(f"/api/facilities/{facility_id}/delete")

    r = dm.get(f"/api/keeps/{keep_id}/check-ins")
    (entry,) = r.json["check_ins"]
    assert entry["status"] == "loss"
    assert entry["summary"] == "-20.00 gp • +0.00 sp"
    assert entry["weeks_label"] == "4 weeks"
    assert [c["currency"] for c in entry["currencies"]] == ["gp"]
    assert entry["currencies"][0]["expenses"][0]["name"] == "Smithy"

    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "keep.check_in").count() == 1


def test_client_breakdown_ignored_by_default(dm, keep_id):
    dm.post(f"/api/keeps/{keep_id}/facilities", json=SMITHY)
    r = dm.post(
        f"/api/keeps/{keep_id}/check-ins",
        json={"weeks": 2, "breakdown": {"gp": {"total_upkeep": 0, "total_profit": 9999}}, "net_profit": {"gp": 9999}},
    )
    assert r.status_code == 201
    assert r.json["check_in"]["net_profit"]["gp"] == -10


def test_trusted_client_breakdown_is_stored_verbatim(app, dm, keep_id):
    app.config["KEEP_TRUST_CLIENT_BREAKDOWN"] = True
    breakdown = {"gp": {"total_upkeep": 40, "total_profit": 20, "facilities": [], "hirelings": []}}

    r = dm.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": 4, "breakdown": breakdown, "net_profit": {"gp": -20}})
    assert r.status_code == 201
    assert r.json["check_in"]["breakdown"] == breakdown

    r = dm.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": 4, "breakdown": breakdown, "net_profit": {"gp": 5}})
    assert r.status_code == 400
    assert r.json["errors"] == ["Net profit for gp does not match its totals."]


@pytest.mark.parametrize(
    "breakdown, net_profit",
    [
        ({"gp": {"total_upkeep": "40", "total_profit": "20"}}, {"gp": "-20"}),
        ({"gp": {"total_upkeep": 40, "total_profit": 20}, "sp": 5}, {"gp": -20}),
        ({"gp": {"total_upkeep": 40, "total_profit": 20, "facilities": [7]}}, {"gp": -20}),
        ({"gp": {"total_upkeep": True, "total_profit": 0}}, {"gp": -1}),
    ],
)
def test_trusted_client_breakdown_must_be_well_formed(app, dm, seed, keep_id, breakdown, net_profit):
    app.config["KEEP_TRUST_CLIENT_BREAKDOWN"] = True
    r = dm.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": 4, "breakdown": breakdown, "net_profit": net_profit})
    assert r.status_code == 400

    assert dm.get(f"/api/keeps/{keep_id}/check-ins").json["total"] == 0
    assert dm.get(f"/api/campaigns/{seed['campaign']}/keep").status_code == 200


def test_record_check_in_enforces_net_profit(app, seed):
    with session_scope(app) as s:
        keep = PlayerKeep(campaign_id=seed["campaign"])
        s.add(keep)
        s.flush()
        user = s.get(User, seed["dm"])
        with pytest.raises(ValidationError):
            record_check_in(s, keep, 1, {"gp": {"total_upkeep": 1, "total_profit": 0}}, {"gp": 1}, user)
        check_in = record_check_in(s, keep, 1, {"gp": {"total_upkeep": 1, "total_profit": 0}}, {"gp": -1}, user)
        assert check_in.id is not None


def test_history_is_paginated_newest_first(dm, keep_id):
    dm.post(f"/api/keeps/{keep_id}/facilities", json=SMITHY)
    ids = [dm.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": w}).json["check_in"]["id"] for w in (1, 2, 3)]

    r = dm.get(f"/api/keeps/{keep_id}/check-ins?page=1&page_size=2")
    assert [c["id"] for c in r.json["check_ins"]] == [ids[2], ids[1]]
    assert r.json["total"] == 3
    assert r.json["total_pages"] == 2
    assert r.json["has_next"] is True
    assert r.json["has_prev"] is False

    r = dm.get(f"/api/keeps/{keep_id}/check-ins?page=2&page_size=2")
    assert [c["id"] for c in r.json["check_ins"]] == [ids[0]]
    assert r.json["has_next"] is False

    r = dm.get(f"/api/keeps/{keep_id}/check-ins?page=0&page_size=abc")
    assert r.json["page"] == 1
    assert r.json["page_size"] == 10


def test_check_in_advances_crafting(dm, keep_id):
    payload = {
        **SMITHY,
        "crafting_items": [{"name": "Longsword", "weeks": 2}, {"name": "Shield", "weeks": 5}],
        "recurring_items": [{"name": "Nails", "quantity": 50, "crafting_duration": 2}],
    }
    dm.post(f"/api/keeps/{keep_id}/facilities", json=payload)

    r = dm.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": 3})
    production = r.json["check_in"]["production"]
    assert [i["item_name"] for i in production["completed_items"]] == ["Longsword"]
    assert production["recurring_production"][0]["total_produced"] == 50

    (facility,) = r.json["keep"]["facilities"]
    assert facility["crafting_items"] == [{"name": "Shield", "weeks_remaining": 2, "original_weeks": 5}]
    assert facility["recurring_items"][0]["progress_weeks"] == 1


def test_history_page_past_the_end_is_clamped(dm, keep_id):
    r = dm.get(f"/api/keeps/{keep_id}/check-ins?page={10**20}")
    assert r.status_code == 200
    assert r.json["page"] == 1
    assert r.json["check_ins"] == []

    dm.post(f"/api/keeps/{keep_id}/facilities", json=SMITHY)
    for weeks in (1, 2, 3):
        dm.post(f"/api/keeps/{keep_id}/check-ins", json={"weeks": weeks})
    r = dm.get(f"/api/keeps/{keep_id}/check-ins?page={10**20}&page_size=2")
    assert r.status_code == 200
    assert r.json["page"] == 2
    assert [c["weeks_away"] for c in r.json["check_ins"]] == [1]


def test_keep_insert_race_reuses_existing_row(dm, seed, keep_id, monkeypatch):
    real_find = keep_service._find_keep
    calls = []

    def stale_find(s, campaign_id):
        calls.append(campaign_id)
        return None if len(calls) == 1 else real_find(s, campaign_id)

    monkeypatch.setattr(keep_service, "_find_keep", stale_find)
    r = dm.get(f"/api/campaigns/{seed['campaign']}/keep")
    assert r.status_code == 200
    assert r.json["keep"]["id"] == keep_id
    assert len(calls) == 2
