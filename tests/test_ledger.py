"""Keep ledger calculator and production helpers (no DB, no app)."""
import pytest

from app.questboard.errors import ValidationError
from app.questboard.modules.player_keep.ledger import (
    FacilityRates,
    HirelingRates,
    InvalidWeeksError,
    advance_crafting,
    advance_recurring,
    check_net_profit,
    compute_breakdown,
    compute_production,
    parse_weeks,
)


def test_facility_upkeep_and_profit_same_currency():
    b = compute_breakdown(4, [FacilityRates("Smithy", 10, "GP", 5, "GP")])
    gp = b.currency_totals["GP"]
    assert gp.total_upkeep == 40
    assert gp.total_profit == 20
    assert b.net_profit == {"GP": -20}


def test_hireling_currencies_are_never_mixed():
    b = compute_breakdown(3, hirelings=[HirelingRates("Scout", 8, "SP", 12, "GP")])
    assert b.currency_totals["SP"].total_upkeep == 24
    assert b.currency_totals["SP"].total_profit == 0
    assert b.currency_totals["GP"].total_profit == 36
    assert b.net_profit == {"SP": -24, "GP": 36}


def test_empty_keep_settles_to_nothing():
    b = compute_breakdown(5)
    assert b.currency_totals == {}
    assert b.net_profit == {}
    assert b.to_dict() == {"weeks": 5, "breakdown": {}, "net_profit": {}}


def test_facility_and_hireling_profit_accumulate():
    b = compute_breakdown(
        2,
        [FacilityRates("Garden", profit_amount=5, profit_currency="GP")],
        [HirelingRates("Merchant", profit_amount=7, profit_currency="GP")],
    )
    assert b.currency_totals["GP"].total_profit == 24
    assert [line.name for line in b.currency_totals["GP"].facility_lines] == ["Garden"]
    assert [line.name for line in b.currency_totals["GP"].hireling_lines] == ["Merchant"]


def test_totals_scale_linearly_with_weeks():
    facilities = [FacilityRates("Smithy", 2.5, "gp", 1.25, "sp")]
    hirelings = [HirelingRates("Guard", 3, "gp")]
    one = compute_breakdown(1, facilities, hirelings)
    seven = compute_breakdown(7, facilities, hirelings)
    for currency, totals in one.currency_totals.items():
        assert seven.currency_totals[currency].total_upkeep == pytest.approx(7 * totals.total_upkeep)
        assert seven.currency_totals[currency].total_profit == pytest.approx(7 * totals.total_profit)


def test_same_inputs_give_same_breakdown():
    facilities = [FacilityRates("Smithy", 10, "gp", 5, "gp")]
    assert compute_breakdown(4, facilities).to_dict() == compute_breakdown(4, facilities).to_dict()


def test_line_items_record_rate_and_total():
    b = compute_breakdown(3, [FacilityRates("Smithy", 10, "gp")], [HirelingRates("Guard", 2, "gp", 4, "sp")])
    gp = b.to_dict()["breakdown"]["gp"]
    assert gp["facilities"] == [{"name": "Smithy", "type": "upkeep", "amount": 30, "per_week": 10, "currency": "gp"}]
    assert gp["hirelings"] == [{"name": "Guard", "type": "salary", "amount": 6, "per_week": 2, "currency": "gp"}]
    assert b.to_dict()["breakdown"]["sp"]["hirelings"][0]["type"] == "profit"


def test_zero_and_missing_rates_are_skipped():
    b = compute_breakdown(
        4,
        [
            FacilityRates("Empty Hall"),
            FacilityRates("Free Shrine", 0, "gp", None, "gp"),
            FacilityRates("No Currency", 3, None),
        ],
    )
    assert b.currency_totals == {}


def test_mapping_rows_work_like_dataclasses():
    b = compute_breakdown(2, [{"name": "Dock", "upkeep_amount": 1.5, "upkeep_currency": "gp"}])
    assert b.currency_totals["gp"].total_upkeep == 3


def test_seeded_currencies_stay_inactive():
    b = compute_breakdown(2, [FacilityRates("Smithy", 1, "gp")], currencies=["gp", "sp"])
    assert set(b.currency_totals) == {"gp", "sp"}
    assert b.net_profit["sp"] == 0
    assert set(b.active_currencies()) == {"gp"}


def test_amounts_are_not_rounded():
    b = compute_breakdown(3, [FacilityRates("Stall", profit_amount=0.1, profit_currency="cp")])
    assert b.currency_totals["cp"].total_profit == 0.1 * 3


@pytest.mark.parametrize("raw, expected", [(1, 1), ("3", 3), (" 12 ", 12), (2.0, 2)])
def test_parse_weeks_accepts_positive_integers(raw, expected):
    assert parse_weeks(raw) == expected


@pytest.mark.parametrize("raw", [0, -1, 1.5, "abc", "", None, True])
def test_parse_weeks_rejects_everything_else(raw):
    with pytest.raises(InvalidWeeksError):
        parse_weeks(raw)


def test_invalid_weeks_is_a_validation_error():
    with pytest.raises(ValidationError) as exc:
        compute_breakdown(0, [FacilityRates("Smithy", 1, "gp")])
    assert exc.value.errors == ["Please enter a valid number of weeks."]


def test_check_net_profit():
    b = compute_breakdown(4, [FacilityRates("Smithy", 10, "gp", 5, "gp")])
    assert check_net_profit(b.breakdown_dict(), b.net_profit) == []

    assert check_net_profit(b.breakdown_dict(), {"gp": 5}) == ["Net profit for gp does not match its totals."]
    assert check_net_profit({}, {"gp": -20}) == ["Net profit for gp has no matching breakdown entry."]
    assert check_net_profit([], {}) == ["Breakdown and net profit must be objects keyed by currency."]


def test_check_net_profit_rejects_malformed_snapshots():
    assert check_net_profit({"gp": {"total_upkeep": "40", "total_profit": "20"}}, {"gp": "-20"}) == [
        "Non-numeric totals for gp.",
        "Net profit for gp must be a number.",
    ]
    assert check_net_profit({"gp": {"total_upkeep": 1, "total_profit": 0}, "sp": 5}, {"gp": -1}) == [
        "Breakdown entry for sp must be an object."
    ]
    assert check_net_profit({"gp": {"total_upkeep": 1, "total_profit": 0, "hirelings": {}}}, {"gp": -1}) == [
        "Breakdown hirelings for gp must be a list."
    ]
    assert check_net_profit({"gp": {"total_upkeep": float("nan"), "total_profit": 0}}, {}) == ["Non-numeric totals for gp."]


# ---------- Production ----------


def _workshop(**overrides):
    facility = {
        "name": "Workshop",
        "crafting_items": [
            {"name": "Longsword", "weeks_remaining": 2, "original_weeks": 3},
            {"name": "Plate Armor", "weeks_remaining": 6, "original_weeks": 6},
        ],
        "recurring_items": [{"name": "Arrows", "quantity": 20, "crafting_duration": 2, "progress_weeks": 1}],
    }
    facility.update(overrides)
    return facility


def test_compute_production_finishes_due_crafting():
    p = compute_production(3, [_workshop()])
    assert [(i.item_name, i.weeks_to_complete) for i in p.completed_items] == [("Longsword", 3)]


def test_compute_production_counts_recurring_cycles():
    p = compute_production(3, [_workshop()])
    (batch,) = p.recurring_production
    assert batch.completed_cycles == 2
    assert batch.total_produced == 40
    assert batch.current_progress == 1
    assert batch.new_progress == 0


def test_compute_production_without_output_is_empty():
    p = compute_production(1, [_workshop(crafting_items=None, recurring_items=[{"name": "Rope", "quantity": 1, "crafting_duration": 4}])])
    assert p.is_empty
    assert p.to_dict() == {"completed_items": [], "recurring_production": []}


def test_advance_crafting_drops_finished_items():
    items = advance_crafting(_workshop()["crafting_items"], 3)
    assert items == [{"name": "Plate Armor", "weeks_remaining": 3, "original_weeks": 6}]


def test_advance_recurring_wraps_progress():
    items = advance_recurring(_workshop()["recurring_items"], 4)
    assert items[0]["progress_weeks"] == 1
    assert items[0]["quantity"] == 20
