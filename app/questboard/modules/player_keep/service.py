"""
Player keep: facilities, hirelings, and the check-in ledger.

Flow for "the party returns":
    preview_check_in()  -> ledger.compute_breakdown over the current rows (no write)
    check_in_keep()     -> recompute server-side, record_check_in(), advance crafting
    list_check_ins()    -> newest-first pages of immutable snapshots
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from app.questboard.audit import apply_changes, record_event
from app.questboard.constants import MAX_CHECK_IN_PAGE_SIZE
from app.questboard.errors import ValidationError
from app.questboard.modules.currencies.models import Currency
from app.questboard.modules.player_keep.ledger import (
    Breakdown,
    Production,
    advance_crafting,
    advance_recurring,
    check_net_profit,
    compute_breakdown,
    compute_production,
    parse_weeks,
)
from app.questboard.modules.player_keep.models import Facility, Hireling, KeepCheckIn, PlayerKeep
from app.questboard.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.questboard.models import User


# ---------- Serialization ----------


def facility_to_dict(f: Facility) -> dict[str, Any]:
    return {
        "id": f.id,
        "name": f.name,
        "description": f.description,
        "notes": f.notes,
        "upkeep_amount": f.upkeep_amount,
        "upkeep_currency": f.upkeep_currency,
        "profit_amount": f.profit_amount,
        "profit_currency": f.profit_currency,
        "crafting_items": f.crafting_items or [],
        "recurring_items": f.recurring_items or [],
    }


def hireling_to_dict(h: Hireling) -> dict[str, Any]:
    return {
        "id": h.id,
        "name": h.name,
        "description": h.description,
        "notes": h.notes,
        "salary_amount": h.salary_amount,
        "salary_currency": h.salary_currency,
        "profit_amount": h.profit_amount,
        "profit_currency": h.profit_currency,
    }


def check_in_to_dict(c: KeepCheckIn) -> dict[str, Any]:
    return {
        "id": c.id,
        "player_keep_id": c.player_keep_id,
        "weeks_away": c.weeks_away,
        "breakdown": c.breakdown,
        "net_profit": c.net_profit,
        "production": c.production,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


def keep_to_dict(keep: PlayerKeep) -> dict[str, Any]:
    return {
        "id": keep.id,
        "campaign_id": keep.campaign_id,
        "icon_url": keep.icon_url,
        "description": keep.description,
        "notes": keep.notes,
        "facilities": [facility_to_dict(f) for f in keep.facilities],
        "hirelings": [hireling_to_dict(h) for h in keep.hirelings],
    }


# ---------- Keep ----------


def _find_keep(s: "Session", campaign_id: int) -> PlayerKeep | None:
    return s.query(PlayerKeep).filter(PlayerKeep.campaign_id == campaign_id).one_or_none()


def get_or_create_keep(s: "Session", campaign_id: int) -> PlayerKeep:
    """Every campaign has exactly one keep; the first read creates it."""
    keep = _find_keep(s, campaign_id)
    if keep is not None:
        return keep
    now = datetime.utcnow()
    keep = PlayerKeep(campaign_id=campaign_id, created_at=now, updated_at=now)
    s.add(keep)
    try:
        s.flush()
    except IntegrityError:
        # Lost the insert race to a concurrent first visit.
        s.rollback()
        keep = _find_keep(s, campaign_id)
        if keep is None:
            raise
    return keep


KEEP_DETAIL_FIELDS = ("icon_url", "description", "notes")


def update_keep_details(s: "Session", keep: PlayerKeep, payload: dict, user: "User") -> PlayerKeep:
    """Update whichever of icon_url / description / notes are present in the payload."""
    values = {key: clean_str(payload, key) for key in KEEP_DETAIL_FIELDS if key in payload}
    icon_url = values.get("icon_url")
    if icon_url and not icon_url.startswith(("http://", "https://", "/")):
        raise ValidationError("Icon URL must be an http(s) URL or an absolute path.")

    changes = apply_changes(keep, values)
    if not changes:
        return keep
    keep.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="keep.edit",
        entity_type="PlayerKeep",
        entity_id=str(keep.id),
        metadata={"campaign_id": keep.campaign_id, "changes": changes},
    )
    return keep


# ---------- Payload parsing ----------


def _known_currencies(s: "Session", campaign_id: int) -> set[str]:
    rows = s.query(Currency.abbreviation).filter(Currency.campaign_id == campaign_id).all()
    return {r[0] for r in rows}


def _parse_rate(
    payload: dict,
    amount_key: str,
    currency_key: str,
    label: str,
    known: set[str],
    errors: list[str],
) -> tuple[float | None, str | None]:
    """A weekly (amount, currency) pair; blank or zero amount means 'none'."""
    raw_amount = payload.get(amount_key)
    if raw_amount in (None, ""):
        return None, None
    try:
        amount = float(raw_amount)
    except (TypeError, ValueError):
        errors.append(f"{label} amount must be a number.")
        return None, None
    if amount < 0:
        errors.append(f"{label} amount cannot be negative.")
        return None, None
    if amount == 0:
        return None, None
    currency = clean_str(payload, currency_key) or ""
    if not currency:
        errors.append(f"{label} currency is required when an amount is set.")
        return None, None
    if currency not in known:
        errors.append(f"Unknown currency '{currency}' for {label.lower()}.")
        return None, None
    return amount, currency


def _positive_int(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _parse_crafting_items(raw: Any, errors: list[str]) -> list[dict] | None:
    if not raw:
        return None
    if not isinstance(raw, list):
        errors.append("Crafting items must be a list.")
        return None
    items = []
    for item in raw:
        name = (clean_str(item, "name") or "") if isinstance(item, dict) else ""
        weeks = _positive_int(item.get("weeks_remaining", item.get("weeks"))) if isinstance(item, dict) else None
        if not name or weeks is None:
            errors.append("Please enter item name and valid craft time.")
            continue
        original = _positive_int(item.get("original_weeks")) or weeks
        items.append({"name": name, "weeks_remaining": weeks, "original_weeks": original})
    return items or None


def _parse_recurring_items(raw: Any, errors: list[str]) -> list[dict] | None:
    if not raw:
        return None
    if not isinstance(raw, list):
        errors.append("Recurring items must be a list.")
        return None
    items = []
    for item in raw:
        if not isinstance(item, dict):
            errors.append("Please enter item name, valid quantity, and valid crafting duration.")
            continue
        name = clean_str(item, "name") or ""
        quantity = _positive_int(item.get("quantity"))
        duration = _positive_int(item.get("crafting_duration", 1))
        if not name or quantity is None or duration is None:
            errors.append("Please enter item name, valid quantity, and valid crafting duration.")
            continue
        try:
            progress = int(item.get("progress_weeks") or 0)
        except (TypeError, ValueError):
            progress = 0
        items.append(
            {
                "name": name,
                "quantity": quantity,
                "crafting_duration": duration,
                "progress_weeks": progress % duration if progress > 0 else 0,
            }
        )
    return items or None


def parse_facility_payload(s: "Session", keep: PlayerKeep, payload: dict) -> dict[str, Any]:
    errors: list[str] = []
    name = clean_str(payload, "name") or ""
    if not name:
        errors.append("Please enter facility name.")
    known = _known_currencies(s, keep.campaign_id)
    upkeep_amount, upkeep_currency = _parse_rate(payload, "upkeep_amount", "upkeep_currency", "Upkeep", known, errors)
    profit_amount, profit_currency = _parse_rate(payload, "profit_amount", "profit_currency", "Profit", known, errors)
    crafting = _parse_crafting_items(payload.get("crafting_items"), errors)
    recurring = _parse_recurring_items(payload.get("recurring_items"), errors)
    if errors:
        raise ValidationError(errors)
    return {
        "name": name,
        "description": clean_str(payload, "description"),
        "notes": clean_str(payload, "notes"),
        "upkeep_amount": upkeep_amount,
        "upkeep_currency": upkeep_currency,
        "profit_amount": profit_amount,
        "profit_currency": profit_currency,
        "crafting_items": crafting,
        "recurring_items": recurring,
    }


def parse_hireling_payload(s: "Session", keep: PlayerKeep, payload: dict) -> dict[str, Any]:
    errors: list[str] = []
    name = clean_str(payload, "name") or ""
    if not name:
        errors.append("Please enter hireling name.")
    known = _known_currencies(s, keep.campaign_id)
    salary_amount, salary_currency = _parse_rate(payload, "salary_amount", "salary_currency", "Salary", known, errors)
    profit_amount, profit_currency = _parse_rate(payload, "profit_amount", "profit_currency", "Profit", known, errors)
    if errors:
        raise ValidationError(errors)
    return {
        "name": name,
        "description": clean_str(payload, "description"),
        "notes": clean_str(payload, "notes"),
        "salary_amount": salary_amount,
        "salary_currency": salary_currency,
        "profit_amount": profit_amount,
        "profit_currency": profit_currency,
    }


# ---------- Facilities / Hirelings ----------


def create_facility(s: "Session", keep: PlayerKeep, payload: dict, user: "User") -> Facility:
    values = parse_facility_payload(s, keep, payload)
    now = datetime.utcnow()
    facility = Facility(created_at=now, updated_at=now, **values)
    keep.facilities.append(facility)
    s.flush()

    record_event(
        s,
        actor=user,
        action="keep.facility_create",
        entity_type="Facility",
        entity_id=str(facility.id),
        metadata={"player_keep_id": keep.id, "name": facility.name},
    )
    return facility


def update_facility(s: "Session", facility: Facility, payload: dict, user: "User") -> Facility:
    values = parse_facility_payload(s, facility.player_keep, payload)
    changes = apply_changes(facility, values)
    facility.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="keep.facility_edit",
        entity_type="Facility",
        entity_id=str(facility.id),
        metadata={"player_keep_id": facility.player_keep_id, "name": facility.name, "changes": changes},
    )
    return facility


def delete_facility(s: "Session", facility: Facility, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="keep.facility_delete",
        entity_type="Facility",
        entity_id=str(facility.id),
        metadata={"player_keep_id": facility.player_keep_id, "name": facility.name},
    )
    s.delete(facility)


def create_hireling(s: "Session", keep: PlayerKeep, payload: dict, user: "User") -> Hireling:
    values = parse_hireling_payload(s, keep, payload)
    now = datetime.utcnow()
    hireling = Hireling(created_at=now, updated_at=now, **values)
    keep.hirelings.append(hireling)
    s.flush()

    record_event(
        s,
        actor=user,
        action="keep.hireling_create",
        entity_type="Hireling",
        entity_id=str(hireling.id),
        metadata={"player_keep_id": keep.id, "name": hireling.name},
    )
    return hireling


def update_hireling(s: "Session", hireling: Hireling, payload: dict, user: "User") -> Hireling:
    values = parse_hireling_payload(s, hireling.player_keep, payload)
    changes = apply_changes(hireling, values)
    hireling.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="keep.hireling_edit",
        entity_type="Hireling",
        entity_id=str(hireling.id),
        metadata={"player_keep_id": hireling.player_keep_id, "name": hireling.name, "changes": changes},
    )
    return hireling


def delete_hireling(s: "Session", hireling: Hireling, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="keep.hireling_delete",
        entity_type="Hireling",
        entity_id=str(hireling.id),
        metadata={"player_keep_id": hireling.player_keep_id, "name": hireling.name},
    )
    s.delete(hireling)


# ---------- Check-ins ----------


def preview_check_in(s: "Session", keep: PlayerKeep, weeks: Any) -> tuple[Breakdown, Production]:
    """Ledger over the keep's current rows. Writes nothing."""
    weeks = parse_weeks(weeks)
    currencies = sorted(_known_currencies(s, keep.campaign_id))
    breakdown = compute_breakdown(weeks, keep.facilities, keep.hirelings, currencies=currencies)
    production = compute_production(weeks, keep.facilities)
    return breakdown, production


def record_check_in(
    s: "Session",
    keep: PlayerKeep,
    weeks: Any,
    breakdown: dict[str, Any],
    net_profit: dict[str, Any],
    user: "User",
    production: dict[str, Any] | None = None,
) -> KeepCheckIn:
    """
    Persist a computed ledger verbatim as an append-only snapshot.
    Authorization is the caller's job; this only checks the snapshot is self-consistent.
    """
    weeks = parse_weeks(weeks)
    errors = check_net_profit(breakdown, net_profit)
    if production is not None and not isinstance(production, dict):
        errors.append("Production must be an object.")
    if errors:
        raise ValidationError(errors)

    check_in = KeepCheckIn(
        player_keep_id=keep.id,
        weeks_away=weeks,
        breakdown=breakdown,
        net_profit=net_profit,
        production=production,
        created_at=datetime.utcnow(),
        created_by_user_id=user.id if user else None,
    )
    s.add(check_in)
    s.flush()

    record_event(
        s,
        actor=user,
        action="keep.check_in",
        entity_type="KeepCheckIn",
        entity_id=str(check_in.id),
        metadata={"player_keep_id": keep.id, "weeks_away": weeks, "net_profit": net_profit},
    )
    return check_in


def advance_production(keep: PlayerKeep, weeks: int) -> None:
    for facility in keep.facilities:
        if facility.crafting_items:
            facility.crafting_items = advance_crafting(facility.crafting_items, weeks) or None
        if facility.recurring_items:
            facility.recurring_items = advance_recurring(facility.recurring_items, weeks)


def check_in_keep(s: "Session", keep: PlayerKeep, weeks: Any, user: "User") -> KeepCheckIn:
    """Settle `weeks` from current facility/hireling state, store it, and move crafting forward."""
    breakdown, production = preview_check_in(s, keep, weeks)
    check_in = record_check_in(
        s,
        keep,
        breakdown.weeks,
        breakdown.breakdown_dict(),
        dict(breakdown.net_profit),
        user,
        production=production.to_dict(),
    )
    advance_production(keep, breakdown.weeks)
    return check_in


@dataclass(frozen=True)
class Page:
    items: list[KeepCheckIn]
    page: int
    page_size: int
    total: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


def list_check_ins(s: "Session", keep_id: int, page: int = 1, page_size: int = 10) -> Page:
    """Newest first; page clamps to 1..last page, page_size to 1..MAX_CHECK_IN_PAGE_SIZE."""
    page_size = max(1, min(page_size, MAX_CHECK_IN_PAGE_SIZE))
    q = s.query(KeepCheckIn).filter(KeepCheckIn.player_keep_id == keep_id)
    total = q.count()
    last_page = max(1, (total + page_size - 1) // page_size)
    page = max(1, min(page, last_page))
    items = (
        q.order_by(KeepCheckIn.created_at.desc(), KeepCheckIn.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return Page(items=items, page=page, page_size=page_size, total=total)
