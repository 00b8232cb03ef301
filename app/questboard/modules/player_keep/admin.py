from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.questboard.constants import ACCESS_MANAGE, ACCESS_MEMBER, CAMPAIGN_ROLE_DM
from app.questboard.db import db_session
from app.questboard.models import User
from app.questboard.modules.currencies.service import list_currencies
from app.questboard.modules.player_keep.history import currency_sections, format_check_in
from app.questboard.modules.player_keep.models import Facility, Hireling, PlayerKeep
from app.questboard.modules.player_keep.service import (
    check_in_keep,
    check_in_to_dict,
    create_facility,
    create_hireling,
    delete_facility,
    delete_hireling,
    facility_to_dict,
    get_or_create_keep,
    hireling_to_dict,
    keep_to_dict,
    list_check_ins,
    preview_check_in,
    record_check_in,
    update_facility,
    update_hireling,
    update_keep_details,
)
from app.questboard.rbac import require_campaign_access
from app.questboard.utils import parse_int_arg, request_payload

bp = Blueprint("player_keep", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _can_manage() -> bool:
    user = _current_user()
    return user.is_admin or g.get("campaign_role") == CAMPAIGN_ROLE_DM


def _history_page(s, keep_id: int) -> dict:
    default_size = current_app.config.get("CHECK_IN_PAGE_SIZE", 10)
    page = list_check_ins(
        s,
        keep_id,
        page=parse_int_arg(request.args.get("page"), 1),
        page_size=parse_int_arg(request.args.get("page_size"), default_size),
    )
    return {
        "check_ins": [format_check_in(c) for c in page.items],
        "page": page.page,
        "page_size": page.page_size,
        "total": page.total,
        "total_pages": page.total_pages,
        "has_next": page.has_next,
        "has_prev": page.has_prev,
    }


# ---------- Keep ----------
@bp.get("/campaigns/<int:campaign_id>/keep")
@require_campaign_access(ACCESS_MEMBER)
def keep_detail(campaign_id: int):
    s = db_session()
    keep = get_or_create_keep(s, campaign_id)
    s.commit()
    return jsonify(
        {
            "ok": True,
            "keep": keep_to_dict(keep),
            "currencies": [c.to_dict() for c in list_currencies(s, campaign_id)],
            "history": _history_page(s, keep.id),
            "can_manage": _can_manage(),
        }
    )


@bp.post("/keeps/<int:keep_id>/edit")
@require_campaign_access(ACCESS_MANAGE, resource="keep")
def keep_edit(keep_id: int):
    s = db_session()
    keep = s.get(PlayerKeep, keep_id)
    update_keep_details(s, keep, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "keep": keep_to_dict(keep)})


# ---------- Facilities ----------
@bp.post("/keeps/<int:keep_id>/facilities")
@require_campaign_access(ACCESS_MANAGE, resource="keep")
def facility_create(keep_id: int):
    s = db_session()
    keep = s.get(PlayerKeep, keep_id)
    facility = create_facility(s, keep, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "facility": facility_to_dict(facility)}), 201


@bp.post("/facilities/<int:facility_id>/edit")
@require_campaign_access(ACCESS_MANAGE, resource="facility")
def facility_edit(facility_id: int):
    s = db_session()
    facility = s.get(Facility, facility_id)
    update_facility(s, facility, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "facility": facility_to_dict(facility)})


@bp.post("/facilities/<int:facility_id>/delete")
@require_campaign_access(ACCESS_MANAGE, resource="facility")
def facility_delete(facility_id: int):
    s = db_session()
    facility = s.get(Facility, facility_id)
    delete_facility(s, facility, _current_user())
    s.commit()
    return jsonify({"ok": True})


# ---------- Hirelings ----------
@bp.post("/keeps/<int:keep_id>/hirelings")
@require_campaign_access(ACCESS_MANAGE, resource="keep")
def hireling_create(keep_id: int):
    s = db_session()
    keep = s.get(PlayerKeep, keep_id)
    hireling = create_hireling(s, keep, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "hireling": hireling_to_dict(hireling)}), 201


@bp.post("/hirelings/<int:hireling_id>/edit")
@require_campaign_access(ACCESS_MANAGE, resource="hireling")
def hireling_edit(hireling_id: int):
    s = db_session()
    hireling = s.get(Hireling, hireling_id)
    update_hireling(s, hireling, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "hireling": hireling_to_dict(hireling)})


@bp.post("/hirelings/<int:hireling_id>/delete")
@require_campaign_access(ACCESS_MANAGE, resource="hireling")
def hireling_delete(hireling_id: int):
    s = db_session()
    hireling = s.get(Hireling, hireling_id)
    delete_hireling(s, hireling, _current_user())
    s.commit()
    return jsonify({"ok": True})


# ---------- Check-ins ----------
@bp.post("/keeps/<int:keep_id>/check-ins/preview")
@require_campaign_access(ACCESS_MANAGE, resource="keep")
def check_in_preview(keep_id: int):
    s = db_session()
    keep = s.get(PlayerKeep, keep_id)
    breakdown, production = preview_check_in(s, keep, request_payload().get("weeks"))
    data = breakdown.to_dict()
    return jsonify(
        {
            "ok": True,
            **data,
            "production": production.to_dict(),
            "currencies": currency_sections(data["breakdown"], data["net_profit"]),
        }
    )


@bp.post("/keeps/<int:keep_id>/check-ins")
@require_campaign_access(ACCESS_MANAGE, resource="keep")
def check_in_create(keep_id: int):
    s = db_session()
    u = _current_user()
    keep = s.get(PlayerKeep, keep_id)
    payload = request_payload()

    if current_app.config.get("KEEP_TRUST_CLIENT_BREAKDOWN") and "breakdown" in payload:
        check_in = record_check_in(
            s,
            keep,
            payload.get("weeks"),
            payload.get("breakdown"),
            payload.get("net_profit"),
            u,
            production=payload.get("production"),
        )
    else:
        check_in = check_in_keep(s, keep, payload.get("weeks"), u)
    s.commit()

    current_app.logger.info(
        "Keep check-in recorded (keep_id=%s check_in_id=%s weeks=%s request_id=%s)",
        keep.id,
        check_in.id,
        check_in.weeks_away,
        g.get("request_id"),
    )
    return jsonify({"ok": True, "check_in": check_in_to_dict(check_in), "keep": keep_to_dict(keep)}), 201


@bp.get("/keeps/<int:keep_id>/check-ins")
@require_campaign_access(ACCESS_MEMBER, resource="keep")
def check_in_history(keep_id: int):
    s = db_session()
    return jsonify({"ok": True, **_history_page(s, keep_id)})
