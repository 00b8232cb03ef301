from __future__ import annotations

from flask import Blueprint, abort, g, jsonify

from app.questboard.auth import user_to_dict
from app.questboard.constants import ACCESS_MANAGE, ACCESS_MEMBER
from app.questboard.db import db_session
from app.questboard.errors import ValidationError
from app.questboard.models import User
from app.questboard.modules.campaigns.models import Campaign, CampaignMember
from app.questboard.modules.campaigns.service import (
    add_member,
    campaign_to_dict,
    create_campaign,
    create_user,
    list_campaigns_for_user,
    member_to_dict,
    remove_member,
    set_active_campaign,
    update_member_role,
)
from app.questboard.rbac import require_admin, require_campaign_access, require_login
from app.questboard.utils import request_payload

bp = Blueprint("campaigns", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Campaigns ----------
@bp.get("/campaigns")
@require_login
def campaigns_list():
    s = db_session()
    campaigns = list_campaigns_for_user(s, _current_user())
    return jsonify({"ok": True, "campaigns": [campaign_to_dict(c) for c in campaigns]})


@bp.post("/campaigns")
@require_admin
def campaigns_create():
    s = db_session()
    campaign = create_campaign(s, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "campaign": campaign_to_dict(campaign)}), 201


@bp.get("/campaigns/<int:campaign_id>")
@require_campaign_access(ACCESS_MEMBER)
def campaign_detail(campaign_id: int):
    s = db_session()
    campaign = s.get(Campaign, campaign_id)
    return jsonify({"ok": True, "campaign": campaign_to_dict(campaign, include_members=True), "role": g.campaign_role})


# ---------- Members ----------
@bp.post("/campaigns/<int:campaign_id>/members")
@require_campaign_access(ACCESS_MANAGE)
def campaign_member_add(campaign_id: int):
    s = db_session()
    campaign = s.get(Campaign, campaign_id)
    member = add_member(s, campaign, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "member": member_to_dict(member)}), 201


@bp.post("/members/<int:member_id>/role")
@require_admin
def campaign_member_role(member_id: int):
    s = db_session()
    member = s.get(CampaignMember, member_id)
    if not member:
        abort(404)
    update_member_role(s, member, request_payload().get("role"), _current_user())
    s.commit()
    return jsonify({"ok": True, "member": member_to_dict(member)})


@bp.post("/members/<int:member_id>/delete")
@require_campaign_access(ACCESS_MANAGE, resource="member")
def campaign_member_remove(member_id: int):
    s = db_session()
    member = s.get(CampaignMember, member_id)
    remove_member(s, member, _current_user())
    s.commit()
    return jsonify({"ok": True})


# ---------- Users ----------
@bp.post("/users")
@require_admin
def users_create():
    s = db_session()
    user = create_user(s, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "user": user_to_dict(user)}), 201


@bp.post("/me/active-campaign")
@require_login
def me_active_campaign():
    s = db_session()
    raw = request_payload().get("campaign_id")
    try:
        campaign_id = int(raw) if raw not in (None, "") else None
    except (TypeError, ValueError):
        raise ValidationError("campaign_id must be an integer.") from None
    user = set_active_campaign(s, _current_user(), campaign_id)
    s.commit()
    return jsonify({"ok": True, "user": user_to_dict(user)})
