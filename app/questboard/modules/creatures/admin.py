from __future__ import annotations

from flask import Blueprint, abort, g, jsonify, request

from app.questboard.constants import ACCESS_MANAGE, ACCESS_MEMBER, CAMPAIGN_ROLE_DM
from app.questboard.db import db_session
from app.questboard.models import User
from app.questboard.modules.creatures.models import Creature
from app.questboard.modules.creatures.service import (
    create_creature,
    creature_to_dict,
    delete_creature,
    list_creatures,
    update_creature,
)
from app.questboard.rbac import require_campaign_access
from app.questboard.utils import request_payload

bp = Blueprint("creatures", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _can_manage() -> bool:
    return _current_user().is_admin or g.get("campaign_role") == CAMPAIGN_ROLE_DM


@bp.get("/campaigns/<int:campaign_id>/creatures")
@require_campaign_access(ACCESS_MEMBER)
def creatures_list(campaign_id: int):
    s = db_session()
    can_manage = _can_manage()
    tags = [t for t in (request.args.get("tags") or "").split(",") if t.strip()]
    creatures = list_creatures(
        s,
        campaign_id,
        include_private=can_manage,
        search=(request.args.get("search") or "").strip() or None,
        category=(request.args.get("category") or "").strip() or None,
        tags=tags,
    )
    return jsonify(
        {
            "ok": True,
            "creatures": [creature_to_dict(c) for c in creatures],
            "categories": sorted({c.category for c in creatures}),
            "can_manage": can_manage,
        }
    )


@bp.post("/campaigns/<int:campaign_id>/creatures")
@require_campaign_access(ACCESS_MANAGE)
def creatures_create(campaign_id: int):
    s = db_session()
    creature = create_creature(s, campaign_id, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "creature": creature_to_dict(creature)}), 201


@bp.get("/creatures/<int:creature_id>")
@require_campaign_access(ACCESS_MEMBER, resource="creature")
def creature_detail(creature_id: int):
    s = db_session()
    creature = s.get(Creature, creature_id)
    # Private entries do not exist as far as players can tell
    if creature.is_private and not _can_manage():
        abort(404)
    return jsonify({"ok": True, "creature": creature_to_dict(creature)})


@bp.post("/creatures/<int:creature_id>/edit")
@require_campaign_access(ACCESS_MANAGE, resource="creature")
def creature_edit(creature_id: int):
    s = db_session()
    creature = s.get(Creature, creature_id)
    update_creature(s, creature, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "creature": creature_to_dict(creature)})


@bp.post("/creatures/<int:creature_id>/delete")
@require_campaign_access(ACCESS_MANAGE, resource="creature")
def creature_delete(creature_id: int):
    s = db_session()
    creature = s.get(Creature, creature_id)
    delete_creature(s, creature, _current_user())
    s.commit()
    return jsonify({"ok": True})
