from __future__ import annotations

from flask import Blueprint, g, jsonify

from app.questboard.constants import ACCESS_MANAGE, ACCESS_MEMBER, CAMPAIGN_ROLE_DM
from app.questboard.db import db_session
from app.questboard.models import User
from app.questboard.modules.shops.models import Merchant, StockItem
from app.questboard.modules.shops.service import (
    create_merchant,
    create_stock_item,
    delete_merchant,
    delete_stock_item,
    list_merchants,
    merchant_to_dict,
    stock_item_to_dict,
    update_merchant,
    update_stock_item,
)
from app.questboard.rbac import require_campaign_access
from app.questboard.utils import request_payload

bp = Blueprint("shops", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Merchants ----------
@bp.get("/campaigns/<int:campaign_id>/merchants")
@require_campaign_access(ACCESS_MEMBER)
def merchants_list(campaign_id: int):
    s = db_session()
    can_manage = _current_user().is_admin or g.get("campaign_role") == CAMPAIGN_ROLE_DM
    return jsonify(
        {
            "ok": True,
            "merchants": [merchant_to_dict(m) for m in list_merchants(s, campaign_id)],
            "can_manage": can_manage,
        }
    )


@bp.post("/campaigns/<int:campaign_id>/merchants")
@require_campaign_access(ACCESS_MANAGE)
def merchants_create(campaign_id: int):
    s = db_session()
    merchant = create_merchant(s, campaign_id, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "merchant": merchant_to_dict(merchant)}), 201


@bp.get("/merchants/<int:merchant_id>")
@require_campaign_access(ACCESS_MEMBER, resource="merchant")
def merchant_detail(merchant_id: int):
    s = db_session()
    return jsonify({"ok": True, "merchant": merchant_to_dict(s.get(Merchant, merchant_id))})


@bp.post("/merchants/<int:merchant_id>/edit")
@require_campaign_access(ACCESS_MANAGE, resource="merchant")
def merchant_edit(merchant_id: int):
    s = db_session()
    merchant = s.get(Merchant, merchant_id)
    update_merchant(s, merchant, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "merchant": merchant_to_dict(merchant)})


@bp.post("/merchants/<int:merchant_id>/delete")
@require_campaign_access(ACCESS_MANAGE, resource="merchant")
def merchant_delete(merchant_id: int):
    s = db_session()
    merchant = s.get(Merchant, merchant_id)
    delete_merchant(s, merchant, _current_user())
    s.commit()
    return jsonify({"ok": True})


# ---------- Stock ----------
@bp.post("/merchants/<int:merchant_id>/stock")
@require_campaign_access(ACCESS_MANAGE, resource="merchant")
def stock_create(merchant_id: int):
    s = db_session()
    merchant = s.get(Merchant, merchant_id)
    item = create_stock_item(s, merchant, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "stock_item": stock_item_to_dict(item)}), 201


@bp.post("/stock/<int:stock_item_id>/edit")
@require_campaign_access(ACCESS_MANAGE, resource="stock_item")
def stock_edit(stock_item_id: int):
    s = db_session()
    item = s.get(StockItem, stock_item_id)
    update_stock_item(s, item, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "stock_item": stock_item_to_dict(item)})


@bp.post("/stock/<int:stock_item_id>/delete")
@require_campaign_access(ACCESS_MANAGE, resource="stock_item")
def stock_delete(stock_item_id: int):
    s = db_session()
    item = s.get(StockItem, stock_item_id)
    delete_stock_item(s, item, _current_user())
    s.commit()
    return jsonify({"ok": True})
