from __future__ import annotations

from flask import Blueprint, g, jsonify

from app.questboard.constants import ACCESS_MANAGE, ACCESS_MEMBER
from app.questboard.db import db_session
from app.questboard.models import User
from app.questboard.modules.currencies.models import Currency
from app.questboard.modules.currencies.service import (
    create_currency,
    delete_currency,
    initialize_default_currencies,
    list_currencies,
    update_currency,
)
from app.questboard.rbac import require_campaign_access
from app.questboard.utils import request_payload

bp = Blueprint("currencies", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/campaigns/<int:campaign_id>/currencies")
@require_campaign_access(ACCESS_MEMBER)
def currencies_list(campaign_id: int):
    s = db_session()
    return jsonify({"ok": True, "currencies": [c.to_dict() for c in list_currencies(s, campaign_id)]})


@bp.post("/campaigns/<int:campaign_id>/currencies")
@require_campaign_access(ACCESS_MANAGE)
def currencies_create(campaign_id: int):
    s = db_session()
    currency = create_currency(s, campaign_id, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "currency": currency.to_dict()}), 201


@bp.post("/campaigns/<int:campaign_id>/currencies/defaults")
@require_campaign_access(ACCESS_MANAGE)
def currencies_defaults(campaign_id: int):
    s = db_session()
    currencies = initialize_default_currencies(s, campaign_id, _current_user())
    s.commit()
    return jsonify({"ok": True, "currencies": [c.to_dict() for c in currencies]})


@bp.post("/currencies/<int:currency_id>/edit")
@require_campaign_access(ACCESS_MANAGE, resource="currency")
def currency_edit(currency_id: int):
    s = db_session()
    currency = s.get(Currency, currency_id)
    update_currency(s, currency, request_payload(), _current_user())
    s.commit()
    return jsonify({"ok": True, "currency": currency.to_dict()})


@bp.post("/currencies/<int:currency_id>/delete")
@require_campaign_access(ACCESS_MANAGE, resource="currency")
def currency_delete(currency_id: int):
    s = db_session()
    currency = s.get(Currency, currency_id)
    delete_currency(s, currency, _current_user())
    s.commit()
    return jsonify({"ok": True})
