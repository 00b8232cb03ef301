from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g
from sqlalchemy.orm import Session

from app.questboard.constants import ACCESS_MANAGE, ACCESS_MEMBER, CAMPAIGN_ROLE_DM
from app.questboard.db import db_session
from app.questboard.models import User


def campaign_role(s: Session, user: User | None, campaign_id: int) -> str | None:
    """Membership role (DM / PLAYER) of `user` in the campaign, or None."""
    from app.questboard.modules.campaigns.models import CampaignMember

    if not user or not user.is_active:
        return None
    member = (
        s.query(CampaignMember)
        .filter(CampaignMember.campaign_id == campaign_id)
        .filter(CampaignMember.user_id == user.id)
        .one_or_none()
    )
    return member.role if member else None


def user_has_access(s: Session, user: User | None, campaign_id: int, level: str) -> bool:
    if not user or not user.is_active:
        return False
    if user.is_admin:
        return True
    role = campaign_role(s, user, campaign_id)
    if level == ACCESS_MANAGE:
        return role == CAMPAIGN_ROLE_DM
    return role is not None


# ---------- resource -> owning campaign ----------


def _campaign_of_campaign(s: Session, campaign_id: int) -> int | None:
    from app.questboard.modules.campaigns.models import Campaign

    c = s.get(Campaign, campaign_id)
    return c.id if c else None


def _campaign_of_keep(s: Session, keep_id: int) -> int | None:
    from app.questboard.modules.player_keep.models import PlayerKeep

    keep = s.get(PlayerKeep, keep_id)
    return keep.campaign_id if keep else None


def _campaign_of_facility(s: Session, facility_id: int) -> int | None:
    from app.questboard.modules.player_keep.models import Facility, PlayerKeep

    row = (
        s.query(PlayerKeep.campaign_id)
        .join(Facility, Facility.player_keep_id == PlayerKeep.id)
        .filter(Facility.id == facility_id)
        .one_or_none()
    )
    return row[0] if row else None


def _campaign_of_hireling(s: Session, hireling_id: int) -> int | None:
    from app.questboard.modules.player_keep.models import Hireling, PlayerKeep

    row = (
        s.query(PlayerKeep.campaign_id)
        .join(Hireling, Hireling.player_keep_id == PlayerKeep.id)
        .filter(Hireling.id == hireling_id)
        .one_or_none()
    )
    return row[0] if row else None


def _campaign_of_currency(s: Session, currency_id: int) -> int | None:
    from app.questboard.modules.currencies.models import Currency

    c = s.get(Currency, currency_id)
    return c.campaign_id if c else None


def _campaign_of_member(s: Session, member_id: int) -> int | None:
    from app.questboard.modules.campaigns.models import CampaignMember

    m = s.get(CampaignMember, member_id)
    return m.campaign_id if m else None


def _campaign_of_merchant(s: Session, merchant_id: int) -> int | None:
    from app.questboard.modules.shops.models import Merchant

    m = s.get(Merchant, merchant_id)
    return m.campaign_id if m else None


def _campaign_of_stock_item(s: Session, stock_item_id: int) -> int | None:
    from app.questboard.modules.shops.models import Merchant, StockItem

    row = (
        s.query(Merchant.campaign_id)
        .join(StockItem, StockItem.merchant_id == Merchant.id)
        .filter(StockItem.id == stock_item_id)
        .one_or_none()
    )
    return row[0] if row else None


def _campaign_of_creature(s: Session, creature_id: int) -> int | None:
    from app.questboard.modules.creatures.models import Creature

    c = s.get(Creature, creature_id)
    return c.campaign_id if c else None


# resource name -> (route kwarg, resolver)
RESOURCES: dict[str, tuple[str, Callable[[Session, int], int | None]]] = {
    "campaign": ("campaign_id", _campaign_of_campaign),
    "keep": ("keep_id", _campaign_of_keep),
    "facility": ("facility_id", _campaign_of_facility),
    "hireling": ("hireling_id", _campaign_of_hireling),
    "currency": ("currency_id", _campaign_of_currency),
    "member": ("member_id", _campaign_of_member),
    "merchant": ("merchant_id", _campaign_of_merchant),
    "stock_item": ("stock_item_id", _campaign_of_stock_item),
    "creature": ("creature_id", _campaign_of_creature),
}


def _authenticated_user() -> User | None:
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        return None
    return user


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if _authenticated_user() is None:
            abort(401)
        return fn(*args, **kwargs)

    return wrapped


def require_admin(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user = _authenticated_user()
        if user is None:
            abort(401)
        if not user.is_admin:
            g.missing_access = "admin"
            abort(403)
        return fn(*args, **kwargs)

    return wrapped


def require_campaign_access(level: str = ACCESS_MEMBER, *, resource: str = "campaign") -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Single authorization gate for campaign-scoped routes.

    Resolves the route's `<resource>_id` kwarg to its owning campaign, 404s when
    the resource does not exist, then checks `level` (member / manage) for the
    current user. Global admins pass every check.
    """
    if level not in (ACCESS_MEMBER, ACCESS_MANAGE):
        raise ValueError(f"Unknown access level: {level}")
    if resource not in RESOURCES:
        raise ValueError(f"Unknown resource: {resource}")
    kwarg, resolve = RESOURCES[resource]

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = _authenticated_user()
            if user is None:
                abort(401)
            s = db_session()
            campaign_id = resolve(s, int(kwargs[kwarg]))
            if campaign_id is None:
                abort(404)
            if not user_has_access(s, user, campaign_id, level):
                g.missing_access = level
                abort(403)
            g.campaign_id = campaign_id
            g.campaign_role = campaign_role(s, user, campaign_id)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
