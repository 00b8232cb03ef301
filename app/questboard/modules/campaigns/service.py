from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from app.questboard.audit import record_event
from app.questboard.constants import CAMPAIGN_ROLES, ROLE_USER, USER_ROLES
from app.questboard.errors import ConflictError, NotFoundError, ValidationError
from app.questboard.models import User
from app.questboard.modules.campaigns.models import Campaign, CampaignMember

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def campaign_to_dict(campaign: Campaign, *, include_members: bool = False) -> dict:
    out = {
        "id": campaign.id,
        "name": campaign.name,
        "description": campaign.description,
        "created_at": campaign.created_at.isoformat() if campaign.created_at else None,
    }
    if include_members:
        out["members"] = [member_to_dict(m) for m in sorted(campaign.members, key=lambda m: m.id)]
    return out


def member_to_dict(member: CampaignMember) -> dict:
    return {
        "id": member.id,
        "campaign_id": member.campaign_id,
        "user_id": member.user_id,
        "email": member.user.email if member.user else None,
        "role": member.role,
        "character_name": member.character_name,
    }


def validate_campaign_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("name") or "").strip():
        errors.append("Campaign name is required.")
    return errors


def create_campaign(s: "Session", payload: dict, user: User) -> Campaign:
    """Create a campaign. Admins are not auto-enrolled; membership is managed separately."""
    errors = validate_campaign_payload(payload)
    if errors:
        raise ValidationError(errors)

    campaign = Campaign(
        name=payload["name"].strip(),
        description=(payload.get("description") or "").strip() or None,
        created_by_user_id=user.id,
    )
    s.add(campaign)
    s.flush()

    record_event(
        s,
        actor=user,
        action="campaign.create",
        entity_type="Campaign",
        entity_id=str(campaign.id),
        metadata={"name": campaign.name},
    )
    return campaign


def list_campaigns_for_user(s: "Session", user: User) -> list[Campaign]:
    q = s.query(Campaign)
    if not user.is_admin:
        q = q.join(CampaignMember, CampaignMember.campaign_id == Campaign.id).filter(CampaignMember.user_id == user.id)
    return q.order_by(Campaign.name.asc(), Campaign.id.asc()).all()


def create_user(s: "Session", payload: dict, actor: User) -> User:
    """Create a login. Password hashing follows werkzeug defaults."""
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    role = (payload.get("role") or ROLE_USER).strip().upper()

    errors = []
    if not email or "@" not in email:
        errors.append("A valid email is required.")
    if len(password) < 8:
        errors.append("Password must be at least 8 characters.")
    if role not in USER_ROLES:
        errors.append(f"Invalid role. Must be one of: {', '.join(sorted(USER_ROLES))}")
    if errors:
        raise ValidationError(errors)

    if s.query(User).filter(User.email == email).one_or_none():
        raise ConflictError("A user with that email already exists.")

    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        display_name=(payload.get("display_name") or "").strip() or None,
        role=role,
        is_active=True,
    )
    s.add(user)
    s.flush()

    record_event(s, actor=actor, action="user.create", entity_type="User", entity_id=str(user.id), metadata={"email": email, "role": role})
    return user


def add_member(s: "Session", campaign: Campaign, payload: dict, actor: User) -> CampaignMember:
    """Enroll an existing user (by user_id or email) in the campaign."""
    role = (payload.get("role") or "").strip().upper()
    if role not in CAMPAIGN_ROLES:
        raise ValidationError("Invalid role. Must be PLAYER or DM.")

    target: User | None = None
    if payload.get("user_id"):
        try:
            target = s.get(User, int(payload["user_id"]))
        except (TypeError, ValueError):
            raise ValidationError("user_id must be an integer.") from None
    elif (payload.get("email") or "").strip():
        email = payload["email"].strip().lower()
        target = s.query(User).filter(User.email == email).one_or_none()
    else:
        raise ValidationError("User ID or email is required.")
    if target is None:
        raise NotFoundError("User not found.")

    existing = (
        s.query(CampaignMember)
        .filter(CampaignMember.campaign_id == campaign.id)
        .filter(CampaignMember.user_id == target.id)
        .one_or_none()
    )
    if existing:
        raise ConflictError("User is already a member of this campaign.")

    member = CampaignMember(
        campaign_id=campaign.id,
        user_id=target.id,
        role=role,
        character_name=(payload.get("character_name") or "").strip() or None,
    )
    s.add(member)
    try:
        s.flush()
    except IntegrityError:
        s.rollback()
        raise ConflictError("User is already a member of this campaign.") from None
    s.refresh(member)

    record_event(
        s,
        actor=actor,
        action="campaign.member_add",
        entity_type="CampaignMember",
        entity_id=str(member.id),
        metadata={"campaign_id": campaign.id, "user_id": target.id, "role": role},
    )
    return member


def update_member_role(s: "Session", member: CampaignMember, new_role: str | None, actor: User) -> CampaignMember:
    role = (new_role or "").strip().upper()
    if role not in CAMPAIGN_ROLES:
        raise ValidationError("Invalid role. Must be PLAYER or DM.")
    old_role = member.role
    member.role = role

    record_event(
        s,
        actor=actor,
        action="campaign.member_role",
        entity_type="CampaignMember",
        entity_id=str(member.id),
        metadata={"campaign_id": member.campaign_id, "changes": {"role": {"old": old_role, "new": role}}},
    )
    return member


def remove_member(s: "Session", member: CampaignMember, actor: User) -> None:
    user = s.get(User, member.user_id)
    if user and user.active_campaign_id == member.campaign_id:
        user.active_campaign_id = None

    record_event(
        s,
        actor=actor,
        action="campaign.member_remove",
        entity_type="CampaignMember",
        entity_id=str(member.id),
        metadata={"campaign_id": member.campaign_id, "user_id": member.user_id},
    )
    s.delete(member)


def set_active_campaign(s: "Session", user: User, campaign_id: int | None) -> User:
    """Point the user at a campaign they belong to (admins may pick any); None clears it."""
    if campaign_id is not None:
        campaign = s.get(Campaign, campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign not found.")
        if not user.is_admin:
            membership = (
                s.query(CampaignMember)
                .filter(CampaignMember.campaign_id == campaign_id)
                .filter(CampaignMember.user_id == user.id)
                .one_or_none()
            )
            if membership is None:
                raise ValidationError("You are not a member of this campaign.")
    user.active_campaign_id = campaign_id
    return user
