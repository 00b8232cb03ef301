from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.questboard.audit import apply_changes, record_event
from app.questboard.constants import STOCK_ROTATING, STOCK_STAPLE, STOCK_TYPES, VARIABLE_PRICE
from app.questboard.errors import ValidationError
from app.questboard.modules.currencies.models import Currency
from app.questboard.modules.shops.models import Merchant, StockItem
from app.questboard.utils import clean_str, parse_bool

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.questboard.models import User


# Whole units or up to two decimal places, e.g. "10" or "10.50"
PRICE_RE = re.compile(r"^\d+(\.\d{1,2})?$")


def format_price(price: float, abbreviation: str) -> str:
    if price == VARIABLE_PRICE:
        return "Variable"
    if float(price).is_integer():
        return f"{int(price)} {abbreviation}"
    return f"{price:.2f} {abbreviation}"


def stock_item_to_dict(item: StockItem) -> dict[str, Any]:
    variable = item.price == VARIABLE_PRICE
    return {
        "id": item.id,
        "merchant_id": item.merchant_id,
        "item_name": item.item_name,
        "description": item.description,
        "type": item.type,
        "price": None if variable else item.price,
        "variable_price": variable,
        "price_label": format_price(item.price, item.currency.abbreviation),
        "currency": {"id": item.currency.id, "abbreviation": item.currency.abbreviation, "name": item.currency.name},
        "quantity": item.quantity,
        "in_stock": item.quantity != 0,
        "available": item.available,
    }


def _stock_sort_key(item: StockItem) -> tuple[int, str]:
    return (STOCK_TYPES.index(item.type) if item.type in STOCK_TYPES else len(STOCK_TYPES), item.item_name.lower())


def merchant_to_dict(merchant: Merchant) -> dict[str, Any]:
    items = sorted(merchant.stock_items, key=_stock_sort_key)
    return {
        "id": merchant.id,
        "campaign_id": merchant.campaign_id,
        "name": merchant.name,
        "city": merchant.city,
        "location": merchant.location,
        "description": merchant.description,
        "staples": [stock_item_to_dict(i) for i in items if i.type == STOCK_STAPLE],
        "rotating": [stock_item_to_dict(i) for i in items if i.type == STOCK_ROTATING],
    }


# ---------- Merchants ----------


MERCHANT_FIELDS = ("name", "city", "location", "description")


def parse_merchant_payload(payload: dict) -> dict[str, Any]:
    values = {key: clean_str(payload, key) for key in MERCHANT_FIELDS}
    if not values["name"]:
        raise ValidationError("Merchant name is required.")
    return values


def list_merchants(s: "Session", campaign_id: int) -> list[Merchant]:
    merchants = s.query(Merchant).filter(Merchant.campaign_id == campaign_id).all()
    # Merchants without a city sort after every named city
    return sorted(merchants, key=lambda m: (m.city is None, (m.city or "").lower(), m.name.lower()))


def create_merchant(s: "Session", campaign_id: int, payload: dict, user: "User") -> Merchant:
    values = parse_merchant_payload(payload)
    now = datetime.utcnow()
    merchant = Merchant(
        campaign_id=campaign_id,
        created_by_user_id=user.id,
        created_at=now,
        updated_at=now,
        **values,
    )
    s.add(merchant)
    s.flush()

    record_event(
        s,
        actor=user,
        action="shop.merchant_create",
        entity_type="Merchant",
        entity_id=str(merchant.id),
        metadata={"campaign_id": campaign_id, "name": merchant.name},
    )
    return merchant


def update_merchant(s: "Session", merchant: Merchant, payload: dict, user: "User") -> Merchant:
    changes = apply_changes(merchant, parse_merchant_payload(payload))
    if not changes:
        return merchant
    merchant.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="shop.merchant_edit",
        entity_type="Merchant",
        entity_id=str(merchant.id),
        metadata={"campaign_id": merchant.campaign_id, "changes": changes},
    )
    return merchant


def delete_merchant(s: "Session", merchant: Merchant, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="shop.merchant_delete",
        entity_type="Merchant",
        entity_id=str(merchant.id),
        metadata={"campaign_id": merchant.campaign_id, "name": merchant.name, "stock_items": len(merchant.stock_items)},
    )
    s.delete(merchant)


# ---------- Stock ----------


def _resolve_currency(s: "Session", campaign_id: int, payload: dict) -> Currency | None:
    """By `currency_id`, or by `currency` abbreviation; only the merchant's own campaign counts."""
    q = s.query(Currency).filter(Currency.campaign_id == campaign_id)
    raw_id = payload.get("currency_id")
    if raw_id not in (None, "") and not isinstance(raw_id, bool):
        try:
            return q.filter(Currency.id == int(raw_id)).one_or_none()
        except (TypeError, ValueError):
            return None
    abbreviation = clean_str(payload, "currency")
    if abbreviation:
        return q.filter(Currency.abbreviation == abbreviation).one_or_none()
    return None


def parse_stock_payload(s: "Session", merchant: Merchant, payload: dict) -> dict[str, Any]:
    errors: list[str] = []
    item_name = clean_str(payload, "item_name")
    if not item_name:
        errors.append("Item name is required.")

    stock_type = (clean_str(payload, "type") or STOCK_STAPLE).upper()
    if stock_type not in STOCK_TYPES:
        errors.append("Stock type must be STAPLE or ROTATING.")

    variable = parse_bool(payload.get("variable_price"), False)
    price: float | None = None
    if variable is None:
        errors.append("Variable price must be true or false.")
    elif variable:
        price = VARIABLE_PRICE
    else:
        raw_price = payload.get("price")
        text = "" if raw_price is None or isinstance(raw_price, bool) else str(raw_price).strip()
        if not text:
            errors.append("Price is required.")
        elif not PRICE_RE.match(text):
            errors.append("Enter a valid price (e.g., 10 or 10.50).")
        else:
            price = float(text)

    currency = _resolve_currency(s, merchant.campaign_id, payload)
    if currency is None:
        errors.append("Please select a currency from this campaign.")

    quantity: int | None = None
    raw_quantity = payload.get("quantity")
    if raw_quantity not in (None, ""):
        try:
            if isinstance(raw_quantity, bool) or (isinstance(raw_quantity, float) and not raw_quantity.is_integer()):
                raise ValueError(raw_quantity)
            quantity = int(raw_quantity)
        except (TypeError, ValueError):
            errors.append("Quantity must be a whole number.")
        else:
            if quantity < 0:
                errors.append("Quantity cannot be negative.")

    available = parse_bool(payload.get("available"), True)
    if available is None:
        errors.append("Available must be true or false.")

    if errors:
        raise ValidationError(errors)
    return {
        "item_name": item_name,
        "description": clean_str(payload, "description"),
        "type": stock_type,
        "price": price,
        "currency_id": currency.id,
        "quantity": quantity,
        "available": available,
    }


def create_stock_item(s: "Session", merchant: Merchant, payload: dict, user: "User") -> StockItem:
    values = parse_stock_payload(s, merchant, payload)
    now = datetime.utcnow()
    item = StockItem(created_at=now, updated_at=now, **values)
    merchant.stock_items.append(item)
    s.flush()

    record_event(
        s,
        actor=user,
        action="shop.stock_create",
        entity_type="StockItem",
        entity_id=str(item.id),
        metadata={"merchant_id": merchant.id, "item_name": item.item_name},
    )
    return item


def update_stock_item(s: "Session", item: StockItem, payload: dict, user: "User") -> StockItem:
    values = parse_stock_payload(s, item.merchant, payload)
    changes = apply_changes(item, values)
    if "currency_id" in changes:
        s.flush()
        s.refresh(item, ["currency"])
    item.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="shop.stock_edit",
        entity_type="StockItem",
        entity_id=str(item.id),
        metadata={"merchant_id": item.merchant_id, "changes": changes},
    )
    return item


def delete_stock_item(s: "Session", item: StockItem, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="shop.stock_delete",
        entity_type="StockItem",
        entity_id=str(item.id),
        metadata={"merchant_id": item.merchant_id, "item_name": item.item_name},
    )
    s.delete(item)
