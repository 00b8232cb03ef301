"""
Display helpers for recorded check-ins.

Nothing here is persisted: the profit/loss/neutral status and the summary
string are derived from a stored snapshot every time it is shown.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

STATUS_PROFIT = "profit"
STATUS_LOSS = "loss"
STATUS_NEUTRAL = "neutral"


def overall_status(net_profit: Mapping[str, float] | None) -> str:
    if not net_profit:
        return STATUS_NEUTRAL
    values = list(net_profit.values())
    total_positive = sum(v for v in values if v > 0)
    total_negative = sum(abs(v) for v in values if v < 0)
    if total_positive > total_negative:
        return STATUS_PROFIT
    if total_negative > total_positive:
        return STATUS_LOSS
    return STATUS_NEUTRAL


def format_amount(amount: float, currency: str, *, signed: bool = False) -> str:
    sign = "+" if signed and amount >= 0 else ""
    return f"{sign}{amount:.2f} {currency}"


def net_profit_summary(net_profit: Mapping[str, float] | None) -> str:
    if net_profit is None:
        return "No data"
    if not net_profit:
        return "No transactions"
    return " • ".join(format_amount(amount, currency, signed=True) for currency, amount in net_profit.items())


def format_date(value: datetime | None) -> str:
    if value is None:
        return "—"
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def _line_view(line: Mapping[str, Any], currency: str) -> dict[str, Any]:
    amount = float(line.get("amount") or 0)
    return {
        "name": line.get("name"),
        "amount": round(amount, 2),
        "per_week": line.get("per_week"),
        "label": f"{line.get('name')}: {amount:.2f} {currency} ({line.get('per_week')}/week)",
    }


def currency_sections(breakdown: Mapping[str, Any] | None, net_profit: Mapping[str, float] | None) -> list[dict[str, Any]]:
    """Per-currency income/expense sections, skipping currencies with no activity."""
    sections: list[dict[str, Any]] = []
    for currency, totals in (breakdown or {}).items():
        total_upkeep = float(totals.get("total_upkeep") or 0)
        total_profit = float(totals.get("total_profit") or 0)
        if total_upkeep == 0 and total_profit == 0:
            continue
        lines = list(totals.get("facilities") or []) + list(totals.get("hirelings") or [])
        net = (net_profit or {}).get(currency, total_profit - total_upkeep)
        sections.append(
            {
                "currency": currency,
                "net": round(net, 2),
                "net_label": format_amount(net, currency, signed=True),
                "is_positive": net >= 0,
                "total_profit": round(total_profit, 2),
                "total_upkeep": round(total_upkeep, 2),
                "income": [_line_view(l, currency) for l in lines if l.get("type") == "profit"],
                "expenses": [_line_view(l, currency) for l in lines if l.get("type") in ("upkeep", "salary")],
            }
        )
    return sections


def format_check_in(check_in: Any) -> dict[str, Any]:
    net_profit = check_in.net_profit
    return {
        "id": check_in.id,
        "weeks_away": check_in.weeks_away,
        "weeks_label": f"{check_in.weeks_away} {'week' if check_in.weeks_away == 1 else 'weeks'}",
        "created_at": check_in.created_at.isoformat() if check_in.created_at else None,
        "date_label": format_date(check_in.created_at),
        "status": overall_status(net_profit),
        "summary": net_profit_summary(net_profit),
        "net_profit": net_profit,
        "currencies": currency_sections(check_in.breakdown, net_profit),
        "production": check_in.production or {"completed_items": [], "recurring_production": []},
    }
