"""
Keep ledger calculator.

Given how many weeks the party was away, settle every facility's upkeep and
profit and every hireling's salary and profit:

- amounts are per-week rates multiplied by `weeks` (linear, no compounding)
- each currency abbreviation gets its own accumulator; nothing is ever
  converted or summed across currencies
- upkeep and profit are accumulated independently, even in the same currency
- net_profit[c] = total_profit[c] - total_upkeep[c]

Everything here is pure: no DB, no Flask, no rounding (rounding to 2 decimals
is a display concern, see history.py). Inputs are duck-typed so ORM rows and
the *Rates dataclasses below work the same way.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from app.questboard.errors import ValidationError

LINE_UPKEEP = "upkeep"
LINE_SALARY = "salary"
LINE_PROFIT = "profit"


class InvalidWeeksError(ValidationError, ValueError):
    def __init__(self, message: str = "Please enter a valid number of weeks."):
        super().__init__(message)


@dataclass(frozen=True)
class FacilityRates:
    name: str
    upkeep_amount: float | None = None
    upkeep_currency: str | None = None
    profit_amount: float | None = None
    profit_currency: str | None = None


@dataclass(frozen=True)
class HirelingRates:
    name: str
    salary_amount: float | None = None
    salary_currency: str | None = None
    profit_amount: float | None = None
    profit_currency: str | None = None


@dataclass(frozen=True)
class LedgerLine:
    name: str
    type: str  # upkeep | salary | profit
    amount: float
    per_week: float
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "amount": self.amount,
            "per_week": self.per_week,
            "currency": self.currency,
        }


@dataclass
class CurrencyTotals:
    total_upkeep: float = 0
    total_profit: float = 0
    facility_lines: list[LedgerLine] = field(default_factory=list)
    hireling_lines: list[LedgerLine] = field(default_factory=list)

    @property
    def net(self) -> float:
        return self.total_profit - self.total_upkeep

    @property
    def has_activity(self) -> bool:
        return not (self.total_upkeep == 0 and self.total_profit == 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_upkeep": self.total_upkeep,
            "total_profit": self.total_profit,
            "facilities": [line.to_dict() for line in self.facility_lines],
            "hirelings": [line.to_dict() for line in self.hireling_lines],
        }


@dataclass(frozen=True)
class Breakdown:
    weeks: int
    currency_totals: dict[str, CurrencyTotals]
    net_profit: dict[str, float]

    def active_currencies(self) -> dict[str, CurrencyTotals]:
        """Currencies with any upkeep or profit (zero rows are hidden when displayed)."""
        return {c: t for c, t in self.currency_totals.items() if t.has_activity}

    def breakdown_dict(self) -> dict[str, dict[str, Any]]:
        return {c: t.to_dict() for c, t in self.currency_totals.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "weeks": self.weeks,
            "breakdown": self.breakdown_dict(),
            "net_profit": dict(self.net_profit),
        }


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def parse_weeks(raw: Any) -> int:
    """Positive whole number of weeks, or InvalidWeeksError."""
    if raw is None or isinstance(raw, bool):
        raise InvalidWeeksError()
    if isinstance(raw, float):
        if not raw.is_integer():
            raise InvalidWeeksError()
        weeks = int(raw)
    elif isinstance(raw, int):
        weeks = raw
    else:
        try:
            weeks = int(str(raw).strip())
        except ValueError:
            raise InvalidWeeksError() from None
    if weeks <= 0:
        raise InvalidWeeksError()
    return weeks


def _accumulate(
    totals: dict[str, CurrencyTotals],
    *,
    name: str,
    line_type: str,
    per_week: Any,
    currency: Any,
    weeks: int,
    hireling: bool,
) -> None:
    # Unset or zero rates and blank currencies contribute nothing.
    if not per_week or not currency:
        return
    amount = per_week * weeks
    acc = totals.setdefault(currency, CurrencyTotals())
    if line_type == LINE_PROFIT:
        acc.total_profit += amount
    else:
        acc.total_upkeep += amount
    line = LedgerLine(name=name, type=line_type, amount=amount, per_week=per_week, currency=currency)
    if hireling:
        acc.hireling_lines.append(line)
    else:
        acc.facility_lines.append(line)


def compute_breakdown(
    weeks: Any,
    facilities: Iterable[Any] = (),
    hirelings: Iterable[Any] = (),
    *,
    currencies: Iterable[str] = (),
) -> Breakdown:
    """
    Settle `weeks` of facility and hireling obligations.

    `currencies` optionally pre-seeds empty accumulators (e.g. every currency
    of the campaign); those stay zero-activity unless something uses them.
    """
    weeks = parse_weeks(weeks)

    totals: dict[str, CurrencyTotals] = {}
    for abbreviation in currencies:
        totals.setdefault(abbreviation, CurrencyTotals())

    for facility in facilities or ():
        name = _field(facility, "name")
        _accumulate(
            totals,
            name=name,
            line_type=LINE_UPKEEP,
            per_week=_field(facility, "upkeep_amount"),
            currency=_field(facility, "upkeep_currency"),
            weeks=weeks,
            hireling=False,
        )
        _accumulate(
            totals,
            name=name,
            line_type=LINE_PROFIT,
            per_week=_field(facility, "profit_amount"),
            currency=_field(facility, "profit_currency"),
            weeks=weeks,
            hireling=False,
        )

    for hireling in hirelings or ():
        name = _field(hireling, "name")
        _accumulate(
            totals,
            name=name,
            line_type=LINE_SALARY,
            per_week=_field(hireling, "salary_amount"),
            currency=_field(hireling, "salary_currency"),
            weeks=weeks,
            hireling=True,
        )
        _accumulate(
            totals,
            name=name,
            line_type=LINE_PROFIT,
            per_week=_field(hireling, "profit_amount"),
            currency=_field(hireling, "profit_currency"),
            weeks=weeks,
            hireling=True,
        )

    net_profit = {currency: acc.net for currency, acc in totals.items()}
    return Breakdown(weeks=weeks, currency_totals=totals, net_profit=net_profit)


def _is_amount(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_lines(currency: str, key: str, lines: Any, errors: list[str]) -> None:
    if lines is None:
        return
    if not isinstance(lines, list):
        errors.append(f"Breakdown {key} for {currency} must be a list.")
        return
    for line in lines:
        if not isinstance(line, Mapping) or not _is_amount(line.get("amount")) or not _is_amount(line.get("per_week")):
            errors.append(f"Breakdown {key} for {currency} must be line items with numeric amount and per_week.")
            return


def check_net_profit(breakdown: Mapping[str, Any], net_profit: Mapping[str, Any]) -> list[str]:
    """
    Validate a serialized snapshot before it is stored.

    Every breakdown entry must be an object with finite numeric
    total_upkeep/total_profit (and, when present, lists of line items), and
    every net_profit entry must be a finite number equal to
    total_profit - total_upkeep of the same currency. Returns list of errors.
    """
    errors: list[str] = []
    if not isinstance(breakdown, Mapping) or not isinstance(net_profit, Mapping):
        return ["Breakdown and net profit must be objects keyed by currency."]

    valid: dict[str, Mapping[str, Any]] = {}
    for currency, totals in breakdown.items():
        if not isinstance(totals, Mapping):
            errors.append(f"Breakdown entry for {currency} must be an object.")
            continue
        if not (_is_amount(totals.get("total_upkeep")) and _is_amount(totals.get("total_profit"))):
            errors.append(f"Non-numeric totals for {currency}.")
            continue
        _check_lines(currency, "facilities", totals.get("facilities"), errors)
        _check_lines(currency, "hirelings", totals.get("hirelings"), errors)
        valid[currency] = totals

    for currency, net in net_profit.items():
        if not _is_amount(net):
            errors.append(f"Net profit for {currency} must be a number.")
            continue
        if currency not in breakdown:
            errors.append(f"Net profit for {currency} has no matching breakdown entry.")
            continue
        totals = valid.get(currency)
        if totals is None:
            continue
        expected = totals["total_profit"] - totals["total_upkeep"]
        if not math.isclose(net, expected, rel_tol=1e-9, abs_tol=1e-9):
            errors.append(f"Net profit for {currency} does not match its totals.")
    return errors


# ---------- Production (crafting + recurring output) ----------


@dataclass(frozen=True)
class CompletedItem:
    facility_name: str
    item_name: str
    weeks_to_complete: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "facility_name": self.facility_name,
            "item_name": self.item_name,
            "weeks_to_complete": self.weeks_to_complete,
        }


@dataclass(frozen=True)
class ProducedBatch:
    facility_name: str
    item_name: str
    quantity_per_cycle: int
    crafting_duration: int
    completed_cycles: int
    total_produced: int
    current_progress: int
    new_progress: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "facility_name": self.facility_name,
            "item_name": self.item_name,
            "quantity_per_cycle": self.quantity_per_cycle,
            "crafting_duration": self.crafting_duration,
            "completed_cycles": self.completed_cycles,
            "total_produced": self.total_produced,
            "current_progress": self.current_progress,
            "new_progress": self.new_progress,
        }


@dataclass(frozen=True)
class Production:
    completed_items: list[CompletedItem]
    recurring_production: list[ProducedBatch]

    @property
    def is_empty(self) -> bool:
        return not self.completed_items and not self.recurring_production

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed_items": [i.to_dict() for i in self.completed_items],
            "recurring_production": [b.to_dict() for b in self.recurring_production],
        }


def _duration(item: Mapping[str, Any]) -> int:
    return int(item.get("crafting_duration") or 1)


def compute_production(weeks: Any, facilities: Iterable[Any] = ()) -> Production:
    """Crafting items that finish within `weeks` and recurring output produced."""
    weeks = parse_weeks(weeks)
    completed: list[CompletedItem] = []
    produced: list[ProducedBatch] = []

    for facility in facilities or ():
        facility_name = _field(facility, "name")
        for item in _field(facility, "crafting_items") or ():
            remaining = int(item.get("weeks_remaining") or 0)
            if remaining - weeks <= 0:
                completed.append(
                    CompletedItem(
                        facility_name=facility_name,
                        item_name=item.get("name"),
                        weeks_to_complete=int(item.get("original_weeks") or remaining),
                    )
                )
        for item in _field(facility, "recurring_items") or ():
            duration = _duration(item)
            progress = int(item.get("progress_weeks") or 0)
            total_weeks = progress + weeks
            cycles = total_weeks // duration
            quantity = int(item.get("quantity") or 0)
            total = quantity * cycles
            if total > 0:
                produced.append(
                    ProducedBatch(
                        facility_name=facility_name,
                        item_name=item.get("name"),
                        quantity_per_cycle=quantity,
                        crafting_duration=duration,
                        completed_cycles=cycles,
                        total_produced=total,
                        current_progress=progress,
                        new_progress=total_weeks % duration,
                    )
                )
    return Production(completed_items=completed, recurring_production=produced)


def advance_crafting(items: Iterable[Mapping[str, Any]] | None, weeks: int) -> list[dict[str, Any]]:
    """Crafting queue after `weeks`: finished items drop out, the rest count down."""
    out: list[dict[str, Any]] = []
    for item in items or ():
        remaining = int(item.get("weeks_remaining") or 0) - weeks
        if remaining > 0:
            out.append({**item, "weeks_remaining": remaining})
    return out


def advance_recurring(items: Iterable[Mapping[str, Any]] | None, weeks: int) -> list[dict[str, Any]]:
    """Recurring items after `weeks`: progress wraps at crafting_duration."""
    out: list[dict[str, Any]] = []
    for item in items or ():
        duration = _duration(item)
        progress = int(item.get("progress_weeks") or 0)
        out.append({**item, "progress_weeks": (progress + weeks) % duration})
    return out
