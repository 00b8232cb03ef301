from __future__ import annotations

from typing import Any, Mapping

from flask import request


def request_payload() -> dict[str, Any]:
    """JSON body if present, otherwise form fields. Never raises on bad JSON."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def clean_str(payload: Mapping[str, Any], key: str) -> str | None:
    """Stripped string value or None when missing/blank."""
    raw = payload.get(key)
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def parse_int_arg(raw: Any, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def parse_bool(raw: Any, default: bool) -> bool | None:
    """JSON bool or form-style string; None when the value is not recognisable."""
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return None
