"""Datetime/value helpers — pure functions with no HTTP framework dependency."""
from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Optional

from gongcha_admin.config import APP_TIMEZONE


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def format_rupiah(value: object) -> str:
    try:
        amount = int(float(value or 0))
    except (TypeError, ValueError):
        amount = 0
    return "Rp " + f"{amount:,}".replace(",", ".")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_now() -> str:
    return utc_now().isoformat()


def ensure_utc_datetime(dt) -> Optional[datetime]:
    # Documents keep timestamps as ISO 8601 strings
    if dt is None or dt == "":
        return None
    if isinstance(dt, str):
        try:
            dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local_datetime(dt) -> Optional[datetime]:
    value = ensure_utc_datetime(dt)
    if value is None:
        return None
    return value.astimezone(APP_TIMEZONE)


def local_today() -> date:
    return utc_now().astimezone(APP_TIMEZONE).date()


def is_number(value: Any) -> bool:
    """True for finite int/float values; bools are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def coerce_optional_number(value: Any) -> Optional[float]:
    """Form-style numeric input: None/"" -> None, numeric strings -> float."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return float(value)


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_email(value: Any) -> str:
    return clean_str(value).lower()
