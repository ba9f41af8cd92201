"""Store (outlet) handlers."""
from __future__ import annotations

import logging
import math
import re
from typing import Any, Optional

from gongcha_admin import collections
from gongcha_admin.config import STORE_ID_PATTERN
from gongcha_admin.errors import Conflict, NotFound, ValidationFailed
from gongcha_admin.supabase_client import DocumentExistsError, DocumentNotFoundError, SupabaseDB
from gongcha_admin.utils import clean_str, coerce_optional_number, iso_now


logger = logging.getLogger("gongcha-admin")

STORE_ID_RE = re.compile(STORE_ID_PATTERN)
STORE_STATUSES = ("open", "closed", "almost_close")


def is_valid_store_id(store_id: str) -> bool:
    return bool(STORE_ID_RE.match(store_id or ""))


def _parse_coordinate(value: Any, field: str) -> Optional[float]:
    try:
        number = coerce_optional_number(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed(f"{field} harus berupa angka.", field=field) from exc
    if number is not None and not math.isfinite(number):
        raise ValidationFailed(f"{field} harus berupa angka.", field=field)
    return number


def _status_override(value: Any) -> str:
    status_value = value or "open"
    if status_value not in STORE_STATUSES:
        raise ValidationFailed("Status outlet tidak valid.", field="statusOverride")
    return status_value


def _is_active(value: Any) -> bool:
    if value is None:
        return True
    if not isinstance(value, bool):
        raise ValidationFailed("isActive harus bernilai true atau false.", field="isActive")
    return value


def list_stores(db: SupabaseDB) -> list[dict]:
    return [doc.to_dict() for doc in db.query(collections.STORES).order_by("name ASC").all()]


def create_store(db: SupabaseDB, payload: dict) -> dict:
    name = clean_str(payload.get("name"))
    store_id = clean_str(payload.get("storeId"))
    if not name:
        raise ValidationFailed("Nama outlet wajib diisi.", field="name")
    if not store_id:
        raise ValidationFailed("Store ID wajib diisi.", field="storeId")
    if not is_valid_store_id(store_id):
        raise ValidationFailed(
            "Store ID hanya boleh mengandung huruf kecil, angka, underscore (_) dan dash (-).",
            field="storeId",
        )

    now = iso_now()
    data = {
        "name": name,
        "address": clean_str(payload.get("address")),
        "latitude": _parse_coordinate(payload.get("latitude"), "latitude"),
        "longitude": _parse_coordinate(payload.get("longitude"), "longitude"),
        "openHours": clean_str(payload.get("openHours")),
        "statusOverride": _status_override(payload.get("statusOverride")),
        "isActive": _is_active(payload.get("isActive")),
        "createdAt": now,
        "updatedAt": now,
    }

    try:
        db.create(collections.STORES, store_id, data)
    except DocumentExistsError as exc:
        raise Conflict(f'Store ID "{store_id}" sudah digunakan. Pilih ID lain.') from exc

    logger.info("Store created: %s", store_id)
    return {"id": store_id, **data}


def update_store(db: SupabaseDB, store_id: str, payload: dict) -> dict:
    name = clean_str(payload.get("name"))
    if not name:
        raise ValidationFailed("Nama outlet wajib diisi.", field="name")

    updates: dict[str, Any] = {"name": name, "updatedAt": iso_now()}
    for field in ("address", "openHours"):
        if field in payload:
            updates[field] = clean_str(payload[field])
    if "statusOverride" in payload:
        updates["statusOverride"] = _status_override(payload["statusOverride"])
    if "isActive" in payload:
        updates["isActive"] = _is_active(payload["isActive"])
    for field in ("latitude", "longitude"):
        number = _parse_coordinate(payload.get(field), field)
        if number is not None:
            updates[field] = number

    try:
        db.update(collections.STORES, store_id, updates)
    except DocumentNotFoundError as exc:
        raise NotFound(f'Store "{store_id}" tidak ditemukan.') from exc

    logger.info("Store updated: %s", store_id)
    return {"id": store_id, **updates}


def delete_store(db: SupabaseDB, store_id: str) -> dict:
    if not db.delete(collections.STORES, store_id):
        raise NotFound(f'Store "{store_id}" tidak ditemukan.')
    logger.info("Store deleted: %s", store_id)
    return {"success": True, "id": store_id}
