"""Menu / product items: free-form attribute bags with timestamps."""
from __future__ import annotations

import logging
import uuid
from typing import Any

from gongcha_admin import collections
from gongcha_admin.errors import NotFound, ValidationFailed
from gongcha_admin.supabase_client import DocumentNotFoundError, SupabaseDB
from gongcha_admin.utils import iso_now, is_number


logger = logging.getLogger("gongcha-admin")

RESERVED_FIELDS = frozenset({"id", "createdAt", "updatedAt"})


def _attributes(payload: dict) -> dict[str, Any]:
    attributes = {k: v for k, v in payload.items() if k not in RESERVED_FIELDS}
    if not attributes:
        raise ValidationFailed("Data produk tidak boleh kosong.")
    if "name" in attributes and (not isinstance(attributes["name"], str) or not attributes["name"].strip()):
        raise ValidationFailed("Nama produk tidak boleh kosong.", field="name")
    if "name" in attributes:
        attributes["name"] = attributes["name"].strip()
    if "mediumPrice" in attributes:
        price = attributes["mediumPrice"]
        if not is_number(price) or price < 0:
            raise ValidationFailed("Harga harus berupa angka positif.", field="mediumPrice")
    return attributes


def list_menu_items(db: SupabaseDB) -> list[dict]:
    return [doc.to_dict() for doc in db.query(collections.PRODUCTS).order_by("name ASC").all()]


def create_menu_item(db: SupabaseDB, payload: dict) -> dict:
    attributes = _attributes(payload)
    now = iso_now()
    item_id = uuid.uuid4().hex[:20]
    data = {**attributes, "createdAt": now, "updatedAt": now}
    db.create(collections.PRODUCTS, item_id, data)
    logger.info("Menu item created: %s", item_id)
    return {"success": True, "id": item_id}


def update_menu_item(db: SupabaseDB, item_id: str, payload: dict) -> dict:
    attributes = _attributes(payload)
    try:
        db.update(collections.PRODUCTS, item_id, {**attributes, "updatedAt": iso_now()})
    except DocumentNotFoundError as exc:
        raise NotFound("Produk tidak ditemukan.") from exc
    logger.info("Menu item updated: %s", item_id)
    return {"success": True}


def delete_menu_item(db: SupabaseDB, item_id: str) -> dict:
    if not db.delete(collections.PRODUCTS, item_id):
        raise NotFound("Produk tidak ditemukan.")
    logger.info("Menu item deleted: %s", item_id)
    return {"success": True}
