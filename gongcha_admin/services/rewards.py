"""Rewards catalog handlers."""
from __future__ import annotations

import logging
import re
from typing import Any

from gongcha_admin import collections
from gongcha_admin.errors import Conflict, NotFound, ValidationFailed
from gongcha_admin.supabase_client import DocumentExistsError, DocumentNotFoundError, SupabaseDB
from gongcha_admin.utils import clean_str, iso_now, is_number


logger = logging.getLogger("gongcha-admin")

REWARD_CATEGORIES = ("Drink", "Topping", "Discount")
REWARD_TYPES = ("catalog", "personal")
REWARD_UPDATE_FIELDS = ("title", "description", "pointsCost", "category", "isActive", "type", "imageURL")

REWARD_NOT_FOUND = "Reward tidak ditemukan."


def normalize_reward_id(value: Any) -> str:
    """Lowercase, spaces to dashes, drop anything outside [a-z0-9_-]."""
    raw = clean_str(value).lower()
    raw = re.sub(r"\s+", "-", raw)
    return re.sub(r"[^a-z0-9_-]", "", raw)


def _validate_fields(values: dict) -> None:
    if "title" in values and not clean_str(values["title"]):
        raise ValidationFailed("Judul reward wajib diisi.", field="title")
    if "pointsCost" in values:
        cost = values["pointsCost"]
        if not is_number(cost) or cost < 0:
            raise ValidationFailed("Poin harus berupa angka dan tidak boleh negatif.", field="pointsCost")
    if "category" in values and values["category"] not in REWARD_CATEGORIES:
        raise ValidationFailed("Kategori reward tidak valid.", field="category")
    if "type" in values and values["type"] not in REWARD_TYPES:
        raise ValidationFailed("Tipe reward tidak valid.", field="type")
    if "isActive" in values and not isinstance(values["isActive"], bool):
        raise ValidationFailed("isActive harus bernilai true atau false.", field="isActive")


def list_rewards(db: SupabaseDB) -> list[dict]:
    return [doc.to_dict() for doc in db.query(collections.REWARDS).order_by("title ASC").all()]


def get_reward(db: SupabaseDB, reward_id: str) -> dict:
    doc = db.get(collections.REWARDS, reward_id)
    if doc is None:
        raise NotFound(REWARD_NOT_FOUND)
    return doc.to_dict()


def create_reward(db: SupabaseDB, payload: dict) -> dict:
    reward_id = normalize_reward_id(payload.get("rewardId") or payload.get("id") or payload.get("title"))
    if not reward_id:
        raise ValidationFailed("Reward ID wajib diisi.", field="rewardId")

    values = {
        "title": payload.get("title"),
        "pointsCost": payload.get("pointsCost"),
        "category": payload.get("category") or "Drink",
        "type": payload.get("type") or "catalog",
        "isActive": payload.get("isActive", True),
    }
    if not clean_str(values["title"]):
        raise ValidationFailed("Judul reward wajib diisi.", field="title")
    if values["pointsCost"] is None:
        raise ValidationFailed("Poin harus berupa angka dan tidak boleh negatif.", field="pointsCost")
    _validate_fields(values)

    now = iso_now()
    data = {
        **values,
        "title": clean_str(values["title"]),
        "description": clean_str(payload.get("description")),
        "imageURL": clean_str(payload.get("imageURL")),
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        db.create(collections.REWARDS, reward_id, data)
    except DocumentExistsError as exc:
        raise Conflict(f'Reward ID "{reward_id}" sudah digunakan.') from exc

    logger.info("Reward created: %s", reward_id)
    return {"id": reward_id, **data}


def update_reward(db: SupabaseDB, reward_id: str, payload: dict) -> dict:
    update: dict[str, Any] = {key: payload[key] for key in REWARD_UPDATE_FIELDS if key in payload}
    if not update:
        raise ValidationFailed("Tidak ada field yang diupdate.")
    _validate_fields(update)
    for key in ("title", "description", "imageURL"):
        if key in update:
            update[key] = clean_str(update[key])

    update["updatedAt"] = iso_now()
    try:
        db.update(collections.REWARDS, reward_id, update)
    except DocumentNotFoundError as exc:
        raise NotFound(REWARD_NOT_FOUND) from exc

    logger.info("Reward updated: %s fields=%s", reward_id, sorted(update))
    return {"success": True}


def delete_reward(db: SupabaseDB, reward_id: str) -> dict:
    if not db.delete(collections.REWARDS, reward_id):
        raise NotFound(REWARD_NOT_FOUND)
    logger.info("Reward deleted: %s", reward_id)
    return {"success": True}
