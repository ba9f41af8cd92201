"""Loyalty program settings: a single ``settings/global`` document merged over defaults."""
from __future__ import annotations

import copy
from typing import Any

from gongcha_admin import collections
from gongcha_admin.config import TIER_THRESHOLDS
from gongcha_admin.errors import ValidationFailed
from gongcha_admin.supabase_client import DocumentExistsError, DocumentNotFoundError, SupabaseDB
from gongcha_admin.utils import iso_now, is_number


DEFAULT_SETTINGS: dict[str, Any] = {
    "pointsPerThousand": 10,
    "minimumTransaction": 0,
    "pointsExpiry": 12,
    "tiers": {name: threshold for name, threshold in TIER_THRESHOLDS},
    "notifications": {"pointsEarned": True, "tierUpgrade": True, "voucherGranted": True},
}
NUMERIC_SETTINGS = ("pointsPerThousand", "minimumTransaction", "pointsExpiry")
MAPPING_SETTINGS = ("tiers", "notifications")


def get_settings(db: SupabaseDB) -> dict:
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    doc = db.get(collections.SETTINGS, collections.GLOBAL_SETTINGS_ID)
    if doc is not None:
        settings.update(doc.data)
    return settings


def update_settings(db: SupabaseDB, payload: dict, staff_id: str) -> dict:
    update: dict[str, Any] = {}
    for key in NUMERIC_SETTINGS:
        if key in payload:
            value = payload[key]
            if not is_number(value) or value < 0:
                raise ValidationFailed(f"{key} harus berupa angka positif.", field=key)
            update[key] = value
    for key in MAPPING_SETTINGS:
        if key in payload:
            if not isinstance(payload[key], dict):
                raise ValidationFailed(f"{key} harus berupa objek.", field=key)
            update[key] = payload[key]
    if not update:
        raise ValidationFailed("Tidak ada pengaturan yang diupdate.")

    update["updatedAt"] = iso_now()
    update["updatedBy"] = staff_id
    try:
        db.update(collections.SETTINGS, collections.GLOBAL_SETTINGS_ID, update)
    except DocumentNotFoundError:
        try:
            db.create(collections.SETTINGS, collections.GLOBAL_SETTINGS_ID, update)
        except DocumentExistsError:
            db.update(collections.SETTINGS, collections.GLOBAL_SETTINGS_ID, update)
    return get_settings(db)
