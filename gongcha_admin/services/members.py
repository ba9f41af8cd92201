"""Member (loyalty account) handlers: profile edits, points, vouchers, lifecycle."""
from __future__ import annotations

import logging
import uuid
from typing import Any

from gongcha_admin import collections
from gongcha_admin.auth import ADMIN_ROLES, Identity, has_role, may_manage_role
from gongcha_admin.errors import Forbidden, NotFound, ValidationFailed
from gongcha_admin.identity import AccountNotFoundError, IdentityProvider
from gongcha_admin.schemas import Voucher
from gongcha_admin.services.accounts import (
    create_account_with_document,
    remove_account,
    validate_new_account,
    validate_password,
)
from gongcha_admin.supabase_client import DocumentNotFoundError, SupabaseDB
from gongcha_admin.utils import clean_str, ensure_utc_datetime, iso_now, is_number


logger = logging.getLogger("gongcha-admin")

MEMBER_ROLES = ("member", "trial", "admin", "manager", "staff", "cashier", "store_manager", "master")
MEMBER_TIERS = ("Silver", "Gold", "Platinum")
MEMBER_UPDATE_FIELDS = ("name", "phoneNumber", "tier", "role", "currentPoints", "lifetimePoints")
ADMIN_ONLY_UPDATE_FIELDS = ("role", "currentPoints", "lifetimePoints")
VOUCHER_REQUIRED_FIELDS = ("rewardId", "title", "code", "expiresAt")
VOUCHER_TYPES = ("personal", "general")

MEMBER_NOT_FOUND = "Member tidak ditemukan."
LIFETIME_BELOW_CURRENT = "Lifetime XP tidak boleh lebih kecil dari poin aktif."
ROLE_ABOVE_EDITOR = "Anda tidak dapat mengelola akun dengan role di atas role Anda."


def validate_points(current_points: Any, lifetime_points: Any) -> None:
    if not is_number(current_points) or not is_number(lifetime_points):
        raise ValidationFailed("Format poin tidak valid. Poin harus berupa angka.")
    if current_points < 0 or lifetime_points < 0:
        raise ValidationFailed("Poin tidak boleh bernilai negatif.")
    if lifetime_points < current_points:
        raise ValidationFailed(LIFETIME_BELOW_CURRENT, field="lifetimePoints")


def _validate_role_and_tier(role: Any, tier: Any) -> None:
    if role is not None and role not in MEMBER_ROLES:
        raise ValidationFailed("Role tidak valid.", field="role")
    if tier is not None and tier not in MEMBER_TIERS:
        raise ValidationFailed("Tier tidak valid.", field="tier")


def _check_editor(editor: Identity, existing_role: Any, payload: dict) -> None:
    if not may_manage_role(editor, existing_role):
        raise Forbidden(ROLE_ABOVE_EDITOR)
    touched = [key for key in ADMIN_ONLY_UPDATE_FIELDS if key in payload]
    if touched and not has_role(editor, ADMIN_ROLES):
        raise Forbidden(f"Hanya admin yang dapat mengubah {', '.join(touched)}.")
    if "role" in payload and not may_manage_role(editor, payload["role"]):
        raise Forbidden(ROLE_ABOVE_EDITOR)


def list_members(db: SupabaseDB) -> list[dict]:
    return [doc.to_dict() for doc in db.query(collections.USERS).order_by("name ASC").all()]


def get_member(db: SupabaseDB, uid: str) -> dict:
    doc = db.get(collections.USERS, uid)
    if doc is None:
        raise NotFound(MEMBER_NOT_FOUND)
    return doc.to_dict()


def create_member(db: SupabaseDB, idp: IdentityProvider, payload: dict, editor: Identity) -> dict:
    name, email, password = validate_new_account(payload)
    role = payload.get("role") or "member"
    tier = payload.get("tier") or "Silver"
    _validate_role_and_tier(role, tier)
    if not may_manage_role(editor, role):
        raise Forbidden(ROLE_ABOVE_EDITOR)

    def build_document(user) -> dict:
        now = iso_now()
        return {
            "uid": user.uid,
            "name": name,
            "email": email,
            "phoneNumber": clean_str(payload.get("phoneNumber")),
            "photoURL": "",
            "role": role,
            "tier": tier,
            "currentPoints": 0,
            "lifetimePoints": 0,
            "joinedDate": now,
            "xpHistory": [],
            "vouchers": [],
            "createdAt": now,
            "updatedAt": now,
        }

    uid, document = create_account_with_document(
        db,
        idp,
        collections.USERS,
        name=name,
        email=email,
        password=password,
        build_document=build_document,
    )
    logger.info("Member created: %s", uid)
    return {"uid": uid, **document}


def update_member(db: SupabaseDB, idp: IdentityProvider, uid: str, payload: dict, editor: Identity) -> dict:
    existing = db.get(collections.USERS, uid)
    if existing is None:
        raise NotFound(MEMBER_NOT_FOUND)
    _check_editor(editor, existing.get("role"), payload)

    if "name" in payload and not clean_str(payload.get("name")):
        raise ValidationFailed("Nama tidak boleh kosong.", field="name")
    _validate_role_and_tier(payload.get("role"), payload.get("tier"))

    update: dict[str, Any] = {key: payload[key] for key in MEMBER_UPDATE_FIELDS if key in payload}
    if "name" in update:
        update["name"] = clean_str(update["name"])
    if "phoneNumber" in update:
        update["phoneNumber"] = clean_str(update["phoneNumber"])

    if "currentPoints" in update or "lifetimePoints" in update:
        validate_points(
            update.get("currentPoints", existing.get("currentPoints", 0)),
            update.get("lifetimePoints", existing.get("lifetimePoints", 0)),
        )

    password = payload.get("password")
    if password:
        validate_password(password)

    if not update and not password:
        raise ValidationFailed("Tidak ada field yang diupdate.")

    if password:
        try:
            idp.update_account(uid, password=password)
        except AccountNotFoundError as exc:
            raise NotFound("Akun login member tidak ditemukan.") from exc

    if update:
        update["updatedAt"] = iso_now()
        try:
            db.update(collections.USERS, uid, update)
        except DocumentNotFoundError as exc:
            raise NotFound(MEMBER_NOT_FOUND) from exc

    if update.get("name"):
        try:
            idp.update_account(uid, display_name=update["name"])
        except AccountNotFoundError:
            # Members imported without a login keep their document-only profile.
            logger.warning("Display name not synced, no identity account for member %s", uid)

    logger.info("Member updated: %s fields=%s", uid, sorted(update))
    return {"uid": uid, **update}


def delete_member(db: SupabaseDB, idp: IdentityProvider, uid: str, editor: Identity) -> dict:
    existing = db.get(collections.USERS, uid)
    if existing is None:
        raise NotFound(MEMBER_NOT_FOUND)
    if not may_manage_role(editor, existing.get("role")):
        raise Forbidden(ROLE_ABOVE_EDITOR)
    db.delete(collections.USERS, uid)
    remove_account(idp, uid)
    logger.info("Member deleted: %s", uid)
    return {"message": "Member berhasil dihapus.", "uid": uid}


def update_member_points(db: SupabaseDB, uid: str, payload: dict, editor_uid: str) -> dict:
    current_points = payload.get("currentPoints")
    lifetime_points = payload.get("lifetimePoints")
    validate_points(current_points, lifetime_points)

    now = iso_now()
    try:
        db.update(collections.USERS, uid, {
            "currentPoints": current_points,
            "lifetimePoints": lifetime_points,
            "pointsLastEditedBy": editor_uid,
            "pointsLastEditedAt": now,
            "updatedAt": now,
        })
    except DocumentNotFoundError as exc:
        raise NotFound(MEMBER_NOT_FOUND) from exc

    logger.info(
        "Points set for member %s by %s: current=%s lifetime=%s",
        uid, editor_uid, current_points, lifetime_points,
    )
    return {"success": True}


def grant_voucher(db: SupabaseDB, uid: str, payload: dict, actor_uid: str) -> dict:
    values = {key: clean_str(payload.get(key)) for key in VOUCHER_REQUIRED_FIELDS}
    if not all(values.values()):
        raise ValidationFailed("Semua field wajib diisi.")
    if ensure_utc_datetime(values["expiresAt"]) is None:
        raise ValidationFailed("Format tanggal kedaluwarsa tidak valid.", field="expiresAt")

    voucher_type = payload.get("type") or "personal"
    if voucher_type not in VOUCHER_TYPES:
        raise ValidationFailed("Tipe voucher tidak valid.", field="type")

    voucher = Voucher(id=str(uuid.uuid4()), isUsed=False, type=voucher_type, **values).model_dump()
    try:
        db.array_union(collections.USERS, uid, "vouchers", [voucher], patch={"updatedAt": iso_now()})
    except DocumentNotFoundError as exc:
        raise NotFound(MEMBER_NOT_FOUND) from exc

    logger.info("Voucher %s granted to member %s by %s", voucher["id"], uid, actor_uid)
    return {"success": True, "voucher": voucher}


def backfill_member_uids(db: SupabaseDB) -> dict[str, int]:
    """Set ``uid`` on member documents where it is missing or differs from the key."""
    scanned = 0
    updated = 0
    for doc in db.query(collections.USERS).all():
        scanned += 1
        if doc.get("uid") == doc.id:
            continue
        db.update(collections.USERS, doc.id, {"uid": doc.id})
        updated += 1
        logger.info("Backfilled uid on member %s", doc.id)
    return {"scanned": scanned, "updated": updated}
