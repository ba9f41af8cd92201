"""Staff account handlers."""
from __future__ import annotations

import logging
from typing import Any

from gongcha_admin import collections
from gongcha_admin.auth import Identity
from gongcha_admin.errors import NotFound, ValidationFailed
from gongcha_admin.identity import IdentityProvider
from gongcha_admin.schemas import SetupUserStatus
from gongcha_admin.services.accounts import create_account_with_document, remove_account, validate_new_account
from gongcha_admin.supabase_client import DocumentExistsError, DocumentNotFoundError, SupabaseDB
from gongcha_admin.utils import clean_str, iso_now


logger = logging.getLogger("gongcha-admin")

STAFF_ACCOUNT_ROLES = ("cashier", "store_manager", "admin")
STAFF_UPDATE_FIELDS = ("name", "role", "isActive", "storeLocation", "storeLocations", "accessAllStores")


def _validate_store_locations(value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationFailed("storeLocations harus berupa daftar ID outlet.", field="storeLocations")
    return [v.strip() for v in value if v.strip()]


def _validate_bool(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationFailed(f"{field} harus bernilai true atau false.", field=field)
    return value


def list_staff(db: SupabaseDB) -> list[dict]:
    return [doc.to_dict() for doc in db.query(collections.STAFF).order_by("name ASC").all()]


def create_staff(db: SupabaseDB, idp: IdentityProvider, payload: dict) -> dict:
    name, email, password = validate_new_account(payload)

    role = payload.get("role") or "cashier"
    if role not in STAFF_ACCOUNT_ROLES:
        raise ValidationFailed("Role staff tidak valid.", field="role")

    store_locations = _validate_store_locations(payload.get("storeLocations") or [])
    access_all = _validate_bool(payload.get("accessAllStores", False), "accessAllStores")
    store_location = clean_str(payload.get("storeLocation"))
    if not store_location and store_locations and not access_all:
        store_location = store_locations[0]

    def build_document(user) -> dict:
        now = iso_now()
        return {
            "uid": user.uid,
            "name": name,
            "email": email,
            "role": role,
            "isActive": True,
            "storeLocation": store_location,
            "storeLocations": store_locations,
            "accessAllStores": access_all,
            "createdAt": now,
            "updatedAt": now,
        }

    uid, document = create_account_with_document(
        db,
        idp,
        collections.STAFF,
        name=name,
        email=email,
        password=password,
        build_document=build_document,
    )
    logger.info("Staff created: %s role=%s", uid, role)
    return {"uid": uid, **document}


def update_staff(db: SupabaseDB, uid: str, payload: dict, actor: Identity) -> dict:
    update: dict[str, Any] = {key: payload[key] for key in STAFF_UPDATE_FIELDS if key in payload}
    if not update:
        raise ValidationFailed("Tidak ada field yang diupdate.")

    if "name" in update:
        update["name"] = clean_str(update["name"])
        if not update["name"]:
            raise ValidationFailed("Nama tidak boleh kosong.", field="name")
    if "role" in update and update["role"] not in STAFF_ACCOUNT_ROLES:
        raise ValidationFailed("Role staff tidak valid.", field="role")
    if "isActive" in update:
        _validate_bool(update["isActive"], "isActive")
        if update["isActive"] is False and uid == actor.uid:
            raise ValidationFailed("Anda tidak dapat menonaktifkan akun sendiri.", field="isActive")
    if "accessAllStores" in update:
        _validate_bool(update["accessAllStores"], "accessAllStores")
    if "storeLocations" in update:
        update["storeLocations"] = _validate_store_locations(update["storeLocations"])
    if "storeLocation" in update:
        update["storeLocation"] = clean_str(update["storeLocation"])

    update["updatedAt"] = iso_now()
    try:
        db.update(collections.STAFF, uid, update)
    except DocumentNotFoundError as exc:
        raise NotFound("Staff tidak ditemukan.") from exc

    logger.info("Staff %s updated by %s fields=%s", uid, actor.uid, sorted(update))
    return {"success": True}


def delete_staff(db: SupabaseDB, idp: IdentityProvider, uid: str, actor: Identity) -> dict:
    if uid == actor.uid:
        raise ValidationFailed("Anda tidak dapat menghapus akun sendiri.")
    remove_account(idp, uid)
    db.delete(collections.STAFF, uid)
    logger.info("Staff %s deleted by %s", uid, actor.uid)
    return {"success": True}


def setup_user_status(db: SupabaseDB, identity: Identity) -> SetupUserStatus:
    in_staff = db.get(collections.STAFF, identity.uid) is not None
    in_users = db.get(collections.USERS, identity.uid) is not None
    exists = in_staff or in_users
    return SetupUserStatus(
        exists=exists,
        userId=identity.uid,
        email=identity.email,
        inStaff=in_staff,
        inUsers=in_users,
        message="User is registered" if exists else "User is not registered",
    )


def _claim_bootstrap(db: SupabaseDB, uid: str) -> bool:
    try:
        db.create(collections.SETTINGS, collections.BOOTSTRAP_CLAIM_ID, {"uid": uid, "claimedAt": iso_now()})
    except DocumentExistsError:
        return False
    return True


def setup_user(db: SupabaseDB, identity: Identity) -> dict:
    """
    Register the signed-in identity into the staff collection if absent.

    Everyone starts as an inactive cashier until an admin grants access. The
    first registration into an empty staff collection is promoted to admin,
    but only if it wins the one-time bootstrap claim document, so concurrent
    first registrations yield a single admin.
    """
    if db.get(collections.STAFF, identity.uid) is not None:
        return {
            "success": True,
            "message": "User already exists in staff collection",
            "userId": identity.uid,
            "email": identity.email,
        }

    first_registration = db.query(collections.STAFF).count() == 0
    now = iso_now()
    try:
        db.create(collections.STAFF, identity.uid, {
            "uid": identity.uid,
            "email": identity.email,
            "name": identity.name or identity.email.split("@")[0],
            "role": "cashier",
            "isActive": False,
            "storeLocation": "",
            "storeLocations": [],
            "accessAllStores": False,
            "createdAt": now,
            "updatedAt": now,
        })
    except DocumentExistsError:
        return {
            "success": True,
            "message": "User already exists in staff collection",
            "userId": identity.uid,
            "email": identity.email,
        }

    bootstrap = first_registration and _claim_bootstrap(db, identity.uid)
    if bootstrap:
        db.update(collections.STAFF, identity.uid, {
            "role": "admin",
            "isActive": True,
            "accessAllStores": True,
            "updatedAt": iso_now(),
        })

    logger.info("Setup-user registered %s bootstrap_admin=%s", identity.uid, bootstrap)
    return {
        "success": True,
        "message": "User successfully registered to staff collection",
        "userId": identity.uid,
        "email": identity.email,
    }
