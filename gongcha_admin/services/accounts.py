"""Shared helpers for records backed by an identity-provider account (members, staff)."""
from __future__ import annotations

import logging
from typing import Any, Callable

from gongcha_admin.config import MIN_PASSWORD_LENGTH
from gongcha_admin.errors import Conflict, ValidationFailed
from gongcha_admin.identity import AccountExistsError, AuthUser, IdentityProvider
from gongcha_admin.supabase_client import SupabaseDB
from gongcha_admin.utils import EMAIL_RE, clean_str, normalize_email


logger = logging.getLogger("gongcha-admin")

PASSWORD_TOO_SHORT = f"Password minimal {MIN_PASSWORD_LENGTH} karakter."


def validate_password(password: Any) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(PASSWORD_TOO_SHORT, field="password")
    return password


def validate_new_account(payload: dict) -> tuple[str, str, str]:
    """Return (name, email, password) or raise ValidationFailed."""
    name = clean_str(payload.get("name"))
    email = normalize_email(payload.get("email"))
    password = payload.get("password")

    if not name:
        raise ValidationFailed("Nama tidak boleh kosong.", field="name")
    if not email:
        raise ValidationFailed("Email tidak boleh kosong.", field="email")
    if not EMAIL_RE.match(email):
        raise ValidationFailed("Format email tidak valid.", field="email")
    if not password:
        raise ValidationFailed("Password tidak boleh kosong.", field="password")
    validate_password(password)
    return name, email, password


def create_account_with_document(
    db: SupabaseDB,
    idp: IdentityProvider,
    collection: str,
    *,
    name: str,
    email: str,
    password: str,
    build_document: Callable[[AuthUser], dict],
) -> tuple[str, dict]:
    """
    Create the identity account, then the document keyed by its uid.

    If the document write fails the new account is deleted again so no
    orphaned login is left behind.
    """
    try:
        user = idp.create_account(email, password, name)
    except AccountExistsError as exc:
        raise Conflict("Email sudah terdaftar.") from exc

    document = build_document(user)
    try:
        db.create(collection, user.uid, document)
    except Exception:
        logger.warning("Document write failed for %s/%s; removing identity account", collection, user.uid)
        try:
            idp.delete_account(user.uid)
        except Exception:
            logger.exception("Compensation failed: identity account %s left without a document", user.uid)
        raise
    return user.uid, document


def remove_account(idp: IdentityProvider, uid: str) -> bool:
    """Delete the identity account, treating "already gone" as success."""
    removed = idp.delete_account(uid)
    if not removed:
        logger.warning("Identity account %s already absent", uid)
    return removed
