"""
Session resolution and role checks.

The session is Starlette's signed cookie (``SessionMiddleware``) holding the
identity-provider uid. Roles are never taken from the cookie: they are read
fresh from the ``staff`` document, then the ``users`` document, on every
request.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from fastapi import HTTPException, Request, status

from gongcha_admin import collections
from gongcha_admin.errors import Forbidden, Unauthenticated
from gongcha_admin.identity import AuthUser
from gongcha_admin.supabase_client import SupabaseDB


ADMIN_ROLES = frozenset({"admin", "master"})
MEMBER_EDITOR_ROLES = frozenset({"admin", "master", "manager"})
VERIFIER_ROLES = frozenset({"admin", "master", "store_manager"})
STAFF_ROLES = frozenset({"admin", "master", "manager", "store_manager", "cashier", "staff"})

# Higher outranks lower; unknown roles rank with members.
ROLE_RANKS = {
    "member": 0,
    "trial": 0,
    "staff": 1,
    "cashier": 1,
    "store_manager": 2,
    "manager": 3,
    "admin": 4,
    "master": 5,
}

SESSION_UID_KEY = "uid"


@dataclass(frozen=True)
class Identity:
    uid: str
    role: Optional[str]
    email: str = ""
    name: str = ""
    source: Optional[str] = None  # "staff", "users" or None when unregistered
    store_locations: tuple[str, ...] = field(default_factory=tuple)
    access_all_stores: bool = False


def has_role(identity: Optional[Identity], roles: Iterable[str]) -> bool:
    if identity is None or not identity.role:
        return False
    return identity.role.strip().lower() in {r.lower() for r in roles}


def role_rank(role: Any) -> int:
    return ROLE_RANKS.get(str(role or "").strip().lower(), 0)


def may_manage_role(identity: Identity, role: Any) -> bool:
    """True when the identity may act on an account holding or receiving ``role``."""
    return role_rank(identity.role) >= role_rank(role)


def start_session(request: Request, user: AuthUser) -> None:
    request.session.clear()
    request.session[SESSION_UID_KEY] = user.uid
    request.session["email"] = user.email
    request.session["name"] = user.name


def end_session(request: Request) -> None:
    request.session.clear()


def has_session(request: Request) -> bool:
    return bool(request.session.get(SESSION_UID_KEY))


def _staff_identity(uid: str, doc) -> Identity:
    locations = doc.get("storeLocations") or []
    legacy = doc.get("storeLocation") or ""
    if legacy and legacy not in locations:
        locations = [legacy, *locations]
    return Identity(
        uid=uid,
        role=doc.get("role") or "cashier",
        email=doc.get("email") or "",
        name=doc.get("name") or "",
        source=collections.STAFF,
        store_locations=tuple(locations),
        access_all_stores=bool(doc.get("accessAllStores")),
    )


def resolve_identity(request: Request, db: SupabaseDB) -> Optional[Identity]:
    uid = request.session.get(SESSION_UID_KEY)
    if not uid:
        return None

    staff = db.get(collections.STAFF, uid)
    if staff is not None:
        if staff.get("isActive") is False:
            request.session.clear()
            return None
        return _staff_identity(uid, staff)

    member = db.get(collections.USERS, uid)
    if member is not None:
        return Identity(
            uid=uid,
            role=member.get("role") or "member",
            email=member.get("email") or request.session.get("email", ""),
            name=member.get("name") or "",
            source=collections.USERS,
        )

    return Identity(
        uid=uid,
        role=None,
        email=request.session.get("email", ""),
        name=request.session.get("name", ""),
    )


def get_current_identity(
    request: Request,
    db: SupabaseDB,
    *,
    roles: Optional[Iterable[str]] = None,
) -> Identity:
    identity = resolve_identity(request, db)
    if identity is None:
        raise Unauthenticated()
    if roles is not None and not has_role(identity, roles):
        raise Forbidden()
    return identity


def get_page_identity(request: Request, db: SupabaseDB, *, roles: Iterable[str] = STAFF_ROLES) -> Identity:
    """Browser variant: redirect instead of returning JSON errors."""
    identity = resolve_identity(request, db)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_303_SEE_OTHER, headers={"Location": "/login"})
    if not has_role(identity, roles):
        raise HTTPException(status_code=status.HTTP_303_SEE_OTHER, headers={"Location": "/unauthorized"})
    return identity
