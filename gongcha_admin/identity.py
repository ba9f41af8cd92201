"""
Supabase Auth adapter: the identity provider behind staff and member accounts.

Admin operations use the service role client. Password sign-in uses a
throwaway client so the shared client never carries an end-user session.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import supabase as _supabase
from supabase import AuthApiError, AuthError


logger = logging.getLogger("gongcha-admin")

_EMAIL_EXISTS_CODES = frozenset({"email_exists", "user_already_exists"})
_NOT_FOUND_CODES = frozenset({"user_not_found"})


class AccountExistsError(Exception):
    pass


class AccountNotFoundError(Exception):
    pass


class InvalidCredentialsError(Exception):
    pass


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: str
    name: str = ""


def _to_auth_user(user) -> AuthUser:
    metadata = getattr(user, "user_metadata", None) or {}
    email = getattr(user, "email", None) or ""
    name = metadata.get("name") or metadata.get("full_name") or email.split("@")[0]
    return AuthUser(uid=str(user.id), email=email, name=name)


def _is_email_exists(exc: AuthApiError) -> bool:
    code = getattr(exc, "code", None)
    if code in _EMAIL_EXISTS_CODES:
        return True
    return "already" in str(exc).lower() and "registered" in str(exc).lower()


def _is_not_found(exc: AuthApiError) -> bool:
    code = getattr(exc, "code", None)
    return code in _NOT_FOUND_CODES or getattr(exc, "status", None) == 404


class IdentityProvider:
    def __init__(self, url: str, service_role_key: str) -> None:
        self._url = url
        self._service_role_key = service_role_key
        self.client = _supabase.create_client(url, service_role_key)

    def verify_id_token(self, id_token: str) -> Optional[AuthUser]:
        """Validate a short-lived access token; None when invalid or expired."""
        try:
            response = self.client.auth.get_user(id_token)
        except AuthError as exc:
            logger.warning("Identity token rejected: %s", exc)
            return None
        user = response.user if response else None
        if not user:
            return None
        return _to_auth_user(user)

    def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        auth_client = _supabase.create_client(self._url, self._service_role_key)
        try:
            response = auth_client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as exc:
            raise InvalidCredentialsError(str(exc)) from exc
        if not response.user:
            raise InvalidCredentialsError("No user returned")
        return _to_auth_user(response.user)

    def create_account(self, email: str, password: str, display_name: str) -> AuthUser:
        try:
            response = self.client.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {"name": display_name},
            })
        except AuthApiError as exc:
            if _is_email_exists(exc):
                raise AccountExistsError(email) from exc
            raise
        return _to_auth_user(response.user)

    def update_account(
        self,
        uid: str,
        *,
        password: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> None:
        attributes: dict = {}
        if password:
            attributes["password"] = password
        if display_name:
            attributes["user_metadata"] = {"name": display_name}
        if not attributes:
            return
        try:
            self.client.auth.admin.update_user_by_id(uid, attributes)
        except AuthApiError as exc:
            if _is_not_found(exc):
                raise AccountNotFoundError(uid) from exc
            raise

    def delete_account(self, uid: str) -> bool:
        """Delete the account; False when it was already gone."""
        try:
            self.client.auth.admin.delete_user(uid)
        except AuthApiError as exc:
            if _is_not_found(exc):
                return False
            raise
        return True
