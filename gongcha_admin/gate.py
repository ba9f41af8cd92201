"""Request-level route gate: runs before any handler, checks session presence only."""
from __future__ import annotations

import enum

from fastapi import Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from gongcha_admin.auth import has_session
from gongcha_admin.errors import Unauthenticated


ASSET_PREFIXES = ("/static/", "/assets/")
ASSET_PATHS = frozenset({"/favicon.ico", "/robots.txt"})
LOGIN_PATH = "/login"
PUBLIC_API_PATHS = frozenset({"/api/auth/session"})
PROTECTED_PAGE_PREFIXES = (
    "/dashboard",
    "/members",
    "/users-staff",
    "/stores",
    "/menus",
    "/rewards",
    "/transactions",
    "/settings",
)


class GateDecision(enum.Enum):
    PASS = "pass"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_DASHBOARD = "redirect_dashboard"
    REJECT_API = "reject_api"


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def decide(path: str, authenticated: bool) -> GateDecision:
    if path in ASSET_PATHS or path.startswith(ASSET_PREFIXES):
        return GateDecision.PASS

    if path == LOGIN_PATH:
        return GateDecision.REDIRECT_DASHBOARD if authenticated else GateDecision.PASS

    if _under(path, "/api"):
        if path in PUBLIC_API_PATHS or authenticated:
            return GateDecision.PASS
        return GateDecision.REJECT_API

    if any(_under(path, prefix) for prefix in PROTECTED_PAGE_PREFIXES):
        return GateDecision.PASS if authenticated else GateDecision.REDIRECT_LOGIN

    return GateDecision.PASS


async def route_gate(request: Request, call_next):
    decision = decide(request.url.path, has_session(request))
    if decision is GateDecision.REDIRECT_LOGIN:
        return RedirectResponse(url=LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
    if decision is GateDecision.REDIRECT_DASHBOARD:
        return RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    if decision is GateDecision.REJECT_API:
        err = Unauthenticated()
        return JSONResponse(status_code=err.status_code, content=err.to_dict())
    return await call_next(request)
