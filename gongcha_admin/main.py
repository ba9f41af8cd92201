import logging
import traceback as _tb

from fastapi import Body, Depends, FastAPI, Form, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from postgrest.exceptions import APIError
from starlette.middleware.sessions import SessionMiddleware
from supabase import AuthError

from gongcha_admin.auth import (
    ADMIN_ROLES,
    MEMBER_EDITOR_ROLES,
    STAFF_ROLES,
    VERIFIER_ROLES,
    end_session,
    get_current_identity,
    get_page_identity,
    has_role,
    resolve_identity,
    start_session,
)
from gongcha_admin.config import (
    DEFAULT_SECRET_KEY,
    IS_PRODUCTION,
    LOG_LEVEL,
    SECRET_KEY,
    SESSION_COOKIE_NAME,
    SESSION_HTTPS_ONLY,
    SESSION_MAX_AGE,
    SESSION_SAME_SITE,
    STATIC_DIR,
    TEMPLATES_DIR,
)
from gongcha_admin.database import build_db, build_identity_provider, get_db, get_identity_provider
from gongcha_admin.display import (
    display_role,
    display_store_status,
    display_transaction_status,
    transaction_status_pill_class,
)
from gongcha_admin.errors import AdminError, Forbidden, Unauthenticated, UpstreamError, ValidationFailed
from gongcha_admin.gate import route_gate
from gongcha_admin.identity import IdentityProvider, InvalidCredentialsError
from gongcha_admin.schemas import (
    BulkTransactionActionRequest,
    BulkTransactionResult,
    SessionCreateRequest,
    SessionResponse,
    SetupUserStatus,
    TransactionActionRequest,
)
from gongcha_admin.services import dashboard as dashboard_service
from gongcha_admin.services import members as members_service
from gongcha_admin.services import menus as menus_service
from gongcha_admin.services import rewards as rewards_service
from gongcha_admin.services import settings as settings_service
from gongcha_admin.services import staff as staff_service
from gongcha_admin.services import stores as stores_service
from gongcha_admin.services import transactions as transactions_service
from gongcha_admin.supabase_client import SupabaseDB
from gongcha_admin.utils import format_rupiah, to_local_datetime


logger = logging.getLogger("gongcha-admin")
logger.setLevel(LOG_LEVEL)

app = FastAPI(title="Gong Cha Admin")
app.middleware("http")(route_gate)
# Registered after the gate so it runs outside it; the gate reads request.session.
app.add_middleware(
    SessionMiddleware,
    secret_key=SECRET_KEY,
    session_cookie=SESSION_COOKIE_NAME,
    https_only=SESSION_HTTPS_ONLY,
    same_site=SESSION_SAME_SITE,
    max_age=SESSION_MAX_AGE,
)

app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["rupiah"] = format_rupiah


@app.exception_handler(AdminError)
async def _admin_error_handler(request: Request, exc: AdminError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    err = ValidationFailed("Data yang dikirim tidak valid.")
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.exception_handler(APIError)
@app.exception_handler(AuthError)
async def _upstream_error_handler(request: Request, exc: Exception):
    logger.error("Upstream failure on %s %s: %s", request.method, request.url.path, exc)
    err = UpstreamError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.exception_handler(Exception)
async def _global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, _tb.format_exc())
    return JSONResponse(
        status_code=500,
        content={"message": "Terjadi kesalahan pada server.", "code": "INTERNAL_ERROR"},
    )


@app.on_event("startup")
def on_startup() -> None:
    if IS_PRODUCTION and SECRET_KEY == DEFAULT_SECRET_KEY:
        raise RuntimeError("APP_SECRET_KEY must be set in production")
    if getattr(app.state, "db", None) is None:
        app.state.db = build_db()
    if getattr(app.state, "identity", None) is None:
        app.state.identity = build_identity_provider()
    logger.info("Gong Cha admin started (production=%s)", IS_PRODUCTION)


@app.on_event("shutdown")
def on_shutdown() -> None:
    db = getattr(app.state, "db", None)
    if db is not None:
        db.close()


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
def root() -> RedirectResponse:
    return RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "login.html", {"error": None})


@app.post("/login", response_class=HTMLResponse)
def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: SupabaseDB = Depends(get_db),
    idp: IdentityProvider = Depends(get_identity_provider),
):
    try:
        user = idp.sign_in_with_password(email.strip().lower(), password)
    except InvalidCredentialsError:
        logger.warning("Login failed for %s", email.strip().lower())
        return templates.TemplateResponse(
            request,
            "login.html",
            {"error": "Login gagal: periksa email dan password Anda."},
            status_code=401,
        )

    start_session(request, user)
    identity = resolve_identity(request, db)
    if not has_role(identity, STAFF_ROLES):
        end_session(request)
        return templates.TemplateResponse(
            request,
            "login.html",
            {"error": "Akses ditolak. Akun Anda tidak memiliki izin admin."},
            status_code=403,
        )

    logger.info("Login: %s role=%s", identity.uid, identity.role)
    return RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)


@app.get("/logout")
def logout(request: Request) -> RedirectResponse:
    end_session(request)
    return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard_page(request: Request, db: SupabaseDB = Depends(get_db)) -> HTMLResponse:
    identity = get_page_identity(request, db)
    data = dashboard_service.get_dashboard_data(db)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "identity": identity,
            "data": data,
            "display_role": display_role,
            "display_transaction_status": display_transaction_status,
            "transaction_status_pill_class": transaction_status_pill_class,
            "to_local_datetime": to_local_datetime,
        },
    )


@app.get("/unauthorized", response_class=HTMLResponse)
def unauthorized_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "unauthorized.html", {}, status_code=403)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@app.post("/api/auth/session", response_model=SessionResponse)
def create_session(
    request: Request,
    payload: SessionCreateRequest,
    db: SupabaseDB = Depends(get_db),
    idp: IdentityProvider = Depends(get_identity_provider),
) -> SessionResponse:
    if not payload.idToken:
        raise ValidationFailed("idToken wajib diisi.", field="idToken")

    user = idp.verify_id_token(payload.idToken)
    if user is None:
        raise Unauthenticated("Token tidak valid atau sudah kedaluwarsa.")

    start_session(request, user)
    identity = resolve_identity(request, db)
    if identity is None:
        raise Forbidden("Akun staff Anda tidak aktif.")

    logger.info("Session created for %s role=%s", identity.uid, identity.role)
    return SessionResponse(success=True, uid=identity.uid, role=identity.role)


@app.delete("/api/auth/session", response_model=SessionResponse)
def delete_session(request: Request) -> SessionResponse:
    end_session(request)
    return SessionResponse(success=True)


@app.get("/api/setup-user", response_model=SetupUserStatus)
def setup_user_status(request: Request, db: SupabaseDB = Depends(get_db)) -> SetupUserStatus:
    identity = get_current_identity(request, db)
    return staff_service.setup_user_status(db, identity)


@app.post("/api/setup-user")
def setup_user(request: Request, db: SupabaseDB = Depends(get_db)) -> dict:
    identity = get_current_identity(request, db)
    return staff_service.setup_user(db, identity)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@app.get("/api/members")
def list_members(request: Request, db: SupabaseDB = Depends(get_db)) -> list[dict]:
    get_current_identity(request, db, roles=STAFF_ROLES)
    return members_service.list_members(db)


@app.post("/api/members", status_code=status.HTTP_201_CREATED)
def create_member(
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
    idp: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    identity = get_current_identity(request, db, roles=ADMIN_ROLES)
    return members_service.create_member(db, idp, payload, identity)


@app.get("/api/members/{uid}")
def get_member(uid: str, request: Request, db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=STAFF_ROLES)
    return members_service.get_member(db, uid)


@app.patch("/api/members/{uid}")
def update_member(
    uid: str,
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
    idp: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    identity = get_current_identity(request, db, roles=MEMBER_EDITOR_ROLES)
    result = members_service.update_member(db, idp, uid, payload, identity)
    logger.info("Member %s edited by %s", uid, identity.uid)
    return result


@app.delete("/api/members/{uid}")
def delete_member(
    uid: str,
    request: Request,
    db: SupabaseDB = Depends(get_db),
    idp: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    identity = get_current_identity(request, db, roles=MEMBER_EDITOR_ROLES)
    result = members_service.delete_member(db, idp, uid, identity)
    logger.info("Member %s deleted by %s", uid, identity.uid)
    return result


@app.patch("/api/members/{uid}/points")
def update_member_points(
    uid: str,
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
) -> dict:
    identity = get_current_identity(request, db, roles=ADMIN_ROLES)
    return members_service.update_member_points(db, uid, payload, identity.uid)


@app.post("/api/members/{uid}/vouchers")
def grant_member_voucher(
    uid: str,
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
) -> dict:
    identity = get_current_identity(request, db, roles=ADMIN_ROLES)
    return members_service.grant_voucher(db, uid, payload, identity.uid)


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


@app.get("/api/staff")
def list_staff(request: Request, db: SupabaseDB = Depends(get_db)) -> list[dict]:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return staff_service.list_staff(db)


@app.post("/api/staff", status_code=status.HTTP_201_CREATED)
def create_staff(
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
    idp: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    identity = get_current_identity(request, db, roles=ADMIN_ROLES)
    result = staff_service.create_staff(db, idp, payload)
    logger.info("Staff %s created by %s", result["uid"], identity.uid)
    return result


@app.patch("/api/staff/{uid}")
def update_staff(
    uid: str,
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
) -> dict:
    identity = get_current_identity(request, db, roles=ADMIN_ROLES)
    return staff_service.update_staff(db, uid, payload, identity)


@app.delete("/api/staff/{uid}")
def delete_staff(
    uid: str,
    request: Request,
    db: SupabaseDB = Depends(get_db),
    idp: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    identity = get_current_identity(request, db, roles=ADMIN_ROLES)
    return staff_service.delete_staff(db, idp, uid, identity)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@app.get("/api/stores")
def list_stores(request: Request, db: SupabaseDB = Depends(get_db)) -> list[dict]:
    get_current_identity(request, db, roles=STAFF_ROLES)
    stores = stores_service.list_stores(db)
    for store in stores:
        store["statusLabel"] = display_store_status(store.get("statusOverride"))
    return stores


@app.post("/api/stores", status_code=status.HTTP_201_CREATED)
def create_store(request: Request, payload: dict = Body(...), db: SupabaseDB = Depends(get_db)) -> dict:
    identity = get_current_identity(request, db, roles=ADMIN_ROLES)
    result = stores_service.create_store(db, payload)
    logger.info("Store %s created by %s", result["id"], identity.uid)
    return result


@app.patch("/api/stores/{store_id}")
def update_store(
    store_id: str,
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return stores_service.update_store(db, store_id, payload)


@app.delete("/api/stores/{store_id}")
def delete_store(store_id: str, request: Request, db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return stores_service.delete_store(db, store_id)


# ---------------------------------------------------------------------------
# Menus
# ---------------------------------------------------------------------------


@app.get("/api/menus")
def list_menu_items(request: Request, db: SupabaseDB = Depends(get_db)) -> list[dict]:
    get_current_identity(request, db, roles=STAFF_ROLES)
    return menus_service.list_menu_items(db)


@app.post("/api/menus", status_code=status.HTTP_201_CREATED)
def create_menu_item(request: Request, payload: dict = Body(...), db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return menus_service.create_menu_item(db, payload)


@app.patch("/api/menus/{item_id}")
def update_menu_item(
    item_id: str,
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return menus_service.update_menu_item(db, item_id, payload)


@app.delete("/api/menus/{item_id}")
def delete_menu_item(item_id: str, request: Request, db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return menus_service.delete_menu_item(db, item_id)


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


@app.get("/api/rewards")
def list_rewards(request: Request, db: SupabaseDB = Depends(get_db)) -> list[dict]:
    get_current_identity(request, db, roles=STAFF_ROLES)
    return rewards_service.list_rewards(db)


@app.post("/api/rewards", status_code=status.HTTP_201_CREATED)
def create_reward(request: Request, payload: dict = Body(...), db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return rewards_service.create_reward(db, payload)


@app.get("/api/rewards/{reward_id}")
def get_reward(reward_id: str, request: Request, db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=STAFF_ROLES)
    return rewards_service.get_reward(db, reward_id)


@app.patch("/api/rewards/{reward_id}")
def update_reward(
    reward_id: str,
    request: Request,
    payload: dict = Body(...),
    db: SupabaseDB = Depends(get_db),
) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return rewards_service.update_reward(db, reward_id, payload)


@app.delete("/api/rewards/{reward_id}")
def delete_reward(reward_id: str, request: Request, db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return rewards_service.delete_reward(db, reward_id)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@app.get("/api/settings")
def get_settings(request: Request, db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=ADMIN_ROLES)
    return settings_service.get_settings(db)


@app.patch("/api/settings")
def update_settings(request: Request, payload: dict = Body(...), db: SupabaseDB = Depends(get_db)) -> dict:
    identity = get_current_identity(request, db, roles=ADMIN_ROLES)
    result = settings_service.update_settings(db, payload, identity.uid)
    logger.info("Settings updated by %s", identity.uid)
    return result


# ---------------------------------------------------------------------------
# Transactions & dashboard
# ---------------------------------------------------------------------------


@app.get("/api/transactions")
def list_transactions(request: Request, db: SupabaseDB = Depends(get_db)) -> list[dict]:
    get_current_identity(request, db, roles=STAFF_ROLES)
    return transactions_service.list_transactions(db)


@app.patch("/api/transactions/{transaction_id}")
def process_transaction(
    transaction_id: str,
    request: Request,
    payload: TransactionActionRequest,
    db: SupabaseDB = Depends(get_db),
) -> dict:
    identity = get_current_identity(request, db, roles=VERIFIER_ROLES)
    return transactions_service.process_transaction(db, transaction_id, payload.action, identity.uid)


@app.post("/api/transactions/bulk", response_model=BulkTransactionResult)
def process_transactions_bulk(
    request: Request,
    payload: BulkTransactionActionRequest,
    db: SupabaseDB = Depends(get_db),
) -> BulkTransactionResult:
    identity = get_current_identity(request, db, roles=VERIFIER_ROLES)
    return transactions_service.process_transactions_bulk(db, payload.ids, payload.action, identity.uid)


@app.get("/api/dashboard")
def dashboard_summary(request: Request, db: SupabaseDB = Depends(get_db)) -> dict:
    get_current_identity(request, db, roles=STAFF_ROLES)
    return dashboard_service.get_dashboard_data(db)
