from fastapi import Request

from gongcha_admin.config import SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL
from gongcha_admin.identity import IdentityProvider
from gongcha_admin.supabase_client import SupabaseDB


def build_db() -> SupabaseDB:
    return SupabaseDB(url=SUPABASE_URL, service_role_key=SUPABASE_SERVICE_ROLE_KEY)


def build_identity_provider() -> IdentityProvider:
    return IdentityProvider(url=SUPABASE_URL, service_role_key=SUPABASE_SERVICE_ROLE_KEY)


def get_db(request: Request) -> SupabaseDB:
    return request.app.state.db


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity
