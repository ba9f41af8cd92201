"""
E2E tests for the Gong Cha admin service.
Runs against a live server at http://localhost:8000 and a real Supabase project.
Creates a temporary admin via the Supabase Admin API, runs all checks, then cleans up.
"""
import os
import sys
import uuid

import httpx
from supabase import create_client

BASE = os.environ.get("E2E_BASE_URL", "http://localhost:8000")
SUPABASE_URL = os.environ["SUPABASE_URL"]
SUPABASE_KEY = os.environ["SUPABASE_SERVICE_ROLE_KEY"]

TEST_EMAIL = f"e2e-test-{uuid.uuid4().hex[:8]}@test.local"
TEST_PASSWORD = "E2eTestPass#9999"
TEST_STORE_ID = f"e2e-{uuid.uuid4().hex[:6]}"

PASS = "\033[92mPASS\033[0m"
FAIL = "\033[91mFAIL\033[0m"

results = []


def check(label: str, condition: bool, detail: str = "") -> None:
    status = PASS if condition else FAIL
    msg = f"  [{status}] {label}"
    if detail:
        msg += f"  ({detail})"
    print(msg)
    results.append((label, condition))
    if not condition:
        print(f"         ^^^ FAILED")


def setup_test_user(admin_client) -> str:
    """Create a test admin in Supabase Auth + the staff collection. Returns uid."""
    print("\n[Setup] Creating temporary admin...")
    response = admin_client.auth.admin.create_user({
        "email": TEST_EMAIL,
        "password": TEST_PASSWORD,
        "email_confirm": True,
    })
    uid = str(response.user.id)
    admin_client.table("staff").upsert({
        "id": uid,
        "data": {
            "uid": uid,
            "name": "E2E Admin",
            "email": TEST_EMAIL,
            "role": "admin",
            "isActive": True,
            "storeLocations": [],
            "accessAllStores": True,
        },
    }).execute()
    print(f"  Created: {TEST_EMAIL} (uid={uid})")
    return uid


def teardown_test_user(admin_client, uid: str) -> None:
    print("\n[Teardown] Removing temporary data...")
    try:
        admin_client.table("stores").delete().eq("id", TEST_STORE_ID).execute()
        admin_client.table("staff").delete().eq("id", uid).execute()
        admin_client.auth.admin.delete_user(uid)
        print(f"  Deleted: {TEST_EMAIL}")
    except Exception as e:
        print(f"  WARNING: cleanup failed: {e}")


def run_tests(admin_client, uid: str) -> None:
    print("\n=== Unauthenticated Routes ===")
    with httpx.Client(base_url=BASE, follow_redirects=False) as c:
        r = c.get("/health")
        check("GET /health → 200", r.status_code == 200)

        r = c.get("/login")
        check("GET /login → 200", r.status_code == 200)

        r = c.get("/dashboard")
        check("GET /dashboard (no session) → 303", r.status_code == 303)
        check("  redirects to /login", r.headers.get("location", "").endswith("/login"))

        r = c.get("/api/members")
        check("GET /api/members (no session) → 401", r.status_code == 401)
        check("  code AUTH_REQUIRED", r.json().get("code") == "AUTH_REQUIRED")

    print("\n=== Login / Session ===")
    with httpx.Client(base_url=BASE, follow_redirects=False) as c:
        r = c.post("/login", data={"email": TEST_EMAIL, "password": "wrongpassword"})
        check("POST /login (bad password) → 401", r.status_code == 401, f"status={r.status_code}")

        r = c.post("/login", data={"email": TEST_EMAIL, "password": TEST_PASSWORD})
        check("POST /login (correct) → 303", r.status_code == 303, f"status={r.status_code}")
        check("  redirects to /dashboard", "/dashboard" in r.headers.get("location", ""))

        r = c.get("/dashboard")
        check("GET /dashboard (with session) → 200", r.status_code == 200, f"status={r.status_code}")

        r = c.get("/login")
        check("GET /login (with session) → 303 to /dashboard", r.status_code == 303)

        r = c.get("/api/dashboard")
        check("GET /api/dashboard → 200", r.status_code == 200, f"status={r.status_code}")

        print("\n=== Stores ===")
        r = c.post("/api/stores", json={"storeId": "Invalid ID!", "name": "Bad"})
        check("POST /api/stores (invalid id) → 400", r.status_code == 400, f"status={r.status_code}")

        r = c.post("/api/stores", json={"storeId": TEST_STORE_ID, "name": "E2E Outlet"})
        check("POST /api/stores → 201", r.status_code == 201, f"status={r.status_code}")

        r = c.post("/api/stores", json={"storeId": TEST_STORE_ID, "name": "Duplicate"})
        check("POST /api/stores (duplicate) → 409", r.status_code == 409, f"status={r.status_code}")

        r = c.get("/api/stores")
        names = {s["id"]: s["name"] for s in r.json()} if r.status_code == 200 else {}
        check("  original store unchanged", names.get(TEST_STORE_ID) == "E2E Outlet")

        print("\n=== Staff validation ===")
        r = c.post("/api/staff", json={"name": "Budi", "email": "budi@x.com", "password": "short"})
        check("POST /api/staff (short password) → 400", r.status_code == 400, f"status={r.status_code}")

        r = c.get("/logout")
        check("GET /logout → 303 to /login", r.status_code == 303 and "/login" in r.headers.get("location", ""))

        r = c.get("/dashboard")
        check("GET /dashboard (after logout) → 303", r.status_code == 303)

    print("\n=== Supabase Table Connectivity ===")
    from gongcha_admin.supabase_client import SupabaseDB
    db = SupabaseDB(url=SUPABASE_URL, service_role_key=SUPABASE_KEY)
    try:
        staff = db.query("staff").limit(5).all()
        check("staff readable", len(staff) > 0, f"count={len(staff)}")

        doc = db.update("staff", uid, {"e2eProbe": True})
        check("doc_merge rpc available", doc.get("e2eProbe") is True)
    except Exception as e:
        check("Supabase tables readable", False, str(e))
    finally:
        db.close()


def main() -> None:
    print("=" * 60)
    print("Gong Cha Admin — E2E Test Suite")
    print("=" * 60)

    admin_client = create_client(SUPABASE_URL, SUPABASE_KEY)
    uid = setup_test_user(admin_client)

    try:
        run_tests(admin_client, uid)
    finally:
        teardown_test_user(admin_client, uid)

    print("\n" + "=" * 60)
    passed = sum(1 for _, ok in results if ok)
    failed = sum(1 for _, ok in results if not ok)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    if failed > 0:
        print("\nFailed tests:")
        for label, ok in results:
            if not ok:
                print(f"  - {label}")
        sys.exit(1)


if __name__ == "__main__":
    main()
