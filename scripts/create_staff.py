import argparse

from gongcha_admin import collections
from gongcha_admin.database import build_db, build_identity_provider
from gongcha_admin.errors import AdminError
from gongcha_admin.services.accounts import validate_password
from gongcha_admin.services.staff import STAFF_ACCOUNT_ROLES, create_staff
from gongcha_admin.utils import iso_now, normalize_email


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or update a staff account.")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--password", required=True, help="Password (8+ characters)")
    parser.add_argument("--role", default="cashier", choices=STAFF_ACCOUNT_ROLES, help="Staff role")
    parser.add_argument("--store", action="append", default=[], help="Store id (repeatable)")
    parser.add_argument(
        "--update-existing",
        action="store_true",
        help="Update the existing staff document when the email is already registered",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    email = normalize_email(args.email)
    try:
        validate_password(args.password)
    except AdminError as exc:
        raise SystemExit(exc.message)

    db = build_db()
    idp = build_identity_provider()
    try:
        existing = db.query(collections.STAFF).filter(("email", "=", email)).first()
        if existing is None:
            try:
                created = create_staff(db, idp, {
                    "name": args.name,
                    "email": email,
                    "password": args.password,
                    "role": args.role,
                    "storeLocations": args.store,
                    "accessAllStores": args.role == "admin",
                })
            except AdminError as exc:
                raise SystemExit(exc.message)
            print(f"[CREATED] uid={created['uid']} email={email} role={args.role}")
            return

        if not args.update_existing:
            raise SystemExit("Account already exists. Use --update-existing to modify it.")

        idp.update_account(existing.id, password=args.password, display_name=args.name.strip())
        db.update(collections.STAFF, existing.id, {
            "name": args.name.strip(),
            "role": args.role,
            "isActive": True,
            "storeLocations": args.store,
            "updatedAt": iso_now(),
        })
        print(f"[UPDATED] uid={existing.id} email={email} role={args.role}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
