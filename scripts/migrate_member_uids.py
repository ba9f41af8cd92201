from gongcha_admin.database import build_db
from gongcha_admin.services.members import backfill_member_uids


def main() -> None:
    db = build_db()
    try:
        result = backfill_member_uids(db)
        print(result)
    finally:
        db.close()


if __name__ == "__main__":
    main()
