"""Dashboard KPIs: membership, store and transaction summaries."""
from __future__ import annotations

from gongcha_admin import collections
from gongcha_admin.config import DASHBOARD_RECENT_LIMIT
from gongcha_admin.supabase_client import SupabaseDB
from gongcha_admin.utils import local_today, to_local_datetime


TOP_STORES_LIMIT = 5


def _amount(value: object) -> int:
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


def summarize_transactions(transactions: list, store_names: dict[str, str]) -> dict:
    total_revenue = 0
    pending_count = 0
    pending_points = 0
    today_count = 0
    today = local_today()
    store_stats: dict[str, dict[str, int]] = {}

    for tx in transactions:
        status = tx.get("status") or "pending"
        amount = _amount(tx.get("amount"))
        store_id = tx.get("storeLocation") or "-"

        if status == "verified":
            total_revenue += amount
        elif status == "pending":
            pending_count += 1
            pending_points += _amount(tx.get("potentialPoints"))

        created = to_local_datetime(tx.get("createdAt"))
        if created is not None and created.date() == today:
            today_count += 1

        stats = store_stats.setdefault(store_id, {"revenue": 0, "txCount": 0})
        stats["txCount"] += 1
        if status == "verified":
            stats["revenue"] += amount

    top_stores = sorted(
        (
            {
                "storeId": store_id,
                "storeName": store_names.get(store_id, store_id),
                "totalRevenue": stats["revenue"],
                "txCount": stats["txCount"],
            }
            for store_id, stats in store_stats.items()
        ),
        key=lambda row: row["totalRevenue"],
        reverse=True,
    )[:TOP_STORES_LIMIT]

    recent = sorted(transactions, key=lambda tx: tx.get("createdAt") or "", reverse=True)
    recent_rows = [
        {
            "id": tx.id,
            "transactionId": tx.get("transactionId") or tx.id,
            "memberName": tx.get("memberName") or "-",
            "storeLocation": tx.get("storeLocation") or "-",
            "amount": _amount(tx.get("amount")),
            "status": tx.get("status") or "pending",
            "createdAt": tx.get("createdAt") or "",
        }
        for tx in recent[:DASHBOARD_RECENT_LIMIT]
    ]

    return {
        "totalRevenue": total_revenue,
        "pendingCount": pending_count,
        "pendingPointsHeld": pending_points,
        "todayTransactionCount": today_count,
        "recentTransactions": recent_rows,
        "topStores": top_stores,
    }


def get_dashboard_data(db: SupabaseDB) -> dict:
    stores = db.query(collections.STORES).all()
    store_names = {store.id: store.get("name") or store.id for store in stores}
    transactions = db.query(collections.TRANSACTIONS).all()

    return {
        "totalMembers": db.query(collections.USERS).count(),
        "totalStores": len(stores),
        "activeStores": sum(1 for store in stores if store.get("isActive") is True),
        **summarize_transactions(transactions, store_names),
    }
