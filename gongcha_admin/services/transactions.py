"""Purchase transaction verification and point disbursement."""
from __future__ import annotations

import logging
from typing import Optional

from gongcha_admin import collections
from gongcha_admin.config import TIER_THRESHOLDS, TRANSACTION_LIST_LIMIT
from gongcha_admin.errors import Conflict, NotFound, ValidationFailed
from gongcha_admin.schemas import BulkTransactionResult, XpHistoryEntry
from gongcha_admin.supabase_client import (
    Document,
    DocumentNotFoundError,
    PreconditionFailedError,
    SupabaseDB,
)
from gongcha_admin.utils import iso_now, is_number, utc_now


logger = logging.getLogger("gongcha-admin")

TRANSACTION_ACTIONS = {"verify": "verified", "reject": "rejected"}
TIER_ORDER = [name for name, _ in reversed(TIER_THRESHOLDS)]
BULK_ERROR_SAMPLE = 5

TRANSACTION_NOT_FOUND = "Transaksi tidak ditemukan."


def tier_for_points(lifetime_points: float) -> str:
    for name, threshold in TIER_THRESHOLDS:
        if lifetime_points >= threshold:
            return name
    return TIER_ORDER[0]


def _tier_rank(tier: Optional[str]) -> int:
    return TIER_ORDER.index(tier) if tier in TIER_ORDER else 0


def serialize_transaction(doc: Document) -> dict:
    return {
        "id": doc.id,
        "transactionId": doc.get("transactionId") or doc.id,
        "memberName": doc.get("memberName") or "-",
        "memberId": doc.get("memberId") or "",
        "staffId": doc.get("staffId") or "",
        "storeLocation": doc.get("storeLocation") or "-",
        "amount": doc.get("amount") or 0,
        "potentialPoints": doc.get("potentialPoints") or 0,
        "status": doc.get("status") or "pending",
        "createdAt": doc.get("createdAt"),
        "verifiedAt": doc.get("verifiedAt"),
        "verifiedBy": doc.get("verifiedBy"),
    }


def list_transactions(db: SupabaseDB, limit: int = TRANSACTION_LIST_LIMIT) -> list[dict]:
    docs = db.query(collections.TRANSACTIONS).order_by("createdAt DESC").limit(limit).all()
    return [serialize_transaction(doc) for doc in docs]


def _parse_action(action: Optional[str]) -> str:
    if action not in TRANSACTION_ACTIONS:
        raise ValidationFailed("action harus 'verify' atau 'reject'.", field="action")
    return action


def disburse_points(db: SupabaseDB, transaction: Document, verified_by: str) -> None:
    """Credit a verified transaction's points to its member and log an XP entry."""
    member_id = transaction.get("memberId")
    points = transaction.get("potentialPoints") or 0
    if not member_id or not is_number(points) or points <= 0:
        return

    now = iso_now()
    try:
        member = db.increment(
            collections.USERS,
            member_id,
            {"currentPoints": points, "lifetimePoints": points},
            patch={"pointsLastUpdatedAt": now, "pointsLastUpdatedBy": verified_by},
        )
    except DocumentNotFoundError:
        logger.warning("Transaction %s verified for missing member %s", transaction.id, member_id)
        return

    reference = transaction.get("transactionId") or transaction.id
    entry = XpHistoryEntry(
        id=f"{transaction.id}_{int(utc_now().timestamp() * 1000)}",
        date=now,
        amount=int(points),
        type="earn",
        status="verified",
        context=f"Transaksi {reference}",
        location=transaction.get("storeLocation") or "",
        transactionId=reference,
    ).model_dump()

    patch = {}
    earned_tier = tier_for_points(member.get("lifetimePoints") or 0)
    if _tier_rank(earned_tier) > _tier_rank(member.get("tier")):
        patch["tier"] = earned_tier
        logger.info("Member %s upgraded to %s", member_id, earned_tier)

    db.array_union(collections.USERS, member_id, "xpHistory", [entry], patch=patch)
    logger.info("Disbursed %s points to member %s for transaction %s", points, member_id, transaction.id)


def _apply_action(db: SupabaseDB, transaction_id: str, action: str, verified_by: str) -> Document:
    new_status = TRANSACTION_ACTIONS[action]
    transaction = db.update(
        collections.TRANSACTIONS,
        transaction_id,
        {"status": new_status, "verifiedAt": iso_now(), "verifiedBy": verified_by},
        expect={"status": "pending"},
    )
    if action == "verify":
        disburse_points(db, transaction, verified_by)
    logger.info("Transaction %s %s by %s", transaction_id, new_status, verified_by)
    return transaction


def process_transaction(db: SupabaseDB, transaction_id: str, action: Optional[str], verified_by: str) -> dict:
    action = _parse_action(action)
    try:
        transaction = _apply_action(db, transaction_id, action, verified_by)
    except DocumentNotFoundError as exc:
        raise NotFound(TRANSACTION_NOT_FOUND) from exc
    except PreconditionFailedError as exc:
        current = exc.current.get("status")
        raise Conflict(
            f'Transaksi sudah berstatus "{current}". Tidak bisa diubah lagi.',
            code="STATE_CONFLICT",
        ) from exc

    response = {"success": True, "action": TRANSACTION_ACTIONS[action]}
    if action == "verify":
        response["points"] = transaction.get("potentialPoints") or 0
    return response


def process_transactions_bulk(
    db: SupabaseDB,
    transaction_ids: list[str],
    action: Optional[str],
    verified_by: str,
) -> BulkTransactionResult:
    if not transaction_ids:
        raise ValidationFailed("ids harus berupa array yang tidak kosong.", field="ids")
    action = _parse_action(action or "verify")

    success_count = 0
    skip_count = 0
    errors: list[str] = []
    for transaction_id in transaction_ids:
        try:
            _apply_action(db, transaction_id, action, verified_by)
        except (DocumentNotFoundError, PreconditionFailedError):
            skip_count += 1
            continue
        except Exception as exc:
            logger.exception("Bulk %s failed for transaction %s", action, transaction_id)
            errors.append(f"{transaction_id}: {exc}")
            continue
        success_count += 1

    return BulkTransactionResult(
        success=True,
        successCount=success_count,
        skipCount=skip_count,
        errorCount=len(errors),
        errors=errors[:BULK_ERROR_SAMPLE],
    )
