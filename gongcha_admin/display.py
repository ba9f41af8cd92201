"""Display/label helper functions for UI rendering."""
from __future__ import annotations

from typing import Optional


def display_role(role: Optional[str]) -> str:
    if not role:
        return "-"
    mapping = {
        "master": "Master",
        "admin": "Admin",
        "manager": "Manager",
        "store_manager": "Store Manager",
        "cashier": "Kasir",
        "staff": "Staff",
        "member": "Member",
        "trial": "Trial",
    }
    return mapping.get(role, role)


def display_transaction_status(status_value: Optional[str]) -> str:
    mapping = {
        "pending": "Pending",
        "verified": "Terverifikasi",
        "rejected": "Ditolak",
    }
    return mapping.get(status_value or "pending", status_value or "-")


def transaction_status_pill_class(status_value: Optional[str]) -> str:
    mapping = {
        "pending": "pill-pending",
        "verified": "pill-verified",
        "rejected": "pill-rejected",
    }
    return mapping.get(status_value or "pending", "pill-pending")


def display_store_status(status_value: Optional[str]) -> str:
    mapping = {
        "open": "Buka",
        "closed": "Tutup",
        "almost_close": "Segera Tutup",
    }
    return mapping.get(status_value or "open", status_value or "-")
