from typing import Literal, Optional

from pydantic import BaseModel


class SessionCreateRequest(BaseModel):
    idToken: Optional[str] = None


class SessionResponse(BaseModel):
    success: bool
    uid: Optional[str] = None
    role: Optional[str] = None


class Voucher(BaseModel):
    id: str
    rewardId: str
    title: str
    code: str
    isUsed: bool = False
    expiresAt: str
    type: Literal["personal", "general"] = "personal"


class XpHistoryEntry(BaseModel):
    id: str
    date: str
    amount: int
    type: Literal["earn", "redeem"]
    status: Literal["pending", "verified", "rejected"]
    context: str
    location: str
    transactionId: str


class TransactionActionRequest(BaseModel):
    action: Optional[str] = None


class BulkTransactionActionRequest(BaseModel):
    ids: list[str] = []
    action: Optional[str] = None


class BulkTransactionResult(BaseModel):
    success: bool
    successCount: int
    skipCount: int
    errorCount: int
    errors: list[str]


class SetupUserStatus(BaseModel):
    exists: bool
    userId: str
    email: str
    inStaff: bool
    inUsers: bool
    message: str
