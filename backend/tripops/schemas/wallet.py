"""
Pydantic schemas for manager wallets.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import enum

from tripops.core.utils import utcnow


class TransactionType(str, enum.Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class WalletTransaction(BaseModel):
    """Ledger entry. Debits carry a negative amount, credits a positive one."""
    amount: Decimal
    type: TransactionType
    reason: str
    timestamp: datetime = Field(default_factory=utcnow)


class Wallet(BaseModel):
    """Wallet of a managing party."""
    id: str
    user_id: str
    available_balance: Decimal = Field(default=Decimal("0"), ge=0)
    transactions: List[WalletTransaction] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WalletCreate(BaseModel):
    """Schema for opening a wallet."""
    id: Optional[str] = None
    user_id: str
    opening_balance: Decimal = Decimal("0")


class WalletCredit(BaseModel):
    """Schema for topping up a wallet."""
    amount: Decimal
    reason: str = "Wallet top-up"
