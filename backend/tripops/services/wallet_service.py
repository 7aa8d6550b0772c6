"""
Wallet service for opening and topping up manager wallets.
"""
from decimal import Decimal
from typing import Optional
import logging
import uuid

from tripops.core.exceptions import InvalidArgument
from tripops.core.utils import to_money, utcnow
from tripops.schemas.wallet import TransactionType, Wallet, WalletTransaction
from tripops.services.documents import dump, load
from tripops.store.base import WALLETS, PersistentStore, WriteOp

logger = logging.getLogger(__name__)


def get_wallet(store: PersistentStore, wallet_id: str) -> Wallet:
    wallet, _ = load(store, WALLETS, wallet_id, Wallet)
    return wallet


def create_wallet(
    store: PersistentStore,
    user_id: str,
    opening_balance: Decimal = Decimal("0"),
    wallet_id: Optional[str] = None
) -> Wallet:
    """Open a wallet; a positive opening balance is logged as a credit."""
    opening_balance = to_money(opening_balance)
    if opening_balance < 0:
        raise InvalidArgument("Opening balance cannot be negative")

    now = utcnow()
    transactions = []
    if opening_balance > 0:
        transactions.append(WalletTransaction(
            amount=opening_balance,
            type=TransactionType.CREDIT,
            reason="Opening balance",
            timestamp=now,
        ))
    wallet = Wallet(
        id=wallet_id or uuid.uuid4().hex,
        user_id=user_id,
        available_balance=opening_balance,
        transactions=transactions,
        created_at=now,
        updated_at=now,
    )
    store.batch_write([WriteOp.set(WALLETS, wallet.id, dump(wallet), expected_version=0)])
    logger.info(f"Opened wallet {wallet.id} for user {user_id} with {opening_balance}")
    return wallet


def credit_wallet(store: PersistentStore, wallet_id: str, amount: Decimal, reason: str) -> Wallet:
    """Add funds to a wallet and append the matching credit entry."""
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidArgument("Credit amount must be positive")

    wallet, version = load(store, WALLETS, wallet_id, Wallet)
    now = utcnow()
    entry = WalletTransaction(amount=amount, type=TransactionType.CREDIT, reason=reason, timestamp=now)
    updated = wallet.model_copy(update={
        "available_balance": to_money(wallet.available_balance + amount),
        "transactions": wallet.transactions + [entry],
        "updated_at": now,
    })
    store.batch_write([
        WriteOp.patch(WALLETS, wallet_id, {
            "available_balance": str(updated.available_balance),
            "transactions": [dump(t) for t in updated.transactions],
            "updated_at": now.isoformat(),
        }, expected_version=version),
    ])
    logger.info(f"Credited wallet {wallet_id} with {amount}: {reason}")
    return updated
