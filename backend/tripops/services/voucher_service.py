"""
Voucher ledger service.

A voucher edit tops up the cash a trip carries. The manager's wallet is
charged only for what the edit adds on top of the previous voucher:

    advance delta    = max(0, new advance - previous advance)
    additional delta = sum(new additional) - sum(previous additional)
    total charge     = advance delta + additional delta

The additional delta is not clamped, so reducing additional items offsets an
advance increase. The voucher snapshot, the balance decrement and the debit
entries are written in one batch that also asserts the trip and wallet
versions read at the start; a concurrent edit makes the batch fail and the
charge is recomputed from fresh state.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
import logging

from tripops.core.config import settings
from tripops.core.exceptions import (
    ConcurrentModification, InsufficientBalance, InvalidArgument
)
from tripops.core.utils import sum_money, to_money, utcnow
from tripops.schemas.trip import AdditionalBalance, Trip, TripVoucher
from tripops.schemas.wallet import TransactionType, Wallet, WalletTransaction
from tripops.services.documents import dump, load
from tripops.store.base import TRIPS, WALLETS, PersistentStore, WriteOp

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class VoucherCharge:
    """Incremental amounts a voucher edit adds."""
    advance_delta: Decimal
    additional_delta: Decimal
    item_increases: Tuple[Tuple[int, Decimal], ...] = ()  # (item index, increase)

    @property
    def total(self) -> Decimal:
        return self.advance_delta + self.additional_delta


@dataclass
class ReconcileResult:
    """Outcome of a voucher edit."""
    trip_id: str
    wallet_id: str
    voucher: TripVoucher
    charge: VoucherCharge
    available_balance: Decimal
    transactions: List[WalletTransaction] = field(default_factory=list)

    @property
    def charged(self) -> Decimal:
        return self.charge.total if self.charge.total > 0 else ZERO


def compute_voucher_charge(
    previous: Optional[TripVoucher],
    new_advance_balance: Decimal,
    new_additional_balances: Sequence[AdditionalBalance]
) -> VoucherCharge:
    """Charge implied by replacing ``previous`` with the new balances."""
    previous_advance = to_money(previous.advance_balance) if previous else ZERO
    previous_items = previous.additional_balance if previous else []

    advance_delta = max(ZERO, to_money(new_advance_balance) - previous_advance)
    additional_delta = (
        sum_money(item.amount for item in new_additional_balances)
        - sum_money(item.amount for item in previous_items)
    )

    increases = []
    for index, item in enumerate(new_additional_balances):
        before = to_money(previous_items[index].amount) if index < len(previous_items) else ZERO
        increase = to_money(item.amount) - before
        if increase > 0:
            increases.append((index, increase))

    return VoucherCharge(advance_delta, additional_delta, tuple(increases))


def carry_item_timestamps(
    previous: Optional[TripVoucher],
    new_additional_balances: Sequence[AdditionalBalance]
) -> List[AdditionalBalance]:
    """
    Keep the original timestamp of items the edit leaves as they were.

    An item without an explicit timestamp that matches the previous item at
    the same index (amount and reason) keeps that item's timestamp.
    """
    previous_items = previous.additional_balance if previous else []
    items = []
    for index, item in enumerate(new_additional_balances):
        if "timestamp" not in item.model_fields_set and index < len(previous_items):
            before = previous_items[index]
            if to_money(before.amount) == to_money(item.amount) and before.reason == item.reason:
                item = item.model_copy(update={"timestamp": before.timestamp})
        items.append(item)
    return items


def build_debit_entries(
    trip_code: str,
    charge: VoucherCharge,
    new_additional_balances: Sequence[AdditionalBalance],
    timestamp
) -> List[WalletTransaction]:
    """Debit entries explaining a positive charge."""
    entries = []
    if charge.advance_delta > 0:
        entries.append(WalletTransaction(
            amount=-charge.advance_delta,
            type=TransactionType.DEBIT,
            reason=f"Advance for trip {trip_code}",
            timestamp=timestamp,
        ))
    for index, increase in charge.item_increases:
        entries.append(WalletTransaction(
            amount=-increase,
            type=TransactionType.DEBIT,
            reason=f"Additional balance for trip {trip_code}: {new_additional_balances[index].reason}",
            timestamp=timestamp,
        ))
    return entries


class VoucherLedgerReconciler:
    """Charges manager wallets for voucher top-ups."""

    def __init__(self, store: PersistentStore, max_retries: int = None):
        self.store = store
        self.max_retries = settings.LEDGER_MAX_RETRIES if max_retries is None else max_retries
        if self.max_retries < 1:
            raise InvalidArgument(f"max_retries must be at least 1, got {self.max_retries}")

    def reconcile(
        self,
        trip_id: str,
        new_advance_balance: Decimal,
        new_additional_balances: Sequence[AdditionalBalance],
        wallet_id: str
    ) -> ReconcileResult:
        """Replace a trip's voucher and debit the wallet for the increase."""
        new_advance_balance = to_money(new_advance_balance)
        if new_advance_balance < 0:
            raise InvalidArgument("Advance balance cannot be negative")
        items = [
            item.model_copy(update={"amount": to_money(item.amount)})
            for item in new_additional_balances
        ]
        if any(item.amount < 0 for item in items):
            raise InvalidArgument("Additional balance amounts cannot be negative")

        last_conflict = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._attempt(trip_id, new_advance_balance, items, wallet_id)
            except ConcurrentModification as e:
                last_conflict = e
                logger.warning(
                    f"Voucher edit on trip {trip_id} conflicted (attempt {attempt}/{self.max_retries}): {e.message}"
                )
        logger.error(f"Voucher edit on trip {trip_id} gave up after {self.max_retries} attempts")
        raise last_conflict

    def _attempt(
        self,
        trip_id: str,
        new_advance_balance: Decimal,
        items: List[AdditionalBalance],
        wallet_id: str
    ) -> ReconcileResult:
        trip, trip_version = load(self.store, TRIPS, trip_id, Trip)
        wallet, wallet_version = load(self.store, WALLETS, wallet_id, Wallet)

        items = carry_item_timestamps(trip.voucher, items)
        charge = compute_voucher_charge(trip.voucher, new_advance_balance, items)
        if charge.total > 0 and wallet.available_balance < charge.total:
            raise InsufficientBalance(wallet.available_balance, charge.total)

        now = utcnow()
        voucher = TripVoucher(
            advance_balance=new_advance_balance,
            additional_balance=items,
            created_at=trip.voucher.created_at if trip.voucher else now,
            updated_at=now,
        )
        writes = [
            WriteOp.patch(TRIPS, trip_id, {
                "voucher": dump(voucher),
                "updated_at": now.isoformat(),
            }, expected_version=trip_version),
        ]

        balance = wallet.available_balance
        entries = []
        if charge.total > 0:
            entries = build_debit_entries(trip.trip_code, charge, items, now)
            balance = to_money(wallet.available_balance - charge.total)
            writes.append(WriteOp.patch(WALLETS, wallet_id, {
                "available_balance": str(balance),
                "transactions": [dump(t) for t in wallet.transactions + entries],
                "updated_at": now.isoformat(),
            }, expected_version=wallet_version))

        self.store.batch_write(writes)
        if entries:
            logger.info(f"Charged wallet {wallet_id} {charge.total} for trip {trip.trip_code}")
        else:
            logger.info(f"Updated voucher of trip {trip.trip_code} without a wallet charge")

        return ReconcileResult(
            trip_id=trip_id,
            wallet_id=wallet_id,
            voucher=voucher,
            charge=charge,
            available_balance=balance,
            transactions=entries,
        )
