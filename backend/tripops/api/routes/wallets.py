"""
Wallet routes.
"""
from fastapi import APIRouter, Depends, status
from tripops.schemas.wallet import Wallet, WalletCreate, WalletCredit
from tripops.services import wallet_service
from tripops.store.base import PersistentStore
from tripops.api.dependencies import get_store

router = APIRouter(prefix="/wallets", tags=["wallets"])


@router.post("", response_model=Wallet, status_code=status.HTTP_201_CREATED)
async def create_wallet(
    wallet_data: WalletCreate,
    store: PersistentStore = Depends(get_store)
):
    """Open a wallet for a managing party."""
    return wallet_service.create_wallet(
        store,
        user_id=wallet_data.user_id,
        opening_balance=wallet_data.opening_balance,
        wallet_id=wallet_data.id
    )


@router.get("/{wallet_id}", response_model=Wallet)
async def get_wallet(
    wallet_id: str,
    store: PersistentStore = Depends(get_store)
):
    """Get a wallet with its transaction log."""
    return wallet_service.get_wallet(store, wallet_id)


@router.post("/{wallet_id}/credit", response_model=Wallet)
async def credit_wallet(
    wallet_id: str,
    credit: WalletCredit,
    store: PersistentStore = Depends(get_store)
):
    """Top up a wallet."""
    return wallet_service.credit_wallet(store, wallet_id, credit.amount, credit.reason)
