"""Transactions Router - Payment history built from bookings"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import get_session
from gymapp.core.dependencies import get_current_user, require_admin
from gymapp.transactions.crud.transactions import get_user_transactions
from gymapp.transactions.schemas.transactions import TransactionItem

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("", response_model=List[TransactionItem])
async def get_my_transactions(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Your gym and trainer bookings as one payment history, newest first.
    """
    return await get_user_transactions(db, current_user["id"])


@router.get("/users/{user_id}", response_model=List[TransactionItem])
async def get_user_transaction_history(
    user_id: str,
    current_user: Dict[str, Any] = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Any user's payment history (admin only)"""
    return await get_user_transactions(db, user_id)
