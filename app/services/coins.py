"""Coin balances: the only code path that writes User.coins outside enrollment."""

import math
from datetime import datetime
from typing import Any

from beanie import UpdateResponse
from beanie.operators import Inc, Set

from app.core.config import get_settings
from app.core.exceptions import InvalidArgumentError, InvalidStateError, NotFoundError
from app.core.logging import get_logger
from app.db.transactions import transaction
from app.models.user import User
from app.services import ledger as ledger_service

log = get_logger(__name__)

# BSON int64 bound
MAX_COIN_AMOUNT = 2**63 - 1


def to_coins(amount: Any) -> int:
    """Validate a numeric amount and round it to whole coins, halves toward +infinity."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidArgumentError("Invalid coin amount")
    if not math.isfinite(amount):
        raise InvalidArgumentError("Invalid coin amount")
    coins = math.floor(amount + 0.5) if isinstance(amount, float) else amount
    if abs(coins) > MAX_COIN_AMOUNT:
        raise InvalidArgumentError("Coin amount out of range")
    return coins


async def get_balance(user_id: int) -> int:
    user = await User.get(user_id)
    if not user:
        raise NotFoundError("User not found")
    return user.coins


async def _apply_delta(user_id: int, delta: int, session: Any = None) -> User | None:
    """Conditional $inc: matches only if the result stays non-negative."""
    return await User.find_one(
        User.id == user_id,
        User.coins >= -delta,
        session=session,
    ).update(
        Inc({User.coins: delta}),
        Set({User.updated_at: datetime.utcnow()}),
        session=session,
        response_type=UpdateResponse.NEW_DOCUMENT,
    )


async def adjust_balance(user_id: int, amount: Any, session: Any = None) -> User:
    """
    Add (positive) or remove (negative) coins. Writes no ledger entry; callers decide
    whether an adjustment is ledger-worthy.
    """
    delta = to_coins(amount)
    if delta == 0:
        raise InvalidArgumentError("Coin amount must be non-zero")
    user = await _apply_delta(user_id, delta, session=session)
    if user is None:
        current = await User.get(user_id, session=session)
        if not current:
            raise NotFoundError("User not found")
        raise InvalidStateError(
            "Insufficient coins",
            details={"requiredCoins": -delta, "currentCoins": current.coins},
        )
    log.info("coins_adjusted", user_id=user_id, delta=delta, balance=user.coins)
    return user


async def admin_adjust(user_id: int, amount: Any, admin_id: int, reason: str | None = None) -> User:
    """Admin balance update plus its admin_adjustment ledger entry, in one transaction."""
    delta = to_coins(amount)
    async with transaction() as session:
        user = await adjust_balance(user_id, delta, session=session)
        await ledger_service.record(
            user_id,
            abs(delta),
            "credit" if delta > 0 else "debit",
            reason or "Admin adjustment",
            reference_type="admin_adjustment",
            metadata={"adminId": admin_id},
            session=session,
        )
    return user


async def transfer(from_user_id: int, to_user_id: int, amount: Any) -> dict:
    """Move coins between two users atomically. Returns {fromBalance, toBalance, amount}."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount) or amount <= 0:
        raise InvalidArgumentError("Amount must be positive")
    coins = to_coins(amount)
    if coins <= 0:
        raise InvalidArgumentError("Amount must be at least one coin")
    if from_user_id == to_user_id:
        raise InvalidArgumentError("Cannot transfer coins to yourself")

    async with transaction() as session:
        sender = await User.get(from_user_id, session=session)
        receiver = await User.get(to_user_id, session=session)
        if not sender or not receiver:
            raise NotFoundError("One or both users not found")
        if sender.coins < coins:
            raise InvalidStateError(
                "Insufficient coins for transfer",
                details={"requiredCoins": coins, "currentCoins": sender.coins},
            )
        sender = await _apply_delta(from_user_id, -coins, session=session)
        if sender is None:
            # balance moved between the read and the guarded write
            raise InvalidStateError("Insufficient coins for transfer")
        receiver = await _apply_delta(to_user_id, coins, session=session)
        if receiver is None:
            raise NotFoundError("One or both users not found")
        if get_settings().ledger_transfers:
            await ledger_service.record(
                from_user_id,
                coins,
                "debit",
                f"Transfer to user {to_user_id}",
                reference_id=to_user_id,
                reference_type="transfer",
                metadata={"toUserId": to_user_id},
                session=session,
            )
            await ledger_service.record(
                to_user_id,
                coins,
                "credit",
                f"Transfer from user {from_user_id}",
                reference_id=from_user_id,
                reference_type="transfer",
                metadata={"fromUserId": from_user_id},
                session=session,
            )

    log.info("coins_transferred", from_user_id=from_user_id, to_user_id=to_user_id, amount=coins)
    return {"fromBalance": sender.coins, "toBalance": receiver.coins, "amount": coins}
