"""Append-only coin ledger (transaction logs)."""

from datetime import datetime, timezone
from typing import Any, get_args

from beanie.operators import In

from app.core.exceptions import InvalidArgumentError
from app.core.logging import get_logger
from app.models.transaction_log import EntryType, ReferenceType, TransactionLog
from app.models.user import User

log = get_logger(__name__)

ENTRY_TYPES = get_args(EntryType)
REFERENCE_TYPES = get_args(ReferenceType)


def _naive_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


async def record(
    user_id: int,
    amount: int,
    entry_type: str,
    reason: str,
    reference_id: int | None = None,
    reference_type: str = "other",
    metadata: dict[str, Any] | None = None,
    session: Any = None,
) -> TransactionLog:
    """Insert one ledger entry. There is no update or delete counterpart."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidArgumentError("Ledger amount must be a positive integer")
    if entry_type not in ENTRY_TYPES:
        raise InvalidArgumentError(f"Invalid entry type: {entry_type}. Allowed: {', '.join(ENTRY_TYPES)}")
    if reference_type not in REFERENCE_TYPES:
        raise InvalidArgumentError(f"Invalid reference type: {reference_type}")
    if not reason:
        raise InvalidArgumentError("Ledger reason is required")
    entry = TransactionLog(
        user_id=user_id,
        amount=amount,
        type=entry_type,
        reason=reason,
        reference_id=reference_id,
        reference_type=reference_type,
        metadata=metadata or {},
    )
    await entry.insert(session=session)
    log.info(
        "ledger_entry_recorded",
        user_id=user_id,
        type=entry_type,
        amount=amount,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    return entry


async def list_entries(
    user_id: int | None = None,
    reference_type: str | None = None,
    entry_type: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[TransactionLog], int]:
    """Return (entries newest first, total matching)."""
    query: dict[str, Any] = {}
    if user_id is not None:
        query["user_id"] = user_id
    if reference_type:
        query["reference_type"] = reference_type
    if entry_type:
        query["type"] = entry_type
    if since or until:
        query["created_at"] = {}
        if since:
            query["created_at"]["$gte"] = _naive_utc(since)
        if until:
            query["created_at"]["$lte"] = _naive_utc(until)
    entries = (
        await TransactionLog.find(query)
        .sort(-TransactionLog.created_at)
        .skip(skip)
        .limit(limit)
        .to_list()
    )
    total = await TransactionLog.find(query).count()
    return entries, total


def entry_out(e: TransactionLog) -> dict[str, Any]:
    return {
        "id": str(e.id),
        "userId": e.user_id,
        "amount": e.amount,
        "type": e.type,
        "reason": e.reason,
        "referenceId": e.reference_id,
        "referenceType": e.reference_type,
        "metadata": e.metadata,
        "createdAt": e.created_at.isoformat(),
    }


async def with_user_details(entries: list[TransactionLog]) -> list[dict[str, Any]]:
    """Attach {email, name, role} of each entry's user; placeholders for unknown users."""
    user_ids = list({e.user_id for e in entries})
    users = await User.find(In(User.id, user_ids)).to_list() if user_ids else []
    by_id = {u.id: {"email": u.email, "name": u.name, "role": u.role} for u in users}
    unknown = {"email": "Unknown", "name": "Unknown User", "role": "user"}
    return [{**entry_out(e), "user": by_id.get(e.user_id, unknown)} for e in entries]
