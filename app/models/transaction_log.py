from datetime import datetime
from typing import Any, Literal

from beanie import Document
from pydantic import Field

EntryType = Literal["credit", "debit"]
ReferenceType = Literal["course_enrollment", "purchase", "refund", "admin_adjustment", "transfer", "other"]


class TransactionLog(Document):
    """Append-only coin ledger entry. Never updated or deleted."""
    user_id: int
    amount: int = Field(gt=0)  # magnitude; direction is in `type`
    type: EntryType
    reason: str
    reference_id: int | None = None  # course id, counterpart user id, ...
    reference_type: ReferenceType = "other"
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "transaction_logs"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("reference_id", 1), ("reference_type", 1)],
            [("created_at", -1)],
        ]
