from datetime import datetime

from fastapi import APIRouter, Depends, Query

from app.core.config import get_settings
from app.core.pagination import page_info, paginate
from app.deps import CurrentUser, require_admin
from app.models.transaction_log import ReferenceType
from app.services import ledger as ledger_service

router = APIRouter()


@router.get("")
async def transaction_logs(
    admin: CurrentUser = Depends(require_admin),
    type: ReferenceType | None = Query(None, description="Filter by reference type"),
    user_id: int | None = Query(None, alias="userId"),
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = Query(50, ge=1, le=200),
    page: int = Query(1, ge=1),
):
    """Admin: ledger entries with user details, newest first."""
    skip, limit = paginate(page, limit, get_settings().max_page_limit)
    entries, total = await ledger_service.list_entries(
        user_id=user_id,
        reference_type=type,
        since=since,
        until=until,
        skip=skip,
        limit=limit,
    )
    return {
        "success": True,
        "data": await ledger_service.with_user_details(entries),
        "pagination": page_info(total, page, limit).model_dump(),
    }
