from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.core.config import get_settings
from app.core.pagination import page_info, paginate
from app.deps import CurrentUser, get_current_user, require_admin
from app.services import coins as coins_service
from app.services import ledger as ledger_service

router = APIRouter()


class UpdateCoinsRequest(BaseModel):
    amount: float = Field(strict=True)
    reason: str | None = None


class TransferRequest(BaseModel):
    to_user_id: int = Field(alias="toUserId", gt=0)
    amount: float = Field(strict=True)


@router.get("/balance/{user_id}")
async def coins_balance(user_id: int, user: CurrentUser = Depends(get_current_user)):
    """Return a user's coin balance."""
    balance = await coins_service.get_balance(user_id)
    return {"success": True, "balance": balance}


@router.put("/update/{user_id}")
async def coins_update(user_id: int, body: UpdateCoinsRequest, admin: CurrentUser = Depends(require_admin)):
    """Admin: add or remove coins; records an admin_adjustment ledger entry."""
    user = await coins_service.admin_adjust(user_id, body.amount, admin_id=admin.user_id, reason=body.reason)
    return {"success": True, "message": "Coins updated successfully", "balance": user.coins}


@router.post("/transfer")
async def coins_transfer(body: TransferRequest, user: CurrentUser = Depends(get_current_user)):
    """Send coins from the current user to another user."""
    result = await coins_service.transfer(user.user_id, body.to_user_id, body.amount)
    return {"success": True, "message": "Coins transferred successfully", "newBalance": result["fromBalance"]}


@router.get("/history")
async def coins_history(
    user: CurrentUser = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(get_settings().default_page_limit, ge=1, le=200),
):
    """Current user's ledger entries, newest first."""
    skip, limit = paginate(page, limit, get_settings().max_page_limit)
    entries, total = await ledger_service.list_entries(user_id=user.user_id, skip=skip, limit=limit)
    return {
        "success": True,
        "data": [ledger_service.entry_out(e) for e in entries],
        "pagination": page_info(total, page, limit).model_dump(),
    }
