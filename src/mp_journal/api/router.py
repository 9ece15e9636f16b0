"""mp_journal REST API: a user's settlement history. All require JWT."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import get_current_user
from src.mp_gateway.user.db_models import UserModel
from src.mp_journal.application.service import JournalApplicationService

router = APIRouter(prefix="/transactions", tags=["transactions"])

_service = JournalApplicationService()


def _ok(request: Request, data: Any) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("")
async def list_transactions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    cursor: str | None = Query(None, description="Pagination cursor (transaction ID)"),
) -> ApiResponse:
    data = await _service.list_transactions(db, str(current_user.id), limit, cursor)
    return _ok(request, data.model_dump())


@router.get("/{txn_id}")
async def get_transaction(
    txn_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_transaction(db, txn_id, str(current_user.id))
    return _ok(request, data.model_dump())
