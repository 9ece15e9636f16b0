"""Settlement transitions on an offer: accept, confirm, reject, refund. All require JWT."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import get_current_user
from src.mp_gateway.user.db_models import UserModel
from src.mp_settlement.application import service as svc
from src.mp_settlement.application.schemas import TransitionRequest

router = APIRouter(prefix="/offers", tags=["settlement"])


def _ok(request: Request, data: Any) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{offer_id}/accept")
async def accept_offer(
    offer_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.accept_offer(offer_id, str(current_user.id), db)
    return _ok(request, data.model_dump())


@router.post("/{offer_id}/confirm")
async def confirm_offer(
    offer_id: str,
    body: TransitionRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.confirm_offer(offer_id, str(current_user.id), body.role, db)
    return _ok(request, data.model_dump())


@router.post("/{offer_id}/reject")
async def reject_offer(
    offer_id: str,
    body: TransitionRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.reject_offer(offer_id, str(current_user.id), body.role, db)
    return _ok(request, data.model_dump())


@router.post("/{offer_id}/refund")
async def refund_offer(
    offer_id: str,
    body: TransitionRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.refund_offer(offer_id, str(current_user.id), body.role, db)
    return _ok(request, data.model_dump())
