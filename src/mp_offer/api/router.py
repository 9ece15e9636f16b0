"""mp_offer REST API: submit and query offers. All require JWT."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.database import get_db_session
from src.mp_common.enums import OfferStatus
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import get_current_user
from src.mp_gateway.user.db_models import UserModel
from src.mp_offer.application.schemas import CreateOfferRequest
from src.mp_offer.application.service import OfferApplicationService

router = APIRouter(prefix="/offers", tags=["offers"])

_service = OfferApplicationService()


def _ok(request: Request, data: Any) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("", status_code=201)
async def create_offer(
    body: CreateOfferRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_offer(db, str(current_user.id), body)
    return _ok(request, data.model_dump())


@router.get("")
async def list_offers(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: OfferStatus | None = Query(None, description="Filter by offer status"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    cursor: str | None = Query(None, description="Pagination cursor (offer ID)"),
) -> ApiResponse:
    data = await _service.list_offers(db, str(current_user.id), status, limit, cursor)
    return _ok(request, data.model_dump())


@router.get("/{offer_id}")
async def get_offer(
    offer_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_offer(db, offer_id, str(current_user.id))
    return _ok(request, data.model_dump())
