"""Auth API router: register, login, refresh. Responses use the ApiResponse envelope."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.user.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from src.mp_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()


def _envelope(request: Request, data: dict, message: str) -> ApiResponse:
    resp = success_response(data, message=message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse:
    async with db.begin():
        user = await _service.register(
            body.username, body.email, body.password, db, display_name=body.display_name
        )
    data = RegisterResponse(
        user_id=str(user.id),
        username=user.username,
        email=user.email,
        display_name=user.display_name,
        created_at=user.created_at.isoformat(),
    )
    return _envelope(request, data.model_dump(), "User registered successfully")


@router.post("/login", response_model=ApiResponse)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse:
    user, access_token, refresh_token = await _service.login(body.username, body.password, db)
    data = LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
        user=UserInfo(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
            display_name=user.display_name,
        ),
    )
    return _envelope(request, data.model_dump(), "Login successful")


@router.post("/refresh", response_model=ApiResponse)
async def refresh_token(request: Request, body: RefreshRequest) -> ApiResponse:
    access_token = await _service.refresh(body.refresh_token)
    data = RefreshResponse(access_token=access_token, expires_in=settings.JWT_EXPIRE_MINUTES * 60)
    return _envelope(request, data.model_dump(), "Token refreshed")
