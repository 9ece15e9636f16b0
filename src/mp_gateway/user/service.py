"""UserService: register, login, refresh.

Registration opens the user's ledger account (zero balances) in the same
transaction as the users row, so every authenticated user can hold escrow.
"""

import logging

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.mp_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.mp_gateway.auth.password import hash_password, verify_password
from src.mp_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)

_OPEN_ACCOUNT_SQL = text("""
    INSERT INTO accounts (user_id, spendable_balance, escrow_balance, version)
    VALUES (:user_id, 0, 0, 0)
""")


class UserService:
    async def register(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
        display_name: str | None = None,
    ) -> UserModel:
        """Create the user and their account. The caller owns the transaction."""
        # DB UNIQUE constraints remain the final guard
        existing = await db.execute(select(UserModel).where(UserModel.username == username))
        if existing.scalar_one_or_none() is not None:
            raise UsernameExistsError()
        existing = await db.execute(select(UserModel).where(UserModel.email == email))
        if existing.scalar_one_or_none() is not None:
            raise EmailExistsError()

        user = UserModel(
            username=username,
            email=email,
            password_hash=hash_password(password),
            display_name=display_name,
            is_active=True,
        )
        db.add(user)
        await db.flush()  # assigns user.id
        await db.execute(_OPEN_ACCOUNT_SQL, {"user_id": str(user.id)})
        logger.info("User registered: id=%s username=%s", user.id, username)
        return user

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> tuple[UserModel, str, str]:
        """Return (user, access_token, refresh_token).

        Unknown user and wrong password raise the same error.
        """
        result = await db.execute(select(UserModel).where(UserModel.username == username))
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AccountDisabledError()
        user_id = str(user.id)
        return user, create_access_token(user_id), create_refresh_token(user_id)

    async def refresh(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new access token (no rotation)."""
        payload = decode_token(refresh_token, expected_type="refresh")
        return create_access_token(str(payload["sub"]))
