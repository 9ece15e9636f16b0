"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Account
  3xxx: Item
  4xxx: Offer / settlement transitions
  5xxx: Transaction journal
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class NotFoundError(AppError):
    """Unknown offer, item, user account or transaction."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 404)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


# --- 2xxx: Account ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int, user_id: str | None = None) -> None:
        who = f" for user {user_id}" if user_id else ""
        super().__init__(
            2001,
            f"Insufficient funds{who}: required {required} cents, available {available} cents",
            422,
        )
        self.required = required
        self.available = available
        self.user_id = user_id


class AccountNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Account not found for user {user_id}")


# --- 3xxx: Item ---

class ItemNotFoundError(NotFoundError):
    def __init__(self, item_id: str) -> None:
        super().__init__(3001, f"Item not found: {item_id}")


# --- 4xxx: Offer ---

class InvalidOfferError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid offer: {detail}", 422)


class UnauthorizedActionError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4003, detail, 403)


class OfferNotFoundError(NotFoundError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(4004, f"Offer not found: {offer_id}")


class InvalidTransitionError(AppError):
    def __init__(self, offer_id: str, status: str, action: str) -> None:
        super().__init__(
            4009, f"Offer {offer_id} in status {status} cannot be {action}", 409
        )


# --- 5xxx: Transaction journal ---

class TransactionNotFoundError(NotFoundError):
    def __init__(self, ref: str) -> None:
        super().__init__(5004, f"Transaction not found: {ref}")


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class InvariantViolationError(AppError):
    """Should be unreachable: signals a concurrency or accounting bug."""

    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Invariant violated: {detail}", 500)
