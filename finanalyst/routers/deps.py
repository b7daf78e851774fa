from typing import Callable, Optional

from fastapi import Depends, Header, Request

from finanalyst.core.errors import UnauthorizedError
from finanalyst.db.store import TransactionStore, UserStore
from finanalyst.models.user import UserPublic
from finanalyst.utils.analyzer import TransactionAnalyzer
from finanalyst.utils.auth_service import AuthService, check_role


def get_transaction_store(request: Request) -> TransactionStore:
    return request.app.state.transactions


def get_user_store(request: Request) -> UserStore:
    return request.app.state.users


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def get_analyzer(request: Request) -> TransactionAnalyzer:
    return request.app.state.analyzer


def get_current_user(
    authorization: Optional[str] = Header(None),
    auth: AuthService = Depends(get_auth_service),
) -> UserPublic:
    """Resolve the user behind ``Authorization: Bearer <token>``."""
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Not authorized to access this route")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise UnauthorizedError("Not authorized to access this route")
    return auth.current_user(token)


def authorize(*roles: str) -> Callable[..., UserPublic]:
    """Dependency factory: the current user must hold one of ``roles``."""

    def dependency(user: UserPublic = Depends(get_current_user)) -> UserPublic:
        check_role(user, roles)
        return user

    return dependency
