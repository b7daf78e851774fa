import logging
from typing import Any, Dict, Iterable

from finanalyst.core.errors import ConflictError, ForbiddenError, UnauthorizedError
from finanalyst.core.security import TokenSigner, get_password_hash, verify_password
from finanalyst.db.store import UserStore
from finanalyst.models.user import AuthResult, UserInDB, UserPublic

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class AuthService:
    """Registration, login and token verification on top of a user store."""

    def __init__(self, users: UserStore, signer: TokenSigner) -> None:
        self.users = users
        self.signer = signer

    def _issue(self, user: Dict[str, Any]) -> AuthResult:
        token = self.signer.create_access_token(
            {"id": user["user_id"], "email": user["email"], "role": user.get("role", "user")}
        )
        return AuthResult(token=token, user=UserPublic.from_db(user))

    def register(self, name: str, email: str, password: str) -> AuthResult:
        if self.users.get_by_email(email):
            raise ConflictError("User already exists")

        user_db = UserInDB(name=name, email=email, password_hash=get_password_hash(password))
        user = user_db.model_dump()
        self.users.put(user)
        logger.info(f"Registered user {user_db.user_id} ({email})")
        return self._issue(user)

    def login(self, email: str, password: str) -> AuthResult:
        user = self.users.get_by_email(email)
        if not user:
            logger.warning(f"Login failed, unknown email: {email}")
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not verify_password(password, user.get("password_hash", "")):
            logger.warning(f"Login failed, bad password for: {email}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        logger.info(f"Login successful for user: {email}")
        return self._issue(user)

    def current_user(self, token: str) -> UserPublic:
        payload = self.signer.decode_access_token(token)
        user = self.users.get_by_id(payload["id"])
        if not user:
            raise UnauthorizedError("User not found")
        return UserPublic.from_db(user)


def check_role(user: UserPublic, roles: Iterable[str]) -> None:
    if user.role not in set(roles):
        raise ForbiddenError("User role is not authorized to access this route")
