from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import bcrypt
from jose import JWTError, jwt

from finanalyst.core.errors import UnauthorizedError

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _epoch(moment: datetime) -> int:
    # naive clock values are UTC, as jose assumes when encoding them
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


class TokenSigner:
    """
    Issues and verifies the signed, time-limited credential handed out at
    login. The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_days: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_delta = timedelta(days=expire_days)
        self._clock = clock or _utcnow

    def create_access_token(self, data: Dict[str, Any]) -> str:
        issued_at = self._clock()
        to_encode = dict(data)
        to_encode.update({"iat": issued_at, "exp": issued_at + self._expire_delta})
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        # exp is checked against the signer's clock
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError:
            raise UnauthorizedError("Not authorized to access this route")

        if not payload.get("id"):
            raise UnauthorizedError("Not authorized to access this route")

        expires_at = payload.get("exp")
        if not isinstance(expires_at, (int, float)):
            raise UnauthorizedError("Not authorized to access this route")
        if _epoch(self._clock()) >= expires_at:
            raise UnauthorizedError("Token has expired")
        return payload
