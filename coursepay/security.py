"""
Password hashing and bearer session tokens.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pwdlib import PasswordHash
from pwdlib.hashers.bcrypt import BcryptHasher

from coursepay.errors import ConfigurationError

BCRYPT_ROUNDS = 12
ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(days=7)
USER_ID_CLAIM = "userId"


# ----- Password hashing with pwdlib -----
class PasswordHasher:
    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self._hasher = PasswordHash((BcryptHasher(rounds=rounds),))
        self._dummy_hash: Optional[str] = None

    def hash(self, password: str) -> str:
        return self._hasher.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        return self._hasher.verify(password, password_hash)

    def verify_dummy(self, password: str) -> bool:
        """Spend one verification without a real hash, so unknown accounts
        take as long to reject as wrong passwords."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("coursepay-placeholder-password")
        self._hasher.verify(password, self._dummy_hash)
        return False


# ----- Session tokens -----
class TokenVerificationError(Exception):
    pass


class MalformedTokenError(TokenVerificationError):
    pass


class SignatureInvalidError(TokenVerificationError):
    pass


class TokenExpiredError(TokenVerificationError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    expires_at: datetime


class TokenService:
    def __init__(self, secret: Optional[str], lifetime: timedelta = TOKEN_LIFETIME):
        if not secret:
            raise ConfigurationError("JWT_SECRET environment variable is required")
        self._secret = secret
        self.lifetime = lifetime

    def issue(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        claims = {USER_ID_CLAIM: user_id, "iat": now, "exp": now + self.lifetime}
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedTokenError("Token could not be decoded") from exc

        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except JWTError as exc:
            raise SignatureInvalidError("Token signature is invalid") from exc

        user_id = payload.get(USER_ID_CLAIM)
        expires = payload.get("exp")
        if not isinstance(user_id, int) or isinstance(user_id, bool) or expires is None:
            raise MalformedTokenError("Token is missing required claims")

        return TokenClaims(
            user_id=user_id,
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
        )
