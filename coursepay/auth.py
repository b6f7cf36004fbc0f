from dataclasses import asdict, dataclass
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from coursepay.database import get_db
from coursepay.errors import AuthenticationError, ForbiddenError, InternalError
from coursepay.logger import get_logger
from coursepay.security import TokenService, TokenVerificationError
from coursepay.store import UserStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: int
    name: str
    email: str

    @classmethod
    def from_model(cls, user) -> "AuthenticatedUser":
        return cls(id=user.id, name=user.name, email=user.email)

    def to_dict(self) -> dict:
        return asdict(self)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def authenticate(
    authorization: Optional[str],
    tokens: TokenService,
    users: UserStore,
) -> AuthenticatedUser:
    token = extract_bearer_token(authorization)
    if token is None:
        raise AuthenticationError("Access token required")

    try:
        claims = tokens.verify(token)
    except TokenVerificationError as exc:
        logger.warning("Rejected token: %s", exc)
        raise ForbiddenError("Invalid or expired token") from exc

    try:
        user = users.get_by_id(claims.user_id)
    except Exception as exc:
        logger.exception("User lookup failed for token subject %s", claims.user_id)
        raise InternalError("Authentication failed") from exc

    if user is None:
        raise AuthenticationError("User not found")

    return AuthenticatedUser.from_model(user)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_current_user(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
    db: Session = Depends(get_db),
) -> AuthenticatedUser:
    return authenticate(authorization, tokens, UserStore(db))
