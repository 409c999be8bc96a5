from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from storeapi.core import config
from storeapi.core.config import TokenType, build_token_settings
from storeapi.core.errors import AuthenticationError, Forbidden, Unauthenticated
from storeapi.core.security import TokenService
from storeapi.database import SessionLocal
from storeapi.logger import get_logger
from storeapi.models.auth_models import User
from storeapi.services.auth_service import AuthService
from storeapi.services.notification_service import NotificationGateway, ProviderNotificationGateway
from storeapi.services.otp_service import OtpService
from storeapi.services.user_store import UserStore

logger = get_logger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_token_service() -> TokenService:
    return TokenService(build_token_settings())


def get_notifier() -> NotificationGateway:
    return ProviderNotificationGateway()


def get_auth_service(
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    notifier: NotificationGateway = Depends(get_notifier),
) -> AuthService:
    return AuthService(UserStore(db), OtpService(db), tokens, notifier, config.BASE_URL)


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)


def bearer_token(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    if not token:
        raise Unauthenticated("No token provided")
    return token


def get_current_user(
    token: str = Depends(bearer_token),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    try:
        claims = tokens.verify(token, TokenType.ACCESS)
    except AuthenticationError as e:
        logger.warning("Authentication failed: %s", e.message)
        raise Unauthenticated(e.message)

    user = UserStore(db).get(claims.get("userId"))
    if not user:
        logger.warning("User not found with token: %s", claims.get("userId"))
        raise Unauthenticated("User not found")

    return user


def require_roles(*roles: str):
    allowed = frozenset(roles)

    def checker(user: User = Depends(get_current_user)):
        if user.role not in allowed:
            logger.warning("Access denied for user %s (role %s)", user.id, user.role)
            raise Forbidden()
        return user
    return checker
