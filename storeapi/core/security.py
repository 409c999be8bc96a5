import hashlib
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from storeapi.core.config import BCRYPT_ROUNDS, TokenSettings, TokenType
from storeapi.core.errors import ConfigurationError, TokenExpired, TokenInvalid

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS
)

REGISTERED_CLAIMS = ("exp", "iat", "type")


def _prehash(password: str) -> str:
    # bcrypt only reads the first 72 bytes
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    """Hash password using SHA256 pre-hashing to avoid bcrypt's 72-byte limit."""
    return pwd_context.hash(_prehash(password))


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Verify password against bcrypt hash. A missing hash never matches."""
    if not hashed:
        return False
    try:
        return pwd_context.verify(_prehash(password), hashed)
    except ValueError:
        # malformed hash in the store
        return False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies the signed, typed, time-limited tokens.

    Every token type is signed with its own secret and carries a ``type``
    claim, so a token of one type never verifies as another.
    """

    def __init__(self, settings: TokenSettings, clock: Callable[[], datetime] = _utcnow):
        self._settings = settings
        self._clock = clock

    def _config(self, token_type):
        try:
            token_type = TokenType(token_type)
            return token_type, self._settings.for_type(token_type)
        except (ValueError, KeyError):
            raise ConfigurationError(f"Invalid token type: {token_type!r}")

    def issue(self, payload: Dict[str, Any], token_type) -> str:
        token_type, config = self._config(token_type)
        if not payload or not payload.get("userId"):
            raise ConfigurationError("Token payload must carry a userId")

        now = self._clock()
        claims = dict(payload)
        claims.update(
            {
                "type": token_type.value,
                "iat": int(now.timestamp()),
                "exp": int((now + config.ttl).timestamp()),
            }
        )
        return jwt.encode(claims, config.secret, algorithm=self._settings.algorithm)

    def verify(self, token: str, token_type) -> Dict[str, Any]:
        token_type, config = self._config(token_type)
        if not token:
            raise TokenInvalid()

        try:
            claims = jwt.decode(token, config.secret, algorithms=[self._settings.algorithm])
        except ExpiredSignatureError:
            raise TokenExpired()
        except JWTError:
            raise TokenInvalid()

        if claims.get("type") != token_type.value:
            raise TokenInvalid("Invalid token type")

        return {k: v for k, v in claims.items() if k not in REGISTERED_CLAIMS}
