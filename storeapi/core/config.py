import os
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Dict

from dotenv import load_dotenv

load_dotenv()

# -------- App --------
APP_ENV = os.getenv("APP_ENV", "production")
DEBUG = APP_ENV == "development"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# -------- Database --------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storeapi.db")

# -------- Base URL (links in emails) --------
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")

# -------- JWT --------
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret")
JWT_ALGO = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = 15
REFRESH_TOKEN_EXPIRE_DAYS = 7
RESET_TOKEN_EXPIRE_HOURS = 1
VERIFY_TOKEN_EXPIRE_HOURS = 24

# -------- Passwords --------
BCRYPT_ROUNDS = max(10, int(os.getenv("BCRYPT_ROUNDS", "12")))
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72

# -------- OTP --------
OTP_EXPIRE_MINUTES = min(15, max(5, int(os.getenv("OTP_EXPIRE_MINUTES", "10"))))
OTP_SWEEP_INTERVAL_SECONDS = int(os.getenv("OTP_SWEEP_INTERVAL_SECONDS", "300"))
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "+216")

# -------- Twilio --------
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")

# -------- SendGrid --------
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL")  # verified sender in sendgrid
SENDGRID_FROM_NAME = os.getenv("SENDGRID_FROM_NAME", "Store")

# -------- OAuth --------
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
FACEBOOK_CLIENT_ID = os.getenv("FACEBOOK_CLIENT_ID")
FACEBOOK_CLIENT_SECRET = os.getenv("FACEBOOK_CLIENT_SECRET")

# -------- Logging --------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    RESET = "reset"
    VERIFY = "verify"


@dataclass(frozen=True)
class TokenTypeConfig:
    secret: str
    ttl: timedelta


@dataclass(frozen=True)
class TokenSettings:
    """Signing secret and lifetime for every token type."""

    types: Dict[TokenType, TokenTypeConfig] = field(default_factory=dict)
    algorithm: str = JWT_ALGO

    def for_type(self, token_type: TokenType) -> TokenTypeConfig:
        return self.types[token_type]


def _secret_for(token_type: TokenType) -> str:
    # each type gets its own key even when only JWT_SECRET is configured
    explicit = os.getenv(f"JWT_{token_type.value.upper()}_SECRET")
    if explicit:
        return explicit
    return f"{JWT_SECRET}:{token_type.value}"


def build_token_settings() -> TokenSettings:
    return TokenSettings(
        types={
            TokenType.ACCESS: TokenTypeConfig(
                _secret_for(TokenType.ACCESS), timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
            ),
            TokenType.REFRESH: TokenTypeConfig(
                _secret_for(TokenType.REFRESH), timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
            ),
            TokenType.RESET: TokenTypeConfig(
                _secret_for(TokenType.RESET), timedelta(hours=RESET_TOKEN_EXPIRE_HOURS)
            ),
            TokenType.VERIFY: TokenTypeConfig(
                _secret_for(TokenType.VERIFY), timedelta(hours=VERIFY_TOKEN_EXPIRE_HOURS)
            ),
        }
    )
