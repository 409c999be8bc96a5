"""Shared fixtures: in-memory SQLite, a recording notification gateway and an API client."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("BCRYPT_ROUNDS", "10")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BASE_URL", "http://testserver")

from datetime import timedelta  # noqa: E402
import re  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from storeapi.core.config import TokenSettings, TokenType, TokenTypeConfig  # noqa: E402
from storeapi.core.deps import get_db, get_notifier, get_token_service  # noqa: E402
from storeapi.core.errors import DeliveryError  # noqa: E402
from storeapi.core.security import TokenService  # noqa: E402
from storeapi.database import init_db  # noqa: E402
from storeapi.main import app  # noqa: E402
from storeapi.services.auth_service import AuthService  # noqa: E402
from storeapi.services.otp_service import OtpService  # noqa: E402
from storeapi.services.user_store import UserStore  # noqa: E402

TOKEN_RE = re.compile(r"token=([A-Za-z0-9_\-\.]+)")


class RecordingNotifier:
    """Notification gateway that keeps messages in memory."""

    def __init__(self):
        self.emails = []
        self.sms = []
        self.fail = False

    def send_email(self, to, subject, html):
        if self.fail:
            raise DeliveryError("Email provider down")
        self.emails.append({"to": to, "subject": subject, "html": html})

    def send_sms(self, to, body):
        if self.fail:
            raise DeliveryError("SMS provider down")
        self.sms.append({"to": to, "body": body})

    def last_token(self):
        match = TOKEN_RE.search(self.emails[-1]["html"])
        assert match, "no token link in the last email"
        return match.group(1)


def make_token_settings(**ttl_overrides) -> TokenSettings:
    ttls = {
        TokenType.ACCESS: timedelta(minutes=15),
        TokenType.REFRESH: timedelta(days=7),
        TokenType.RESET: timedelta(hours=1),
        TokenType.VERIFY: timedelta(hours=24),
    }
    for name, ttl in ttl_overrides.items():
        ttls[TokenType(name)] = ttl
    return TokenSettings(
        types={t: TokenTypeConfig(f"secret-{t.value}", ttl) for t, ttl in ttls.items()}
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(make_token_settings())


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def user_store(db) -> UserStore:
    return UserStore(db)


@pytest.fixture
def otp_service(db) -> OtpService:
    return OtpService(db)


@pytest.fixture
def auth_service(user_store, otp_service, token_service, notifier) -> AuthService:
    return AuthService(user_store, otp_service, token_service, notifier, "http://testserver")


@pytest.fixture
def client(session_factory, token_service, notifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_token_service] = lambda: token_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def registered_user_data() -> dict:
    return {
        "name": "Ann",
        "email": "ann@x.com",
        "password": "Secr3t!",
        "phoneNumber": "+21612345678",
    }


@pytest.fixture(name="make_token_settings")
def make_token_settings_fixture():
    return make_token_settings
