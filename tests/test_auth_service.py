"""Unit tests for AuthService against an in-memory store and a recording gateway."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from storeapi.core.config import TokenType
from storeapi.core.errors import (
    AlreadyVerified,
    DeliveryFailed,
    EmailNotVerified,
    EmailTaken,
    InvalidCredentials,
    OtpInvalid,
    PhoneTaken,
    TokenExpired,
    TokenInvalid,
    TokenMissing,
    UserNotFound,
    ValidationError,
)
from storeapi.core.security import TokenService, verify_password
from storeapi.models.auth_models import OTPCode, User
from storeapi.services.oauth_service import SocialProfile
from storeapi.services.user_store import mask_email


def register_ann(auth_service, **overrides):
    data = {"name": "Ann", "email": "ann@x.com", "password": "Secr3t!", "phone_number": "+21612345678"}
    data.update(overrides)
    return auth_service.register(**data)


def latest_otp(db, user_id):
    return db.query(OTPCode).filter(OTPCode.user_id == user_id).one().otp_code


class TestRegister:
    def test_register_creates_unverified_local_user(self, auth_service, user_store, notifier):
        result = register_ann(auth_service)

        user = user_store.get(result["id"])
        assert result == {"id": user.id, "email": "ann@x.com"}
        assert user.provider == "local"
        assert user.is_verified is False
        assert user.role == "client"
        assert len(notifier.emails) == 1
        assert notifier.emails[0]["to"] == "ann@x.com"

    def test_password_is_hashed(self, auth_service, user_store):
        result = register_ann(auth_service)

        user = user_store.get(result["id"])
        assert user.password_hash != "Secr3t!"
        assert verify_password("Secr3t!", user.password_hash)

    def test_email_is_normalized(self, auth_service):
        result = register_ann(auth_service, email="  Ann@X.COM ")
        assert result["email"] == "ann@x.com"

    def test_verification_link_carries_verify_token(self, auth_service, notifier, token_service):
        result = register_ann(auth_service)

        html = notifier.emails[0]["html"]
        assert "http://testserver/api/auth/verify-email?token=" in html
        claims = token_service.verify(notifier.last_token(), TokenType.VERIFY)
        assert claims == {"userId": result["id"]}

    def test_duplicate_email_is_rejected(self, auth_service, db):
        register_ann(auth_service)

        with pytest.raises(EmailTaken):
            register_ann(auth_service, phone_number=None)
        assert db.query(User).count() == 1

    def test_duplicate_phone_is_rejected(self, auth_service):
        register_ann(auth_service)

        with pytest.raises(PhoneTaken):
            register_ann(auth_service, email="other@x.com")

    def test_invalid_phone_is_rejected(self, auth_service):
        with pytest.raises(ValidationError):
            register_ann(auth_service, phone_number="12ab")

    def test_store_constraint_race_maps_to_email_taken(self, auth_service, user_store, monkeypatch):
        register_ann(auth_service)
        # the pre-check misses the concurrent insert; the unique index catches it
        monkeypatch.setattr(user_store, "email_exists", lambda email: False)
        real_create = user_store.create

        def racing_create(**kwargs):
            try:
                return real_create(**kwargs)
            finally:
                monkeypatch.undo()

        monkeypatch.setattr(user_store, "create", racing_create)

        with pytest.raises(EmailTaken):
            register_ann(auth_service, phone_number=None)

    def test_delivery_failure_rolls_back_user(self, auth_service, notifier, db):
        notifier.fail = True

        with pytest.raises(DeliveryFailed):
            register_ann(auth_service)

        assert db.query(User).filter(User.email == "ann@x.com").count() == 0

        notifier.fail = False
        assert register_ann(auth_service)["email"] == "ann@x.com"


class TestLogin:
    def test_unverified_user_cannot_login(self, auth_service):
        register_ann(auth_service)

        with pytest.raises(EmailNotVerified):
            auth_service.login("ann@x.com", "Secr3t!")

    def test_verified_user_gets_tokens(self, auth_service, user_store, token_service):
        result = register_ann(auth_service)
        user = user_store.get(result["id"])
        user.is_verified = True
        user_store.save(user)

        tokens = auth_service.login("ANN@x.com", "Secr3t!")

        assert token_service.verify(tokens["token"], TokenType.ACCESS) == {"userId": user.id}
        assert token_service.verify(tokens["refreshToken"], TokenType.REFRESH) == {"userId": user.id}

    def test_unknown_email_and_wrong_password_look_alike(self, auth_service):
        register_ann(auth_service)

        with pytest.raises(InvalidCredentials) as unknown:
            auth_service.login("nobody@x.com", "Secr3t!")
        with pytest.raises(InvalidCredentials) as wrong:
            auth_service.login("ann@x.com", "wrong-password")

        assert unknown.value.message == wrong.value.message

    def test_wrong_password_is_checked_before_verification(self, auth_service):
        register_ann(auth_service)

        with pytest.raises(InvalidCredentials):
            auth_service.login("ann@x.com", "wrong-password")

    def test_social_user_is_told_which_provider(self, auth_service):
        auth_service.oauth_login(SocialProfile("google", "g-1", "gina@x.com", "Gina"))

        with pytest.raises(InvalidCredentials, match="google"):
            auth_service.login("gina@x.com", "anything")

    def test_refresh_mints_new_access_token(self, auth_service, user_store, token_service):
        user = auth_service.oauth_login(SocialProfile("google", "g-1", "gina@x.com", "Gina"))
        session = auth_service.issue_session(user)

        access = auth_service.refresh(session["refreshToken"])

        assert token_service.verify(access, TokenType.ACCESS) == {"userId": user.id}
        with pytest.raises(TokenInvalid):
            auth_service.refresh(session["token"])


class TestPasswordReset:
    def test_unknown_email_is_silent(self, auth_service, notifier):
        assert auth_service.request_password_reset("unknown@x.com") is None
        assert notifier.emails == []

    def test_known_email_gets_reset_link(self, auth_service, notifier, token_service):
        result = register_ann(auth_service)
        notifier.emails.clear()

        auth_service.request_password_reset("ann@x.com")

        assert notifier.emails[0]["subject"] == "Password Reset Request"
        assert "/api/auth/reset-password?token=" in notifier.emails[0]["html"]
        assert token_service.verify(notifier.last_token(), TokenType.RESET) == {"userId": result["id"]}

    def test_delivery_failure_surfaces(self, auth_service, notifier):
        register_ann(auth_service)
        notifier.fail = True

        with pytest.raises(DeliveryFailed):
            auth_service.request_password_reset("ann@x.com")

    def test_reset_changes_password(self, auth_service, user_store, notifier):
        result = register_ann(auth_service)
        auth_service.request_password_reset("ann@x.com")

        auth_service.reset_password(notifier.last_token(), "N3wPassword")

        user = user_store.get(result["id"])
        assert verify_password("N3wPassword", user.password_hash)
        assert not verify_password("Secr3t!", user.password_hash)

    def test_missing_token(self, auth_service):
        with pytest.raises(TokenMissing):
            auth_service.reset_password(None, "N3wPassword")

    def test_access_token_cannot_reset(self, auth_service, token_service):
        result = register_ann(auth_service)
        access = token_service.issue({"userId": result["id"]}, TokenType.ACCESS)

        with pytest.raises(TokenInvalid):
            auth_service.reset_password(access, "N3wPassword")

    def test_expired_reset_token(self, auth_service, make_token_settings):
        result = register_ann(auth_service)
        settings = make_token_settings()
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        stale = TokenService(settings, clock=lambda: past).issue({"userId": result["id"]}, TokenType.RESET)

        with pytest.raises(TokenExpired):
            auth_service.reset_password(stale, "N3wPassword")

    def test_deleted_user(self, auth_service, token_service):
        token = token_service.issue({"userId": "gone"}, TokenType.RESET)

        with pytest.raises(UserNotFound):
            auth_service.reset_password(token, "N3wPassword")


class TestVerifyEmail:
    def test_verify_marks_user_verified(self, auth_service, user_store, notifier):
        result = register_ann(auth_service)

        auth_service.verify_email(notifier.last_token())

        assert user_store.get(result["id"]).is_verified is True

    def test_second_verification_fails(self, auth_service, notifier):
        register_ann(auth_service)
        token = notifier.last_token()
        auth_service.verify_email(token)

        with pytest.raises(AlreadyVerified):
            auth_service.verify_email(token)

    def test_unknown_user(self, auth_service, token_service):
        with pytest.raises(UserNotFound):
            auth_service.verify_email(token_service.issue({"userId": "gone"}, TokenType.VERIFY))

    def test_garbage_token(self, auth_service):
        with pytest.raises(TokenInvalid):
            auth_service.verify_email("garbage")


class TestOtpFlows:
    def test_email_otp_verifies_user(self, auth_service, user_store, notifier, db):
        result = register_ann(auth_service)

        auth_service.request_email_otp("ann@x.com")
        code = latest_otp(db, result["id"])
        assert code in notifier.emails[-1]["html"]

        auth_service.verify_email_otp("ann@x.com", code)

        assert user_store.get(result["id"]).is_verified is True
        with pytest.raises(OtpInvalid):
            auth_service.verify_email_otp("ann@x.com", code)

    def test_phone_otp_verifies_user(self, auth_service, user_store, notifier, db):
        result = register_ann(auth_service)

        auth_service.request_phone_otp("+216 12 345 678")
        code = latest_otp(db, result["id"])
        assert notifier.sms[-1]["to"] == "+21612345678"
        assert code in notifier.sms[-1]["body"]

        auth_service.verify_phone_otp("+21612345678", code)

        assert user_store.get(result["id"]).is_verified is True

    def test_email_code_not_accepted_for_phone(self, auth_service, db):
        result = register_ann(auth_service)
        auth_service.request_email_otp("ann@x.com")

        with pytest.raises(OtpInvalid):
            auth_service.verify_phone_otp("+21612345678", latest_otp(db, result["id"]))

    def test_unknown_email_or_phone(self, auth_service):
        with pytest.raises(UserNotFound):
            auth_service.request_email_otp("nobody@x.com")
        with pytest.raises(UserNotFound):
            auth_service.request_phone_otp("+21699999999")
        with pytest.raises(UserNotFound):
            auth_service.verify_email_otp("nobody@x.com", "123456")

    @pytest.mark.parametrize("phone", ["", "   ", "()", "abc"])
    def test_blank_phone_never_matches_phoneless_user(self, auth_service, user_store, notifier, db, phone):
        result = register_ann(auth_service, phone_number=None)

        with pytest.raises(UserNotFound):
            auth_service.request_phone_otp(phone)
        assert notifier.sms == []
        assert db.query(OTPCode).count() == 0

        auth_service.request_email_otp("ann@x.com")
        with pytest.raises(UserNotFound):
            auth_service.verify_phone_otp(phone, latest_otp(db, result["id"]))
        assert user_store.get(result["id"]).is_verified is False

    def test_blank_phone_with_several_phoneless_users(self, auth_service):
        register_ann(auth_service, phone_number=None)
        register_ann(auth_service, email="bob@x.com", phone_number=None)

        with pytest.raises(UserNotFound):
            auth_service.request_phone_otp("")

    def test_otp_delivery_failure(self, auth_service, notifier):
        register_ann(auth_service)
        notifier.fail = True

        with pytest.raises(DeliveryFailed):
            auth_service.request_phone_otp("+21612345678")


class TestOAuthLogin:
    def test_new_identity_creates_verified_user(self, auth_service, db):
        user = auth_service.oauth_login(SocialProfile("facebook", "fb-1", "fay@x.com", "Fay"))

        assert user.provider == "facebook"
        assert user.provider_id == "fb-1"
        assert user.is_verified is True
        assert user.password_hash is None
        assert db.query(User).count() == 1

    def test_existing_local_account_is_linked(self, auth_service, db):
        result = register_ann(auth_service)

        user = auth_service.oauth_login(SocialProfile("google", "g-42", "ann@x.com", "Ann G."))

        assert user.id == result["id"]
        assert user.provider == "google"
        assert user.provider_id == "g-42"
        assert user.password_hash is None
        assert user.is_verified is True
        assert db.query(User).count() == 1

    def test_returning_identity_resolves_same_user(self, auth_service, db):
        first = auth_service.oauth_login(SocialProfile("google", "g-1", "gina@x.com", "Gina"))
        again = auth_service.oauth_login(SocialProfile("google", "g-1", "gina@x.com", "Gina"))

        assert first.id == again.id
        assert db.query(User).count() == 1

    def test_profile_without_email(self, auth_service):
        with pytest.raises(ValidationError):
            auth_service.oauth_login(SocialProfile("facebook", "fb-9", None, "No Mail"))


class TestUserStoreInvariants:
    def test_local_user_requires_password(self, user_store):
        with pytest.raises(ValidationError):
            user_store.create(name="X", email="x@x.com")

    def test_social_user_cannot_have_password(self, user_store):
        with pytest.raises(ValidationError):
            user_store.create(
                name="X", email="x@x.com", provider="google", provider_id="g", password_hash="h"
            )

    def test_mask_email_hides_the_local_part(self):
        assert mask_email("ann@x.com") == "a***@x.com"
        assert mask_email("not-an-email") == "***"
        assert mask_email(None) == "***"

    def test_missing_phone_lookup_finds_nobody(self, user_store):
        user_store.create(name="X", email="x@x.com", provider="google", provider_id="g1")

        assert user_store.find_by_phone(None) is None
        assert user_store.find_by_phone("") is None

    def test_duplicate_email_violates_unique_index(self, user_store):
        user_store.create(name="X", email="x@x.com", provider="google", provider_id="g1")

        with pytest.raises(IntegrityError):
            user_store.create(name="Y", email="x@x.com", provider="google", provider_id="g2")
