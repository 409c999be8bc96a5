"""Unit tests for OtpService."""

from datetime import datetime, timedelta, timezone

import pytest

from storeapi.core.errors import OtpExpired, OtpInvalid
from storeapi.core.security import hash_password
from storeapi.models.auth_models import OTPCode
from storeapi.services.otp_service import OtpService, generate_otp


@pytest.fixture
def user(user_store):
    return user_store.create(name="Ann", email="ann@x.com", password_hash=hash_password("Secr3t!"))


def shifted_clock(delta: timedelta):
    return lambda: datetime.now(timezone.utc) + delta


class TestGenerate:
    def test_six_digit_numeric(self):
        for _ in range(200):
            code = generate_otp()
            assert len(code) == 6
            assert code.isdigit()

    def test_codes_vary(self):
        assert len({generate_otp() for _ in range(50)}) > 1


class TestVerifyAndConsume:
    def test_valid_code_is_consumed_once(self, db, otp_service, user):
        otp_service.save(user.id, "123456")

        otp_service.verify_and_consume(user.id, "123456")

        with pytest.raises(OtpInvalid):
            otp_service.verify_and_consume(user.id, "123456")
        assert db.query(OTPCode).count() == 0

    def test_wrong_code(self, db, otp_service, user):
        otp_service.save(user.id, "123456")

        with pytest.raises(OtpInvalid):
            otp_service.verify_and_consume(user.id, "654321")
        # the outstanding code survives a wrong guess
        assert db.query(OTPCode).count() == 1

    def test_other_users_code_is_invalid(self, otp_service, user, user_store):
        other = user_store.create(name="Bob", email="bob@x.com", password_hash=hash_password("pw1234"))
        otp_service.save(other.id, "111111")

        with pytest.raises(OtpInvalid):
            otp_service.verify_and_consume(user.id, "111111")

    def test_expired_code_is_reported_and_deleted(self, db, user):
        OtpService(db, clock=shifted_clock(timedelta(minutes=-11))).save(user.id, "123456")
        service = OtpService(db)

        with pytest.raises(OtpExpired):
            service.verify_and_consume(user.id, "123456")

        assert db.query(OTPCode).count() == 0
        with pytest.raises(OtpInvalid):
            service.verify_and_consume(user.id, "123456")

    def test_channel_must_match_when_given(self, otp_service, user):
        otp_service.save(user.id, "123456", channel="phone")

        with pytest.raises(OtpInvalid):
            otp_service.verify_and_consume(user.id, "123456", channel="email")
        otp_service.verify_and_consume(user.id, "123456", channel="phone")


class TestSave:
    def test_expiry_is_ten_minutes(self, db, otp_service, user):
        before = datetime.now(timezone.utc)
        row = otp_service.save(user.id, "123456")
        db.refresh(row)

        expires_at = row.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        assert timedelta(minutes=9) < expires_at - before <= timedelta(minutes=10, seconds=5)

    def test_new_code_replaces_outstanding_one(self, db, otp_service, user):
        otp_service.save(user.id, "111111")
        otp_service.save(user.id, "222222")

        assert db.query(OTPCode).count() == 1
        with pytest.raises(OtpInvalid):
            otp_service.verify_and_consume(user.id, "111111")
        otp_service.verify_and_consume(user.id, "222222")


class TestSweep:
    def test_removes_only_expired(self, db, user, user_store):
        other = user_store.create(name="Bob", email="bob@x.com", password_hash=hash_password("pw1234"))
        OtpService(db, clock=shifted_clock(timedelta(hours=-1))).save(user.id, "111111")
        OtpService(db).save(other.id, "222222")

        service = OtpService(db)
        assert service.sweep_expired() == 1
        assert service.sweep_expired() == 0

        service.verify_and_consume(other.id, "222222")
