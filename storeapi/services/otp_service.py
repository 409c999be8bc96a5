"""One-time numeric codes for out-of-band email/phone verification.

Consumption is a conditional ``DELETE`` whose rowcount decides the outcome,
so two concurrent requests can never both spend the same code.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from storeapi.core.config import OTP_EXPIRE_MINUTES
from storeapi.core.errors import OtpExpired, OtpInvalid
from storeapi.logger import get_logger
from storeapi.models.auth_models import OTPCode

logger = get_logger(__name__)

OTP_LENGTH = 6


def generate_otp() -> str:
    return str(secrets.randbelow(10 ** OTP_LENGTH)).zfill(OTP_LENGTH)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OtpService:
    def __init__(
        self,
        db: Session,
        ttl: timedelta = timedelta(minutes=OTP_EXPIRE_MINUTES),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.ttl = ttl
        self._clock = clock

    def generate(self) -> str:
        return generate_otp()

    def save(self, user_id: str, code: str, channel: str = "email") -> OTPCode:
        # a new code replaces whatever the user still had outstanding
        replaced = self._delete_where(OTPCode.user_id == user_id)
        row = OTPCode(
            user_id=user_id,
            channel=channel,
            otp_code=code,
            expires_at=self._clock() + self.ttl,
        )
        self.db.add(row)
        self._commit()
        if replaced:
            logger.info("Replaced %s outstanding OTP(s) for user %s", replaced, user_id)
        return row

    def verify_and_consume(self, user_id: str, code: str, channel: Optional[str] = None) -> None:
        now = self._clock()
        match = [OTPCode.user_id == user_id, OTPCode.otp_code == code]
        if channel:
            match.append(OTPCode.channel == channel)

        if self._delete_where(*match, OTPCode.expires_at > now):
            self._commit()
            return

        expired = self._delete_where(*match, OTPCode.expires_at <= now)
        self._commit()
        if expired:
            logger.warning("Expired OTP presented for user %s", user_id)
            raise OtpExpired()

        logger.warning("Invalid OTP presented for user %s", user_id)
        raise OtpInvalid()

    def sweep_expired(self) -> int:
        removed = self._delete_where(OTPCode.expires_at <= self._clock())
        self._commit()
        return removed

    def _delete_where(self, *criteria) -> int:
        result = self.db.execute(
            delete(OTPCode).where(*criteria).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
