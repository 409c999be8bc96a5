"""Registration, login, password reset, email/phone verification and social login.

Every operation takes its collaborators from the ``AuthService`` instance:
the user store, the OTP service, the token service and a notification
gateway. Passwords are hashed here, explicitly, before anything reaches the
store.
"""

from typing import Dict, Optional
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError

from storeapi.core.config import TokenType
from storeapi.core.errors import (
    AlreadyVerified,
    DeliveryError,
    DeliveryFailed,
    EmailNotVerified,
    EmailTaken,
    InvalidCredentials,
    PhoneTaken,
    TokenMissing,
    UserNotFound,
    ValidationError,
)
from storeapi.core.security import TokenService, hash_password, verify_password
from storeapi.core.utils_phone import is_valid_phone, normalize_phone
from storeapi.logger import get_logger
from storeapi.models.auth_models import User
from storeapi.services import email_templates
from storeapi.services.notification_service import NotificationGateway
from storeapi.services.oauth_service import SocialProfile
from storeapi.services.otp_service import OtpService
from storeapi.services.user_store import UserStore, mask_email, normalize_email

logger = get_logger(__name__)

API_PREFIX = "/api/auth"


class AuthService:
    def __init__(
        self,
        users: UserStore,
        otps: OtpService,
        tokens: TokenService,
        notifier: NotificationGateway,
        base_url: str,
    ):
        self.users = users
        self.otps = otps
        self.tokens = tokens
        self.notifier = notifier
        self.base_url = base_url.rstrip("/")

    def _link(self, path: str, token: str) -> str:
        return f"{self.base_url}{API_PREFIX}{path}?{urlencode({'token': token})}"

    # ----------------- REGISTER -----------------
    def register(self, name: str, email: str, password: str, phone_number: Optional[str] = None) -> Dict[str, str]:
        email = normalize_email(email)
        logger.info("Registering a new user")

        if self.users.email_exists(email):
            logger.warning("Email already registered: %s", mask_email(email))
            raise EmailTaken()

        phone_number = normalize_phone(phone_number)
        if phone_number is not None:
            if not is_valid_phone(phone_number):
                raise ValidationError("Invalid phone number")
            if self.users.find_by_phone(phone_number):
                raise PhoneTaken()

        try:
            user = self.users.create(
                name=name,
                email=email,
                password_hash=hash_password(password),
                phone_number=phone_number,
            )
        except IntegrityError:
            # lost a race with a concurrent signup; the unique index decided
            if self.users.email_exists(email):
                raise EmailTaken()
            raise PhoneTaken()

        logger.info("User created with ID: %s", user.id)

        link = self._link("/verify-email", self.tokens.issue({"userId": user.id}, TokenType.VERIFY))
        try:
            self.notifier.send_email(email, "Verify Your Email", email_templates.verification_email(name, link))
        except DeliveryError as e:
            logger.error("Error sending verification email: %s", e.message)
            self.users.delete(user)
            raise DeliveryFailed("Error sending verification email")

        logger.info("Verification email sent to user %s", user.id)
        return {"id": user.id, "email": user.email}

    # ----------------- LOGIN -----------------
    def login(self, email: str, password: str) -> Dict[str, str]:
        email = normalize_email(email)
        logger.info("Login attempt for %s", mask_email(email))

        user = self.users.find_by_email(email)
        if not user:
            logger.warning("Login for unknown email %s", mask_email(email))
            raise InvalidCredentials()

        if user.provider != "local":
            logger.warning("Password login attempted on %s account %s", user.provider, user.id)
            raise InvalidCredentials(f"Please use {user.provider} login")

        if not verify_password(password, user.password_hash):
            logger.warning("Invalid password attempt for user %s", user.id)
            raise InvalidCredentials()

        if not user.is_verified:
            logger.warning("Unverified email attempt for user %s", user.id)
            raise EmailNotVerified()

        return self.issue_session(user)

    def issue_session(self, user: User) -> Dict[str, str]:
        return {
            "token": self.tokens.issue({"userId": user.id}, TokenType.ACCESS),
            "refreshToken": self.tokens.issue({"userId": user.id}, TokenType.REFRESH),
        }

    def refresh(self, refresh_token: str) -> str:
        if not refresh_token:
            raise TokenMissing()
        claims = self.tokens.verify(refresh_token, TokenType.REFRESH)
        user = self.users.get(claims["userId"])
        if not user:
            raise UserNotFound()
        return self.tokens.issue({"userId": user.id}, TokenType.ACCESS)

    # ----------------- PASSWORD RESET -----------------
    def request_password_reset(self, email: str) -> None:
        email = normalize_email(email)
        logger.info("Password reset requested for %s", mask_email(email))

        user = self.users.find_by_email(email)
        if not user:
            # same outcome as a known address
            logger.warning("Password reset for unknown email %s", mask_email(email))
            return

        link = self._link("/reset-password", self.tokens.issue({"userId": user.id}, TokenType.RESET))
        try:
            self.notifier.send_email(
                user.email, "Password Reset Request", email_templates.password_reset_email(user.name, link)
            )
        except DeliveryError as e:
            logger.error("Error sending password reset email: %s", e.message)
            raise DeliveryFailed("Error sending password reset email")

        logger.info("Password reset email sent to user %s", user.id)

    def validate_reset_token(self, token: Optional[str]) -> Dict:
        if not token:
            raise TokenMissing()
        return self.tokens.verify(token, TokenType.RESET)

    def reset_password(self, token: Optional[str], new_password: str) -> None:
        claims = self.validate_reset_token(token)

        user = self.users.get(claims.get("userId"))
        if not user:
            logger.warning("Password reset for missing user %s", claims.get("userId"))
            raise UserNotFound()

        self.users.set_password_hash(user, hash_password(new_password))
        logger.info("Password reset for user %s", user.id)

    # ----------------- EMAIL VERIFICATION -----------------
    def verify_email(self, token: Optional[str]) -> None:
        if not token:
            raise TokenMissing()
        claims = self.tokens.verify(token, TokenType.VERIFY)

        user = self.users.get(claims.get("userId"))
        if not user:
            raise UserNotFound()
        if user.is_verified:
            raise AlreadyVerified()

        user.is_verified = True
        self.users.save(user)
        logger.info("Email verified for user %s", user.id)

    # ----------------- OTP -----------------
    def request_email_otp(self, email: str) -> None:
        user = self.users.find_by_email(email)
        if not user:
            raise UserNotFound()

        otp = self.otps.generate()
        self.otps.save(user.id, otp, channel="email")
        try:
            self.notifier.send_email(user.email, "Your OTP Code", email_templates.otp_email(otp))
        except DeliveryError as e:
            logger.error("Error sending email OTP: %s", e.message)
            raise DeliveryFailed("Error sending OTP email")

        logger.info("Email OTP sent to user %s", user.id)

    def verify_email_otp(self, email: str, otp: str) -> None:
        user = self.users.find_by_email(email)
        if not user:
            raise UserNotFound()

        self.otps.verify_and_consume(user.id, otp.strip(), channel="email")
        self._mark_verified(user)
        logger.info("Email verified by OTP for user %s", user.id)

    def _user_for_phone(self, phone_number: Optional[str]) -> User:
        phone_number = normalize_phone(phone_number)
        if not phone_number or not is_valid_phone(phone_number):
            raise UserNotFound()
        user = self.users.find_by_phone(phone_number)
        if not user:
            raise UserNotFound()
        return user

    def request_phone_otp(self, phone_number: str) -> None:
        user = self._user_for_phone(phone_number)

        otp = self.otps.generate()
        self.otps.save(user.id, otp, channel="phone")
        try:
            self.notifier.send_sms(user.phone_number, email_templates.otp_sms(otp))
        except DeliveryError as e:
            logger.error("Error sending SMS OTP: %s", e.message)
            raise DeliveryFailed("Error sending OTP SMS")

        logger.info("SMS OTP sent to user %s", user.id)

    def verify_phone_otp(self, phone_number: str, otp: str) -> None:
        user = self._user_for_phone(phone_number)

        self.otps.verify_and_consume(user.id, otp.strip(), channel="phone")
        self._mark_verified(user)
        logger.info("Phone number verified for user %s", user.id)

    def _mark_verified(self, user: User) -> None:
        if not user.is_verified:
            user.is_verified = True
            self.users.save(user)

    def sweep_otps(self) -> int:
        removed = self.otps.sweep_expired()
        logger.info("Expired OTPs cleaned up: %s", removed)
        return removed

    # ----------------- SOCIAL LOGIN -----------------
    def oauth_login(self, profile: SocialProfile) -> User:
        if not profile.email:
            raise ValidationError(f"{profile.provider} account has no email address")

        user = self.users.find_for_identity(profile.provider, profile.provider_id, profile.email)

        if user is None:
            try:
                user = self.users.create(
                    name=profile.display_name or profile.email.split("@")[0],
                    email=profile.email,
                    provider=profile.provider,
                    provider_id=profile.provider_id,
                    is_verified=True,
                )
            except IntegrityError:
                raise EmailTaken()
            logger.info("Created %s user %s", profile.provider, user.id)
        elif not user.provider_id:
            user = self.users.link_identity(user, profile.provider, profile.provider_id)
            logger.info("Linked %s identity to user %s", profile.provider, user.id)

        return user
