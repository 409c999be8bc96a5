"""SQLAlchemy-backed credential store for user records.

Uniqueness (email, phone number, provider identity) is left to the database
constraints; callers translate ``IntegrityError`` into domain errors.
"""

from typing import List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from storeapi.core.errors import ValidationError
from storeapi.models.auth_models import OTPCode, PROVIDERS, ROLES, User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def mask_email(email: str) -> str:
    """``ann@x.com`` -> ``a***@x.com``, for log lines."""
    local, _, domain = (email or "").partition("@")
    return f"{local[:1]}***@{domain}" if domain else "***"


class UserStore:
    def __init__(self, db: Session):
        self.db = db

    # -------- lookups --------
    def get(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self.db.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(
            select(User).where(User.email == normalize_email(email))
        ).scalar_one_or_none()

    def find_by_phone(self, phone_number: str) -> Optional[User]:
        # a NULL comparison would match every user without a phone
        if not phone_number:
            return None
        return self.db.execute(
            select(User).where(User.phone_number == phone_number)
        ).scalar_one_or_none()

    def email_exists(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def find_for_identity(self, provider: str, provider_id: str, email: str) -> Optional[User]:
        """Account already bound to this identity, else the account owning the email."""
        rows = self.db.execute(
            select(User).where(
                or_(
                    (User.provider == provider) & (User.provider_id == provider_id),
                    User.email == normalize_email(email),
                )
            )
        ).scalars().all()
        for user in rows:
            if user.provider == provider and user.provider_id == provider_id:
                return user
        return rows[0] if rows else None

    def list_users(self, skip: int = 0, limit: int = 50) -> List[User]:
        return list(
            self.db.execute(
                select(User).order_by(User.created_at).offset(skip).limit(limit)
            ).scalars()
        )

    # -------- writes --------
    def create(
        self,
        *,
        name: str,
        email: str,
        password_hash: Optional[str] = None,
        phone_number: Optional[str] = None,
        provider: str = "local",
        provider_id: Optional[str] = None,
        is_verified: bool = False,
        role: str = "client",
    ) -> User:
        self._check_credentials(provider, password_hash, provider_id)
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}")

        user = User(
            name=name,
            email=normalize_email(email),
            password_hash=password_hash,
            phone_number=phone_number,
            provider=provider,
            provider_id=provider_id,
            is_verified=is_verified,
            role=role,
        )
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        return user

    def save(self, user: User) -> User:
        self._check_credentials(user.provider, user.password_hash, user.provider_id)
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        return user

    def set_password_hash(self, user: User, password_hash: str) -> User:
        if user.provider != "local":
            raise ValidationError(f"Password is managed by {user.provider}")
        user.password_hash = password_hash
        return self.save(user)

    def link_identity(self, user: User, provider: str, provider_id: str) -> User:
        user.provider = provider
        user.provider_id = provider_id
        user.password_hash = None
        # the provider vouches for the address
        user.is_verified = True
        return self.save(user)

    def delete(self, user: User) -> None:
        self.db.execute(
            delete(OTPCode)
            .where(OTPCode.user_id == user.id)
            .execution_options(synchronize_session=False)
        )
        self.db.delete(user)
        self._commit()

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def _check_credentials(provider: str, password_hash: Optional[str], provider_id: Optional[str]):
        if provider not in PROVIDERS:
            raise ValidationError(f"Unknown provider: {provider}")
        if provider == "local":
            if not password_hash:
                raise ValidationError("Local accounts require a password")
            if provider_id:
                raise ValidationError("Local accounts cannot carry a provider id")
        else:
            if password_hash:
                raise ValidationError("Social accounts cannot carry a password")
            if not provider_id:
                raise ValidationError("Social accounts require a provider id")
