import uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func

Base = declarative_base()

PROVIDERS = ("local", "google", "facebook")
ROLES = ("client", "admin", "delivery")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("provider", "provider_id", name="uq_users_provider_identity"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String, nullable=False)

    email = Column(String, unique=True, nullable=False)
    phone_number = Column(String, unique=True, nullable=True)

    # only local accounts carry a hash
    password_hash = Column(String, nullable=True)

    provider = Column(String, nullable=False, default="local")
    provider_id = Column(String, unique=True, nullable=True)

    is_verified = Column(Boolean, nullable=False, default=False)

    role = Column(String, nullable=False, default="client")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class OTPCode(Base):
    __tablename__ = "otp_codes"
    __table_args__ = (
        Index("ix_otp_codes_user_code", "user_id", "otp_code"),
        Index("ix_otp_codes_expires_at", "expires_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    channel = Column(String, nullable=False)  # email / phone
    otp_code = Column(String, nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
