"""Application errors.

Services raise these; the handlers registered in ``storeapi.main`` turn them
into ``{"success": false, "message": ...}`` responses with ``status_code``.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str = None, status_code: int = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


# -------- Taxonomy --------
class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication failed"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class DeliveryError(AppError):
    status_code = 500
    default_message = "Message delivery failed"


class ConfigurationError(AppError):
    """Programming error; clients only ever see a generic 500."""

    status_code = 500
    default_message = "Server misconfiguration"


# -------- Specific kinds --------
class EmailTaken(ConflictError):
    default_message = "Email already registered"


class PhoneTaken(ConflictError):
    default_message = "Phone number already registered"


class InvalidCredentials(AuthenticationError):
    default_message = "Invalid email or password"


class Unauthenticated(AuthenticationError):
    default_message = "Not authenticated"


class TokenExpired(AuthenticationError):
    default_message = "Token expired"


class TokenInvalid(AuthenticationError):
    default_message = "Invalid token"


class EmailNotVerified(AuthorizationError):
    default_message = "Please verify your email before logging in"


class Forbidden(AuthorizationError):
    default_message = "Access denied"


class UserNotFound(NotFoundError):
    default_message = "User not found"


class TokenMissing(ValidationError):
    default_message = "Token is missing"


class AlreadyVerified(ValidationError):
    default_message = "Email already verified"


class OtpInvalid(ValidationError):
    default_message = "Invalid OTP"


class OtpExpired(ValidationError):
    default_message = "OTP expired"


class DeliveryFailed(DeliveryError):
    pass
