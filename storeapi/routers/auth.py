import secrets
from contextlib import contextmanager
from html import escape

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError as PydanticValidationError

from storeapi.core import config
from storeapi.core.deps import get_auth_service, get_current_user
from storeapi.core.errors import AppError, AuthenticationError, ConfigurationError, ValidationError
from storeapi.logger import get_logger
from storeapi.models.auth_models import User
from storeapi.models.auth_schemas import (
    EmailOTPRequest, EmailOTPVerify,
    LoginBody, PasswordResetRequest,
    PhoneOTPRequest, PhoneOTPVerify,
    RefreshBody, ResetPasswordBody,
    SignupBody, UserOut,
)
from storeapi.services.auth_service import AuthService
from storeapi.services.oauth_service import get_provider

logger = get_logger(__name__)

router = APIRouter(tags=["Auth"])

OAUTH_STATE_COOKIE = "oauth_state"


@contextmanager
def reported_as_bad_request():
    """These routes answer every client-side failure with a plain 400."""
    try:
        yield
    except ConfigurationError:
        raise
    except AppError as e:
        e.status_code = 400
        raise


def user_payload(user: User) -> dict:
    return UserOut.model_validate(user).model_dump(by_alias=True, mode="json")


# ----------------- SIGNUP -----------------
@router.post("/signup", status_code=201)
def signup(body: SignupBody, auth: AuthService = Depends(get_auth_service)):
    with reported_as_bad_request():
        data = auth.register(body.name, body.email, body.password, body.phone_number)
    return {"success": True, "data": data}


# ----------------- LOGIN -----------------
@router.post("/login")
def login(body: LoginBody, auth: AuthService = Depends(get_auth_service)):
    tokens = auth.login(body.email, body.password)
    return {"success": True, **tokens}


@router.post("/refresh-token")
def refresh_token(body: RefreshBody, auth: AuthService = Depends(get_auth_service)):
    return {"success": True, "token": auth.refresh(body.refresh_token)}


# ----------------- ME -----------------
@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "data": {"user": user_payload(user)}}


# ----------------- EMAIL VERIFICATION -----------------
@router.get("/verify-email")
def verify_email(token: str = None, auth: AuthService = Depends(get_auth_service)):
    with reported_as_bad_request():
        auth.verify_email(token)
    return {"success": True, "message": "Email verified successfully"}


# ----------------- OTP -----------------
@router.post("/request-otp")
def request_otp(body: EmailOTPRequest, auth: AuthService = Depends(get_auth_service)):
    auth.request_email_otp(body.email)
    return {"success": True, "message": "OTP sent to email"}


@router.post("/verify-otp")
def verify_otp(body: EmailOTPVerify, auth: AuthService = Depends(get_auth_service)):
    auth.verify_email_otp(body.email, body.otp)
    return {"success": True, "message": "Email verified successfully"}


@router.post("/request-phone-otp")
def request_phone_otp(body: PhoneOTPRequest, auth: AuthService = Depends(get_auth_service)):
    auth.request_phone_otp(body.phone_number)
    return {"success": True, "message": "OTP sent to phone"}


@router.post("/verify-phone-otp")
def verify_phone_otp(body: PhoneOTPVerify, auth: AuthService = Depends(get_auth_service)):
    auth.verify_phone_otp(body.phone_number, body.otp)
    return {"success": True, "message": "Phone number verified successfully"}


# ----------------- PASSWORD RESET -----------------
@router.post("/request-password-reset")
def request_password_reset(body: PasswordResetRequest, auth: AuthService = Depends(get_auth_service)):
    with reported_as_bad_request():
        auth.request_password_reset(body.email)
    return {
        "success": True,
        "message": "If an account exists for this email, a reset link has been sent",
    }


RESET_FORM = """
<html>
  <head>
    <title>Reset Password</title>
    <style>
      body {{ font-family: Arial, sans-serif; max-width: 400px; margin: 40px auto; padding: 20px; }}
      div {{ margin-bottom: 15px; }}
      input {{ width: 100%; padding: 8px; margin-top: 5px; }}
      button {{ padding: 10px 15px; background-color: #007bff; color: white; border: none; border-radius: 4px; }}
    </style>
  </head>
  <body>
    <h2>Reset Your Password</h2>
    <form action="/api/auth/reset-password" method="POST">
      <input type="hidden" name="token" value="{token}" />
      <div><label>New Password:</label><input type="password" name="newPassword" required /></div>
      <div><label>Confirm New Password:</label><input type="password" name="confirmPassword" required /></div>
      <button type="submit">Reset Password</button>
    </form>
  </body>
</html>
"""

ERROR_PAGE = "<html><body><h2>Error</h2><p>{message}</p></body></html>"


@router.get("/reset-password", response_class=HTMLResponse)
def show_reset_form(token: str = None, auth: AuthService = Depends(get_auth_service)):
    try:
        auth.validate_reset_token(token)
    except (ValidationError, AuthenticationError) as e:
        logger.warning("Reset form refused: %s", e.message)
        return HTMLResponse(ERROR_PAGE.format(message=escape(e.message)), status_code=400)
    return HTMLResponse(RESET_FORM.format(token=escape(token, quote=True)))


@router.post("/reset-password")
async def reset_password(request: Request, auth: AuthService = Depends(get_auth_service)):
    with reported_as_bad_request():
        if request.headers.get("content-type", "").startswith("application/json"):
            try:
                raw = await request.json()
            except ValueError:
                raise ValidationError("Malformed JSON body")
        else:
            raw = dict(await request.form())

        try:
            body = ResetPasswordBody.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError(e.errors()[0]["msg"])

        if body.new_password != body.confirm_password:
            raise ValidationError("Passwords do not match")

        await run_in_threadpool(auth.reset_password, body.token, body.new_password)

    return {"success": True, "message": "Password updated successfully"}


# ----------------- SOCIAL LOGIN -----------------
@router.get("/failure")
def oauth_failure():
    return JSONResponse({"success": False, "message": "Authentication failed"}, status_code=401)


@router.get("/{provider}")
def oauth_start(provider: str):
    if provider not in ("google", "facebook"):
        raise ValidationError(f"Unsupported provider: {provider}")

    state = secrets.token_urlsafe(24)
    response = RedirectResponse(get_provider(provider).authorization_url(state))
    response.set_cookie(
        OAUTH_STATE_COOKIE, state, max_age=600, httponly=True, samesite="lax",
        secure=config.BASE_URL.startswith("https"),
    )
    return response


@router.get("/{provider}/callback")
def oauth_callback(
    provider: str,
    request: Request,
    code: str = None,
    state: str = None,
    error: str = None,
    auth: AuthService = Depends(get_auth_service),
):
    if provider not in ("google", "facebook"):
        raise ValidationError(f"Unsupported provider: {provider}")

    expected = request.cookies.get(OAUTH_STATE_COOKIE)
    if error or not code or not state or not expected or not secrets.compare_digest(state, expected):
        logger.warning("%s callback rejected (error=%s)", provider, error)
        return RedirectResponse("/api/auth/failure")

    profile = get_provider(provider).authenticate(code)
    user = auth.oauth_login(profile)
    logger.info("%s authentication successful for user %s", provider, user.id)

    response_body = {"success": True, **auth.issue_session(user), "data": {"user": user_payload(user)}}
    response = JSONResponse(response_body)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response
