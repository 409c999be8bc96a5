from html import escape

from storeapi.core.config import OTP_EXPIRE_MINUTES

_BUTTON_STYLE = (
    "background-color:#4CAF50;color:white;padding:12px 25px;"
    "text-decoration:none;border-radius:4px;display:inline-block"
)


def _link_email(title: str, user_name: str, intro: str, link: str, label: str, footer: str) -> str:
    link = escape(link, quote=True)
    return f"""
    <div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px">
      <h2 style="color:#333">{title}</h2>
      <p>Hello {escape(user_name)},</p>
      <p>{intro}</p>
      <div style="text-align:center;margin:30px 0">
        <a href="{link}" style="{_BUTTON_STYLE}">{label}</a>
      </div>
      <p>If the button doesn't work, copy and paste this link into your browser:</p>
      <p style="word-break:break-all;color:#666">{link}</p>
      <p>{footer}</p>
    </div>
    """


def verification_email(user_name: str, link: str) -> str:
    return _link_email(
        "Welcome!",
        user_name,
        "Thank you for registering. Please verify your email address by clicking the button below:",
        link,
        "Verify Email Address",
        "This verification link will expire in 24 hours.",
    )


def password_reset_email(user_name: str, link: str) -> str:
    return _link_email(
        "Password Reset Request",
        user_name,
        "We received a request to reset your password. Click the button below to choose a new one:",
        link,
        "Reset Password",
        "This reset link will expire in 1 hour. If you didn't request it, ignore this email.",
    )


def otp_email(otp: str) -> str:
    return f"""
    <div style="font-family:Arial,sans-serif;padding:16px">
      <h2>Email Verification</h2>
      <p>Your OTP is:</p>
      <div style="font-size:28px;font-weight:800;letter-spacing:4px">
        {otp}
      </div>
      <p>This OTP expires in <b>{OTP_EXPIRE_MINUTES} minutes</b>.</p>
    </div>
    """


def otp_sms(otp: str) -> str:
    return f"Your verification code is {otp}. It expires in {OTP_EXPIRE_MINUTES} minutes."
