import re

import requests

from storeapi.core import config
from storeapi.core.errors import DeliveryError
from storeapi.logger import get_logger
from storeapi.services.user_store import mask_email

logger = get_logger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


def _plain_text(html: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"<[^>]+>", " ", html)).strip()


def send_email(to_email: str, subject: str, html: str):

    if not config.SENDGRID_API_KEY or not config.SENDGRID_FROM_EMAIL:
        logger.error("SendGrid env missing, cannot email %s", mask_email(to_email))
        raise DeliveryError("Email provider is not configured")

    payload = {
        "personalizations": [
            {
                "to": [{"email": to_email}],
                "subject": subject
            }
        ],
        "from": {"email": config.SENDGRID_FROM_EMAIL, "name": config.SENDGRID_FROM_NAME},
        "content": [
            {"type": "text/plain", "value": _plain_text(html)},
            {"type": "text/html", "value": html}
        ]
    }

    headers = {
        "Authorization": f"Bearer {config.SENDGRID_API_KEY}",
        "Content-Type": "application/json"
    }

    logger.info("Sending email to %s, subject: %s", mask_email(to_email), subject)
    try:
        r = requests.post(SENDGRID_URL, headers=headers, json=payload, timeout=15)
    except requests.RequestException as e:
        logger.error("SendGrid request failed: %s", e)
        raise DeliveryError("Failed to send email") from e

    if r.status_code not in [200, 202]:
        logger.error("SendGrid failed (%s): %s", r.status_code, r.text)
        raise DeliveryError("Failed to send email")

    logger.info("Email sent to %s", mask_email(to_email))
