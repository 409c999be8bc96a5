from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from storeapi.core import config
from storeapi.core.errors import DeliveryError
from storeapi.logger import get_logger

logger = get_logger(__name__)


def get_twilio_client():
    if not config.TWILIO_ACCOUNT_SID or not config.TWILIO_AUTH_TOKEN:
        raise DeliveryError("SMS provider is not configured")
    return Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)


def send_sms(phone: str, body: str):
    if not config.TWILIO_PHONE_NUMBER:
        logger.error("TWILIO_PHONE_NUMBER missing, cannot text %s", phone)
        raise DeliveryError("SMS provider is not configured")

    client = get_twilio_client()

    logger.info("Sending SMS to %s", phone)
    try:
        message = client.messages.create(
            to=phone,
            from_=config.TWILIO_PHONE_NUMBER,
            body=body
        )
    except TwilioException as e:
        logger.error("Twilio send failed: %s", e)
        raise DeliveryError("Failed to send SMS") from e

    logger.info("SMS sent: %s", message.sid)
    return message.sid
