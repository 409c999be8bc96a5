from typing import Protocol

from storeapi.services import email_service, sms_service


class NotificationGateway(Protocol):
    """Delivers a message to an address. Both methods raise DeliveryError on failure."""

    def send_email(self, to: str, subject: str, html: str) -> None: ...

    def send_sms(self, to: str, body: str) -> None: ...


class ProviderNotificationGateway:
    """SendGrid for email, Twilio for SMS."""

    def send_email(self, to: str, subject: str, html: str) -> None:
        email_service.send_email(to, subject, html)

    def send_sms(self, to: str, body: str) -> None:
        sms_service.send_sms(to, body)
