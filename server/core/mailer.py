# server/core/mailer.py

import logging
import smtplib
from email.message import EmailMessage
from fastapi import Depends
from config import Settings, get_settings


logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


class Mailer:
    """
    Sends plain-text mail over SMTP.
    Port 465 uses implicit TLS, any other port upgrades with STARTTLS.
    """

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.smtp_from or settings.smtp_user

    def send(self, to: str, subject: str, message: str):
        if not self.user or not self.password:
            raise MailDeliveryError("SMTP credentials are not configured")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(message)

        try:
            if self.port == 465:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=10) as server:
                    server.login(self.user, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                    server.starttls()
                    server.login(self.user, self.password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send mail to %s: %s", to, e)
            raise MailDeliveryError(str(e)) from e

        logger.info("Mail sent to %s", to)


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return Mailer(settings)
