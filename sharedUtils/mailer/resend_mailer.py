"""
Resend Mailer

Sends email through the Resend HTTP API using a pooled requests session.
"""

from typing import Optional

import requests

from sharedUtils.config.models import EmailConfig
from sharedUtils.mailer.base_mailer import EmailMessage, EmailSendError, Mailer
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)


class ResendMailer(Mailer):
    """
    Mailer that POSTs messages to the Resend emails endpoint.

    Attributes:
        api_endpoint: URL messages are POSTed to
        timeout: Request timeout in seconds
    """

    def __init__(self, config: EmailConfig, session: Optional[requests.Session] = None):
        self.api_endpoint = config.api_endpoint
        self.timeout = config.timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if config.api_key:
            self.session.headers["Authorization"] = f"Bearer {config.api_key}"
        else:
            logger.warning("No email api_key configured - sends will be rejected")

        logger.debug("ResendMailer initialized with endpoint: %s", self.api_endpoint)

    def send(self, message: EmailMessage) -> Optional[str]:
        payload = message.model_dump(by_alias=True, exclude_none=True)

        try:
            response = self.session.post(self.api_endpoint, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error("Timeout sending email '%s'", message.subject)
            raise EmailSendError("Timed out contacting the email provider") from e
        except requests.exceptions.RequestException as e:
            logger.error("Connection error sending email '%s': %s", message.subject, e)
            raise EmailSendError(str(e)) from e

        if not 200 <= response.status_code < 300:
            logger.warning("Email provider rejected '%s': HTTP %d - %s",
                           message.subject, response.status_code, response.text)
            raise EmailSendError(f"HTTP {response.status_code}: {response.text}")

        message_id = None
        try:
            message_id = response.json().get("id")
        except ValueError:
            pass

        logger.info("Sent email '%s' to %d recipient(s)", message.subject, len(message.recipients))
        return message_id

    def close(self) -> None:
        self.session.close()
