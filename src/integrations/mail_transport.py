"""
Mail transport integrations for shipment notifications.

Two transports share one interface:
- SendGridTransport: SendGrid v3 Mail Send API (default)
- SesTransport: Amazon SES raw email (for deployments without SendGrid)

Usage:
    from integrations.mail_transport import create_transport, MailMessage

    transport = create_transport(config)
    transport.send(MailMessage(to="ops@example.com", ...))
"""

import base64
import logging
from dataclasses import dataclass, field
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Dict, List

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Attachment as SendGridAttachment,
    Disposition,
    Email,
    FileContent,
    FileName,
    FileType,
    Mail,
)

from config import ConfigurationError, NotificationConfig
from domain.errors import MailDeliveryError
from domain.models import Attachment

logger = logging.getLogger(__name__)


@dataclass
class MailMessage:
    """
    One outgoing email.

    Attributes:
        to: Recipient address
        from_email: Sender address
        from_name: Sender display name
        subject: Subject line
        html: HTML body
        text: Plain-text body
        attachments: PDF attachments (base64 content)
    """
    to: str
    from_email: str
    from_name: str
    subject: str
    html: str
    text: str
    attachments: List[Attachment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Transport-neutral representation (used for logging and tests)."""
        return {
            'to': self.to,
            'from': {'email': self.from_email, 'name': self.from_name},
            'subject': self.subject,
            'html': self.html,
            'text': self.text,
            'attachments': [a.to_dict() for a in self.attachments],
        }


class MailTransport:
    """Interface for sending one email per call."""

    name = 'base'

    def send(self, message: MailMessage) -> None:
        """
        Send a message.

        Raises:
            MailDeliveryError: If the provider rejects the message
        """
        raise NotImplementedError


class SendGridTransport(MailTransport):
    """
    Sends mail through the SendGrid API.

    Args:
        api_key: SendGrid API key
        client: Preconfigured SendGridAPIClient (tests inject a mock)
    """

    name = 'sendgrid'

    def __init__(self, api_key: str, client: SendGridAPIClient = None):
        if client is None and not api_key:
            raise ConfigurationError("SendGrid API key is required")
        self.client = client or SendGridAPIClient(api_key)

    def build_mail(self, message: MailMessage) -> Mail:
        mail = Mail(
            from_email=Email(message.from_email, message.from_name),
            to_emails=message.to,
            subject=message.subject,
            html_content=message.html,
            plain_text_content=message.text,
        )
        for attachment in message.attachments:
            mail.add_attachment(SendGridAttachment(
                FileContent(attachment.content),
                FileName(attachment.filename),
                FileType(attachment.mime_type),
                Disposition('attachment'),
            ))
        return mail

    def send(self, message: MailMessage) -> None:
        try:
            response = self.client.send(self.build_mail(message))
        except HTTPError as e:
            logger.error(
                f"SendGrid rejected message: to={message.to}, "
                f"status={getattr(e, 'status_code', 'unknown')}, body={getattr(e, 'body', '')}"
            )
            raise MailDeliveryError(f"SendGrid send failed for {message.to}: {e}") from e

        status_code = getattr(response, 'status_code', 0)
        if not 200 <= status_code < 300:
            raise MailDeliveryError(
                f"SendGrid send failed for {message.to}: HTTP {status_code}"
            )

        logger.info(
            f"SendGrid accepted message: to={message.to}, subject={message.subject}, "
            f"attachments={len(message.attachments)}, status={status_code}"
        )


class SesTransport(MailTransport):
    """
    Sends mail through Amazon SES as a raw MIME message.

    Args:
        region: AWS region of the SES identity
        client: Preconfigured boto3 SES client (tests inject a mock)
    """

    name = 'ses'

    def __init__(self, region: str, client=None):
        if client is None:
            # Fail fast: no retries, bounded timeouts (Lambda timeout is the backstop)
            client_config = Config(
                retries={
                    'max_attempts': 1,
                    'mode': 'standard'
                },
                connect_timeout=10,
                read_timeout=30
            )
            client = boto3.client('ses', region_name=region, config=client_config)
            logger.info(f"SES client initialized: region={region}")
        self.client = client

    @staticmethod
    def build_mime(message: MailMessage) -> MIMEMultipart:
        mime = MIMEMultipart('mixed')
        mime['Subject'] = message.subject
        mime['From'] = formataddr((message.from_name, message.from_email))
        mime['To'] = message.to

        body = MIMEMultipart('alternative')
        body.attach(MIMEText(message.text, 'plain', 'utf-8'))
        body.attach(MIMEText(message.html, 'html', 'utf-8'))
        mime.attach(body)

        for attachment in message.attachments:
            subtype = attachment.mime_type.split('/', 1)[-1]
            part = MIMEApplication(base64.b64decode(attachment.content), _subtype=subtype)
            part.add_header('Content-Disposition', 'attachment', filename=attachment.filename)
            mime.attach(part)

        return mime

    def send(self, message: MailMessage) -> None:
        try:
            response = self.client.send_raw_email(
                Source=formataddr((message.from_name, message.from_email)),
                Destinations=[message.to],
                RawMessage={'Data': self.build_mime(message).as_string()},
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))
            logger.error(
                f"SES send failed: to={message.to}, "
                f"error_code={error_code}, error_message={error_message}"
            )
            raise MailDeliveryError(
                f"SES send failed for {message.to}: {error_code}: {error_message}"
            ) from e

        logger.info(
            f"SES accepted message: to={message.to}, subject={message.subject}, "
            f"attachments={len(message.attachments)}, message_id={response.get('MessageId')}"
        )


def create_transport(config: NotificationConfig) -> MailTransport:
    """
    Create the transport selected by MAIL_TRANSPORT.

    Raises:
        ConfigurationError: If the transport is unknown or missing credentials
    """
    if config.mail_transport == 'sendgrid':
        return SendGridTransport(api_key=config.sendgrid_api_key)
    if config.mail_transport == 'ses':
        return SesTransport(region=config.aws_region)
    raise ConfigurationError(f"Unknown mail transport: {config.mail_transport}")
