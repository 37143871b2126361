"""
Tests for SendGrid and SES mail transports.
"""

import base64
import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from python_http_client.exceptions import BadRequestsError

from config import ConfigurationError, NotificationConfig
from domain.errors import MailDeliveryError
from domain.models import Attachment
from integrations.mail_transport import (
    MailMessage,
    SendGridTransport,
    SesTransport,
    create_transport,
)


@pytest.fixture
def message(pdf_bytes):
    return MailMessage(
        to='buyer@example.com',
        from_email='noreply@integratedcarriers.com',
        from_name='Integrated Carriers',
        subject='Shipment Confirmation: IC-1001',
        html='<p>Booked</p>',
        text='Booked',
        attachments=[
            Attachment(content=base64.b64encode(pdf_bytes).decode('ascii'), filename='BOL-IC-1001.pdf')
        ]
    )


class TestMailMessage:
    """Test the transport-neutral message."""

    def test_to_dict(self, message):
        """Test serialization includes sender and attachments."""
        data = message.to_dict()

        assert data['to'] == 'buyer@example.com'
        assert data['from'] == {'email': 'noreply@integratedcarriers.com', 'name': 'Integrated Carriers'}
        assert data['attachments'][0]['filename'] == 'BOL-IC-1001.pdf'
        assert data['attachments'][0]['disposition'] == 'attachment'


class TestSendGridTransport:
    """Test the SendGrid transport."""

    def test_requires_api_key(self):
        """Test a key is needed when no client is injected."""
        with pytest.raises(ConfigurationError, match="SendGrid API key"):
            SendGridTransport(api_key=None)

    def test_build_mail(self, message):
        """Test the SendGrid payload carries bodies and attachments."""
        payload = SendGridTransport(api_key=None, client=Mock()).build_mail(message).get()

        assert payload['from']['email'] == 'noreply@integratedcarriers.com'
        assert payload['from']['name'] == 'Integrated Carriers'
        assert payload['subject'] == 'Shipment Confirmation: IC-1001'
        assert payload['personalizations'][0]['to'][0]['email'] == 'buyer@example.com'
        content_types = [c['type'] for c in payload['content']]
        assert 'text/plain' in content_types
        assert 'text/html' in content_types
        assert payload['attachments'][0]['filename'] == 'BOL-IC-1001.pdf'
        assert payload['attachments'][0]['type'] == 'application/pdf'
        assert payload['attachments'][0]['disposition'] == 'attachment'

    def test_send_success(self, message):
        """Test a 202 response is accepted."""
        client = Mock()
        client.send.return_value = Mock(status_code=202)

        SendGridTransport(api_key='SG.key', client=client).send(message)

        client.send.assert_called_once()

    def test_send_http_error(self, message):
        """Test SendGrid HTTP errors become MailDeliveryError."""
        client = Mock()
        client.send.side_effect = BadRequestsError(400, 'Bad Request', b'{"errors": []}', {})

        with pytest.raises(MailDeliveryError, match="buyer@example.com"):
            SendGridTransport(api_key='SG.key', client=client).send(message)

    def test_send_unexpected_status(self, message):
        """Test non-2xx responses are failures."""
        client = Mock()
        client.send.return_value = Mock(status_code=500)

        with pytest.raises(MailDeliveryError, match="HTTP 500"):
            SendGridTransport(api_key='SG.key', client=client).send(message)


class TestSesTransport:
    """Test the SES transport."""

    def test_build_mime(self, message, pdf_bytes):
        """Test the raw message has both bodies and the PDF attachment."""
        mime = SesTransport.build_mime(message)

        assert mime['Subject'] == 'Shipment Confirmation: IC-1001'
        assert mime['To'] == 'buyer@example.com'
        assert 'Integrated Carriers' in mime['From']

        parts = list(mime.walk())
        content_types = [part.get_content_type() for part in parts]
        assert 'text/plain' in content_types
        assert 'text/html' in content_types
        pdf_part = next(part for part in parts if part.get_content_type() == 'application/pdf')
        assert pdf_part.get_filename() == 'BOL-IC-1001.pdf'
        assert pdf_part.get_payload(decode=True) == pdf_bytes

    def test_send_success(self, message):
        """Test send_raw_email is called for the recipient."""
        client = Mock()
        client.send_raw_email.return_value = {'MessageId': 'msg-1'}

        SesTransport(region='us-east-1', client=client).send(message)

        kwargs = client.send_raw_email.call_args.kwargs
        assert kwargs['Destinations'] == ['buyer@example.com']
        assert 'noreply@integratedcarriers.com' in kwargs['Source']
        assert 'BOL-IC-1001.pdf' in kwargs['RawMessage']['Data']

    def test_send_client_error(self, message):
        """Test SES errors become MailDeliveryError."""
        client = Mock()
        client.send_raw_email.side_effect = ClientError(
            {'Error': {'Code': 'MessageRejected', 'Message': 'Email address is not verified'}},
            'SendRawEmail'
        )

        with pytest.raises(MailDeliveryError, match="MessageRejected"):
            SesTransport(region='us-east-1', client=client).send(message)


class TestCreateTransport:
    """Test transport selection."""

    def test_sendgrid(self):
        """Test the default transport is SendGrid."""
        transport = create_transport(NotificationConfig(sendgrid_api_key='SG.key'))

        assert isinstance(transport, SendGridTransport)

    @patch('integrations.mail_transport.boto3')
    def test_ses(self, mock_boto3):
        """Test the SES transport uses the configured region."""
        transport = create_transport(NotificationConfig(mail_transport='ses', aws_region='ca-central-1'))

        assert isinstance(transport, SesTransport)
        assert mock_boto3.client.call_args.args == ('ses',)
        assert mock_boto3.client.call_args.kwargs['region_name'] == 'ca-central-1'

    def test_unknown(self):
        """Test unknown transports are rejected."""
        with pytest.raises(ConfigurationError, match="Unknown mail transport"):
            create_transport(NotificationConfig(mail_transport='smtp'))
