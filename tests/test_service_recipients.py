"""
Tests for customer and carrier recipient resolution.
"""

import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from services import recipients


class TestResolveCustomerEmail:
    """Test customer email resolution."""

    def test_ship_to_email_first(self):
        """Test shipTo.email wins over customerEmail."""
        shipment = {'shipTo': {'email': 'a@x.com'}, 'customerEmail': 'b@x.com'}

        assert recipients.resolve_customer_email(shipment) == 'a@x.com'

    def test_customer_email_fallback(self):
        """Test customerEmail is used when shipTo has no email."""
        shipment = {'shipTo': {'email': ''}, 'customerEmail': 'b@x.com'}

        assert recipients.resolve_customer_email(shipment) == 'b@x.com'

    def test_no_email(self):
        """Test None when neither field is set."""
        assert recipients.resolve_customer_email({}) is None


class TestSelectTerminal:
    """Test terminal selection for quickship contacts."""

    TERMINALS = [
        {'id': 'TERM0', 'contactTypes': {}},
        {'id': 'TERM1', 'contactTypes': {}},
        {'id': 'TERM2', 'isDefault': True, 'contactTypes': {}},
    ]

    def test_match_by_contact_id(self):
        """Test the terminal ID prefix of the contact ID is matched."""
        terminal = recipients.select_terminal(self.TERMINALS, 'TERM1_dispatch_0')

        assert terminal['id'] == 'TERM1'

    def test_default_terminal(self):
        """Test unmatched IDs fall back to the default terminal."""
        terminal = recipients.select_terminal(self.TERMINALS, 'TERM9_dispatch_0')

        assert terminal['id'] == 'TERM2'

    def test_first_terminal(self):
        """Test the first terminal when nothing matches and no default exists."""
        terminal = recipients.select_terminal(self.TERMINALS[:2], None)

        assert terminal['id'] == 'TERM0'

    def test_no_terminals(self):
        """Test empty terminal lists."""
        assert recipients.select_terminal([], 'TERM1_dispatch_0') is None


class TestFirstTerminalEmail:
    """Test contact type priority."""

    def test_priority_order(self):
        """Test dispatch beats customer service and later types."""
        terminal = {'contactTypes': {
            'other': ['other@x.com'],
            'customer_service': ['cs@x.com'],
            'dispatch': ['dispatch@x.com'],
        }}

        assert recipients.first_terminal_email(terminal) == 'dispatch@x.com'

    def test_skips_blank_entries(self):
        """Test blank emails are skipped and whitespace is stripped."""
        terminal = {'contactTypes': {
            'dispatch': ['', '   '],
            'quotes': ['  quotes@x.com '],
        }}

        assert recipients.first_terminal_email(terminal) == 'quotes@x.com'

    def test_no_emails(self):
        """Test None when no contact type has an email."""
        assert recipients.first_terminal_email({'contactTypes': {'dispatch': []}}) is None
        assert recipients.first_terminal_email({}) is None


class TestResolveCarrierEmail:
    """Test carrier email resolution."""

    def test_quickship_terminal(self):
        """Test TERM1 dispatch contact resolves to its email."""
        shipment = {
            'creationMethod': 'quickship',
            'selectedCarrierContactId': 'TERM1_dispatch_0',
            'selectedCarrier': {'emailContacts': [
                {'id': 'TERM0', 'contactTypes': {'dispatch': ['other@x.com']}},
                {'id': 'TERM1', 'contactTypes': {'dispatch': ['ops@x.com']}},
            ]}
        }

        assert recipients.resolve_carrier_email(shipment) == 'ops@x.com'

    def test_legacy_contact_email(self):
        """Test non-quickship shipments use selectedCarrier.contactEmail."""
        shipment = {
            'creationMethod': 'advanced',
            'selectedCarrier': {'contactEmail': 'carrier@x.com'},
            'carrierEmail': 'other@x.com',
        }

        assert recipients.resolve_carrier_email(shipment) == 'carrier@x.com'

    def test_legacy_carrier_email(self):
        """Test carrierEmail is the last legacy source."""
        assert recipients.resolve_carrier_email({'carrierEmail': 'c@x.com'}) == 'c@x.com'

    def test_email_contacts_ignored_without_quickship(self):
        """Test terminal contacts only apply to quickship shipments."""
        shipment = {
            'selectedCarrier': {
                'contactEmail': 'legacy@x.com',
                'emailContacts': [{'id': 'TERM1', 'contactTypes': {'dispatch': ['ops@x.com']}}],
            }
        }

        assert recipients.resolve_carrier_email(shipment) == 'legacy@x.com'

    def test_fallback_email(self):
        """Test the configured fallback is used when nothing resolves."""
        shipment = {
            'creationMethod': 'quickship',
            'selectedCarrier': {'emailContacts': [{'id': 'TERM1', 'contactTypes': {}}]},
        }

        assert recipients.resolve_carrier_email(shipment, fallback_email='ops@ic.com') == 'ops@ic.com'

    def test_no_fallback(self):
        """Test None when nothing resolves and no fallback is set."""
        assert recipients.resolve_carrier_email({}) is None
