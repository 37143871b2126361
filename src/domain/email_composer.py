"""
Email composition for shipment notifications.

Derives display values from shipment data and renders the HTML and
plain-text templates for each recipient class.
"""

import html
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from .models import NotificationType, ShipmentTotals
from services.templates import TemplateLoader, render_template

logger = logging.getLogger(__name__)

DISPLAY_TIMEZONE = ZoneInfo('America/Toronto')
TRACKING_URL_TEMPLATE = 'https://solushipx.web.app/tracking/{shipment_id}'
SUPPORT_EMAIL = 'support@integratedcarriers.com'
MAX_PACKAGES_LISTED = 3

BILL_TYPE_LABELS = {
    'prepaid': 'Prepaid',
    'collect': 'Collect',
    'third_party': 'Third Party',
    'freight_collect': 'Freight Collect',
    'fob_origin': 'FOB Origin',
    'fob_destination': 'FOB Destination',
}

SUBJECTS = {
    NotificationType.CUSTOMER: 'Shipment Confirmation: {shipment_id}',
    NotificationType.CARRIER: 'New Shipment Assignment: {shipment_id}',
    NotificationType.INTERNAL: 'New Shipment Created: {shipment_id}',
}


@dataclass
class ComposedEmail:
    """Rendered subject and bodies for one notification."""
    subject: str
    html: str
    text: str


def get_shipment_id(shipment: Dict[str, Any]) -> str:
    return str(shipment.get('shipmentID') or shipment.get('id') or '')


def get_shipment_type(shipment: Dict[str, Any]) -> str:
    """Shipment type from shipmentInfo, defaulting to freight."""
    shipment_info = shipment.get('shipmentInfo') or {}
    return shipment_info.get('shipmentType') or 'freight'


def get_bill_type_label(bill_type: Optional[str]) -> str:
    """
    Human readable bill type.

    Example:
        >>> get_bill_type_label('fob_origin')
        'FOB Origin'
        >>> get_bill_type_label('net_30_terms')
        'Net 30 Terms'
    """
    bill_type = str(bill_type or 'third_party')
    if bill_type in BILL_TYPE_LABELS:
        return BILL_TYPE_LABELS[bill_type]
    return bill_type.replace('_', ' ').title()


def get_carrier_name(shipment: Dict[str, Any]) -> str:
    selected_rate = shipment.get('selectedRate') or {}
    rate_carrier = selected_rate.get('carrier')
    rate_carrier_name = rate_carrier.get('name') if isinstance(rate_carrier, dict) else None
    selected_carrier = shipment.get('selectedCarrier') or {}

    return (
        shipment.get('carrier')
        or rate_carrier_name
        or selected_rate.get('sourceCarrierName')
        or selected_carrier.get('name')
        or 'Selected Carrier'
    )


def get_service_name(shipment: Dict[str, Any]) -> str:
    """
    Service name by priority, falling back to a name derived from the
    shipment type.
    """
    selected_rate = shipment.get('selectedRate') or {}
    service = selected_rate.get('service')
    shipment_info = shipment.get('shipmentInfo') or {}

    if isinstance(service, dict) and service.get('name'):
        return service['name']
    if selected_rate.get('serviceName'):
        return selected_rate['serviceName']
    if shipment_info.get('serviceType'):
        return shipment_info['serviceType']
    if shipment.get('serviceType'):
        return shipment['serviceType']

    shipment_type = shipment_info.get('shipmentType')
    if shipment_type == 'ltl':
        return 'LTL'
    if shipment_type == 'ftl':
        return 'FTL'
    if shipment_type == 'courier':
        return 'Ground'
    return 'Standard Service'


def get_tracking_number(shipment: Dict[str, Any]) -> Optional[str]:
    shipment_info = shipment.get('shipmentInfo') or {}
    return shipment.get('trackingNumber') or shipment_info.get('carrierTrackingNumber') or None


def _format_day(value: date) -> str:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_date(value: Any) -> str:
    """
    Format a shipment date as "Monday, January 6, 2025" in Eastern time.

    Accepts YYYY-MM-DD strings, ISO 8601 strings, date/datetime objects
    (including Firestore timestamps). Empty values format today's date;
    unparseable strings are returned unchanged.
    """
    if not value:
        return _format_day(datetime.now(DISPLAY_TIMEZONE))

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(DISPLAY_TIMEZONE)
        return _format_day(value)

    if isinstance(value, date):
        return _format_day(value)

    if isinstance(value, str):
        try:
            if len(value) == 10:
                # Date-only strings carry no timezone
                return _format_day(date.fromisoformat(value))
            return format_date(datetime.fromisoformat(value.replace('Z', '+00:00')))
        except ValueError:
            return value

    return str(value)


def format_address_line(address: Optional[Dict[str, Any]]) -> str:
    """
    Single-line address for summaries.

    Country is omitted for CA and US addresses.
    """
    if not address:
        return 'N/A'

    parts = [str(address[key]) for key in ('street', 'street2') if address.get(key)]
    city_state_zip = [str(address[key]) for key in ('city', 'state', 'postalCode') if address.get(key)]
    if city_state_zip:
        parts.append(', '.join(city_state_zip))

    country = address.get('country')
    if country and country not in ('CA', 'US'):
        parts.append(str(country))

    return ', '.join(parts) or 'N/A'


def format_address_block(address: Optional[Dict[str, Any]]) -> str:
    """Multi-line address with company, contact, street, city line and phone."""
    if not address:
        return 'N/A'

    lines = []
    if address.get('companyName'):
        lines.append(str(address['companyName']))

    contact = ' '.join(
        str(part) for part in (address.get('firstName'), address.get('lastName')) if part
    )
    if contact:
        lines.append(contact)

    for key in ('street', 'street2'):
        if address.get(key):
            lines.append(str(address[key]))

    city_line = ', '.join(str(part) for part in (address.get('city'), address.get('state')) if part)
    if address.get('postalCode'):
        city_line = f"{city_line} {address['postalCode']}".strip()
    if city_line:
        lines.append(city_line)

    if address.get('country'):
        lines.append(str(address['country']))
    if address.get('phone'):
        lines.append(f"Phone: {address['phone']}")

    return '\n'.join(lines) or 'N/A'


def _weight_unit(unit_system: Optional[str]) -> str:
    return 'kg' if unit_system == 'metric' else 'lbs'


def format_package_total(totals: ShipmentTotals, unit_system: Optional[str]) -> str:
    """
    Example:
        >>> format_package_total(ShipmentTotals(25.0, 3), None)
        '3 packages, 25.0 lbs'
    """
    plural = 's' if totals.total_pieces > 1 else ''
    return (
        f"{totals.total_pieces} package{plural}, "
        f"{totals.total_weight:.1f} {_weight_unit(unit_system)}"
    )


def format_package_summary(packages: Optional[list]) -> str:
    """Describe the first few packages, then count the rest."""
    packages = [package for package in packages or [] if isinstance(package, dict)]
    entries = []

    for index, package in enumerate(packages[:MAX_PACKAGES_LISTED], start=1):
        entries.append(
            f"Package {index}: {package.get('itemDescription') or 'Package'}\n"
            f"Qty: {package.get('packagingQuantity') or 1}, "
            f"Weight: {package.get('weight') or 0} {_weight_unit(package.get('unitSystem'))}, "
            f"Dimensions: {package.get('length') or 0}\" x {package.get('width') or 0}\" "
            f"x {package.get('height') or 0}\""
        )

    remaining = len(packages) - MAX_PACKAGES_LISTED
    if remaining > 0:
        entries.append(f"...and {remaining} more package{'s' if remaining > 1 else ''}")

    return '\n\n'.join(entries)


class EmailComposer:
    """
    Renders notification emails from templates.

    Args:
        template_loader: Source of the HTML and text templates
        from_name: Sender display name, shown in internal notification footers
    """

    def __init__(self, template_loader: TemplateLoader, from_name: str = 'Integrated Carriers'):
        self.template_loader = template_loader
        self.from_name = from_name

    def build_context(self, shipment: Dict[str, Any], totals: ShipmentTotals) -> Dict[str, str]:
        """Derive every template variable from the shipment (plain text values)."""
        shipment_id = get_shipment_id(shipment)
        shipment_info = shipment.get('shipmentInfo') or {}
        selected_carrier = shipment.get('selectedCarrier') or {}
        tracking_number = get_tracking_number(shipment)

        extra_details = []
        for key, label in (('eta1', 'ETA 1'), ('eta2', 'ETA 2')):
            if shipment_info.get(key):
                extra_details.append(f"- {label}: {format_date(shipment_info[key])}")
        if tracking_number:
            extra_details.append(f"- Tracking #: {tracking_number}")

        notes = shipment_info.get('notes')

        context = {
            'shipment_id': shipment_id,
            'created_date': format_date(None),
            'shipment_type': get_shipment_type(shipment),
            'reference_number': shipment_info.get('shipperReferenceNumber') or shipment_id,
            'bill_type': get_bill_type_label(shipment_info.get('billType')),
            'ship_date': format_date(shipment_info.get('shipmentDate')),
            'extra_details': '\n'.join(extra_details),
            'carrier_name': get_carrier_name(shipment),
            'service_name': get_service_name(shipment),
            'tracking_number': tracking_number or 'Pending',
            'carrier_contact_name': selected_carrier.get('contactName') or 'N/A',
            'carrier_contact_email': selected_carrier.get('contactEmail') or 'N/A',
            'carrier_contact_phone': selected_carrier.get('contactPhone') or 'N/A',
            'package_total': format_package_total(totals, shipment.get('unitSystem')),
            'package_summary': format_package_summary(shipment.get('packages')),
            'ship_from': format_address_block(shipment.get('shipFrom')),
            'ship_to': format_address_block(shipment.get('shipTo')),
            'ship_from_line': format_address_line(shipment.get('shipFrom')),
            'ship_to_line': format_address_line(shipment.get('shipTo')),
            'special_instructions': f"SPECIAL INSTRUCTIONS\n{notes}" if notes else '',
            'tracking_url': TRACKING_URL_TEMPLATE.format(shipment_id=shipment_id),
            'support_email': SUPPORT_EMAIL,
            'from_name': self.from_name,
        }
        # Firestore and JSON payloads can carry numbers in any of these fields
        return {key: str(value) for key, value in context.items()}

    def compose(
        self,
        notification_type: NotificationType,
        shipment: Dict[str, Any],
        totals: ShipmentTotals
    ) -> ComposedEmail:
        """
        Render subject, HTML and text for one recipient class.

        Raises:
            ValueError: If a template is missing or references an unknown variable
        """
        context = self.build_context(shipment, totals)
        html_context = {
            key: html.escape(value).replace('\n', '<br>')
            for key, value in context.items()
        }

        name = f"{notification_type.value}_email"
        html_body = render_template(self.template_loader.load(f"{name}.html"), **html_context)
        text_body = render_template(self.template_loader.load(f"{name}.txt"), **context)

        return ComposedEmail(
            subject=SUBJECTS[notification_type].format(shipment_id=context['shipment_id']),
            html=html_body,
            text=text_body,
        )
