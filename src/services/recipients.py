"""
Recipient resolution for customer and carrier notifications.
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Terminal contact lists, most relevant for a new pickup first
CONTACT_TYPE_PRIORITY = (
    'dispatch',
    'customer_service',
    'quotes',
    'billing_adjustments',
    'claims',
    'sales_reps',
    'customs',
    'other',
)


def resolve_customer_email(shipment: Dict[str, Any]) -> Optional[str]:
    """
    Get the customer's email address.

    Priority: shipTo.email > customerEmail

    Returns:
        Email address, or None if the shipment has none
    """
    ship_to = shipment.get('shipTo') or {}
    return ship_to.get('email') or shipment.get('customerEmail') or None


def _terminal_id_from_contact_id(contact_id: Optional[str]) -> str:
    """
    Extract the terminal ID from a contact ID.

    Contact IDs look like ``{terminalId}_{contactType}_{index}``.
    """
    terminal_id = contact_id or 'default'
    if '_' in terminal_id:
        terminal_id = terminal_id.split('_')[0]
    return terminal_id


def select_terminal(
    terminals: List[Dict[str, Any]],
    contact_id: Optional[str]
) -> Optional[Dict[str, Any]]:
    """
    Pick the carrier terminal for a contact ID.

    Falls back to the terminal flagged isDefault, then the first terminal.
    """
    if not terminals:
        return None

    terminal_id = _terminal_id_from_contact_id(contact_id)
    for terminal in terminals:
        if terminal.get('id') == terminal_id:
            return terminal

    for terminal in terminals:
        if terminal.get('isDefault'):
            return terminal

    return terminals[0]


def first_terminal_email(terminal: Dict[str, Any]) -> Optional[str]:
    """Return the first non-blank email across contact types, in priority order."""
    contact_types = terminal.get('contactTypes') or {}
    for contact_type in CONTACT_TYPE_PRIORITY:
        for email in contact_types.get(contact_type) or []:
            if email and email.strip():
                return email.strip()
    return None


def resolve_carrier_email(
    shipment: Dict[str, Any],
    fallback_email: Optional[str] = None
) -> Optional[str]:
    """
    Get the carrier's email address.

    QuickShip shipments with terminal-based emailContacts resolve through the
    selected terminal; everything else uses the legacy contactEmail fields.

    Args:
        shipment: Shipment data
        fallback_email: Address to use when nothing resolves (None to skip)

    Returns:
        Email address, or None if nothing resolved and no fallback is set

    Example:
        >>> shipment = {
        ...     'creationMethod': 'quickship',
        ...     'selectedCarrierContactId': 'TERM1_dispatch_0',
        ...     'selectedCarrier': {'emailContacts': [
        ...         {'id': 'TERM1', 'contactTypes': {'dispatch': ['ops@x.com']}}
        ...     ]}
        ... }
        >>> resolve_carrier_email(shipment)
        'ops@x.com'
    """
    selected_carrier = shipment.get('selectedCarrier') or {}
    email_contacts = selected_carrier.get('emailContacts')
    carrier_email = None

    if email_contacts and shipment.get('creationMethod') == 'quickship':
        terminal = select_terminal(email_contacts, shipment.get('selectedCarrierContactId'))
        if terminal:
            carrier_email = first_terminal_email(terminal)
            logger.info(
                f"Resolved carrier terminal: name={terminal.get('name')}, "
                f"id={terminal.get('id')}, email={carrier_email}"
            )
    else:
        carrier_email = selected_carrier.get('contactEmail') or shipment.get('carrierEmail')
        logger.info(f"Resolved carrier email from legacy fields: {carrier_email}")

    if carrier_email:
        return carrier_email

    if fallback_email:
        logger.warning(
            f"No carrier email found, using configured fallback: {fallback_email} "
            f"(creationMethod={shipment.get('creationMethod')}, "
            f"selectedCarrierContactId={shipment.get('selectedCarrierContactId')})"
        )
        return fallback_email

    logger.warning(
        f"No carrier email found and no fallback configured "
        f"(hasSelectedCarrier={bool(selected_carrier)}, "
        f"hasEmailContacts={bool(email_contacts)}, "
        f"creationMethod={shipment.get('creationMethod')})"
    )
    return None
