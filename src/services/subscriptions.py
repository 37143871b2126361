"""
Notification subscription lookups in Firestore.

Internal users opt in to notification types per company; this module reads
those subscriptions from the ``notificationSubscriptions`` collection.
"""

import logging
from typing import List, Optional

import firebase_admin
from firebase_admin import firestore
from google.cloud.firestore_v1 import FieldFilter

from domain.errors import SubscriptionLookupError
from domain.models import Subscriber

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_COLLECTION = 'notificationSubscriptions'
SHIPMENT_CREATED = 'shipment_created'

# Lazily initialized (credentials are resolved on first use, not at import)
_firestore_client = None


def get_firestore_client():
    """
    Return the shared Firestore client, initializing Firebase Admin if needed.

    Uses Application Default Credentials on first call and reuses the client
    across warm invocations.
    """
    global _firestore_client

    if _firestore_client is None:
        try:
            firebase_admin.get_app()
        except ValueError:
            firebase_admin.initialize_app()
            logger.info("Firebase Admin initialized with default credentials")

        _firestore_client = firestore.client()

    return _firestore_client


def get_notification_subscribers(
    company_id: Optional[str],
    notification_type: str = SHIPMENT_CREATED,
    db=None
) -> List[Subscriber]:
    """
    Load enabled subscribers for a company and notification type.

    Args:
        company_id: Company identifier (shipment companyID)
        notification_type: Notification type to match (default: shipment_created)
        db: Firestore client (defaults to the shared client)

    Returns:
        List of Subscriber records that have an email address

    Raises:
        SubscriptionLookupError: If the Firestore query fails
    """
    if not company_id:
        logger.warning("No companyID on shipment, no notification subscribers to load")
        return []

    client = db if db is not None else get_firestore_client()

    try:
        snapshots = (
            client.collection(SUBSCRIPTIONS_COLLECTION)
            .where(filter=FieldFilter('companyId', '==', company_id))
            .where(filter=FieldFilter('notificationType', '==', notification_type))
            .where(filter=FieldFilter('enabled', '==', True))
            .stream()
        )

        subscribers = []
        for snapshot in snapshots:
            data = snapshot.to_dict() or {}
            if data.get('userEmail'):
                subscribers.append(Subscriber(
                    user_email=data['userEmail'],
                    user_id=data.get('userId')
                ))

    except Exception as e:
        logger.error(
            f"Failed to load notification subscribers: company={company_id}, "
            f"type={notification_type}, error={e}"
        )
        raise SubscriptionLookupError(
            f"Failed to load {notification_type} subscribers for company {company_id}: {e}"
        ) from e

    logger.info(f"Found {len(subscribers)} notification subscribers for company {company_id}")
    return subscribers
