"""
Shipment notification pipeline - core business logic.

This module sends the "shipment created" notifications:
1. Verify generated documents are reachable
2. Send customer notification
3. Send carrier notification (skipped for Canpar courier shipments)
4. Send internal notifications to subscribed company users
5. Return a summary with one result per recipient class

Stages run sequentially and each recipient class is isolated: a failure in
one is recorded in its result and never stops the others. Only invalid input
(and, under the "abort" policy, a defect in document verification) raises.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .email_composer import EmailComposer, get_carrier_name, get_shipment_id, get_shipment_type
from .errors import DocumentVerificationError, MailDeliveryError, ValidationError
from .models import (
    Attachment,
    DispatchStage,
    DispatchSummary,
    DocumentKind,
    NotificationResult,
    NotificationType,
    ShipmentDocument,
    ShipmentTotals,
    Subscriber,
)
from config import NotificationConfig
from integrations.mail_transport import MailMessage, MailTransport
from services import documents as document_service
from services import recipients as recipient_service
from services import subscriptions as subscription_service
from services.retry import BackoffPolicy, LINEAR
from services.templates import TemplateLoader

logger = logging.getLogger(__name__)

COURIER = 'courier'
CANPAR_SKIP_REASON = 'Canpar handles own notifications'

DOCUMENT_LABELS = {
    DocumentKind.BOL: 'BOL',
    DocumentKind.CARRIER_CONFIRMATION: 'Carrier Confirmation',
    DocumentKind.SHIPPING_LABEL: 'Shipping Label',
}


def is_canpar_courier(shipment: Dict[str, Any]) -> bool:
    """Canpar sends its own notifications for courier shipments."""
    carrier_name = shipment.get('carrier') or ''
    return get_shipment_type(shipment) == COURIER and 'canpar' in str(carrier_name).lower()


def _first_of_kind(documents: List[ShipmentDocument], kind: DocumentKind) -> Optional[ShipmentDocument]:
    return next((doc for doc in documents if doc.success and doc.kind == kind), None)


def _first_bol(documents: List[ShipmentDocument]) -> Optional[ShipmentDocument]:
    """First successful document classified as a BOL or named like one."""
    return next(
        (doc for doc in documents if doc.success and (doc.kind == DocumentKind.BOL or 'BOL' in doc.file_name)),
        None
    )


def select_documents(
    notification_type: NotificationType,
    shipment_type: str,
    documents: List[ShipmentDocument]
) -> List[ShipmentDocument]:
    """
    Pick the documents to attach for a recipient class.

    - Courier: every shipping label, except for internal notifications which
      get no attachments
    - Freight: the first BOL (by kind, or by "BOL" in the file name), plus
      the first carrier confirmation for carrier and internal recipients
    """
    if shipment_type == COURIER:
        if notification_type == NotificationType.INTERNAL:
            return []
        return [
            doc for doc in documents
            if doc.success and doc.kind == DocumentKind.SHIPPING_LABEL
        ]

    selected = []

    bol = _first_bol(documents)
    if bol:
        selected.append(bol)
    else:
        logger.warning(f"No BOL document found for {notification_type.value} attachment")

    if notification_type != NotificationType.CUSTOMER:
        confirmation = _first_of_kind(documents, DocumentKind.CARRIER_CONFIRMATION)
        if confirmation and confirmation is not bol:
            selected.append(confirmation)

    return selected


class NotificationDispatcher:
    """
    Sends customer, carrier and internal notifications for a new shipment.

    Args:
        config: Validated function configuration
        transport: Mail transport used for every send
        composer: Email composer (defaults to templates per config)
        subscriber_lookup: Callable returning internal subscribers for a
            company ID (defaults to the Firestore lookup)
    """

    def __init__(
        self,
        config: NotificationConfig,
        transport: MailTransport,
        composer: Optional[EmailComposer] = None,
        subscriber_lookup: Optional[Callable[[str], List[Subscriber]]] = None
    ):
        self.config = config
        self.transport = transport
        self.composer = composer or EmailComposer(
            TemplateLoader(
                bucket=config.template_bucket,
                key_prefix=config.template_key_prefix,
                cache_ttl=config.template_cache_ttl,
            ),
            from_name=config.from_name,
        )
        self.subscriber_lookup = subscriber_lookup or subscription_service.get_notification_subscribers
        self.verify_policy = BackoffPolicy(
            max_attempts=config.verify_max_attempts,
            base_delay=config.verify_initial_delay,
            multiplier=config.verify_backoff_multiplier,
        )
        self.download_policy = BackoffPolicy(
            max_attempts=config.download_max_attempts,
            base_delay=config.download_delay_step,
            strategy=LINEAR,
        )

    def dispatch(
        self,
        shipment: Dict[str, Any],
        document_results: List[Dict[str, Any]]
    ) -> DispatchSummary:
        """
        Run the notification pipeline for one shipment.

        Args:
            shipment: Shipment data (read-only)
            document_results: Document generator results

        Returns:
            DispatchSummary with results ordered customer, carrier, internal

        Raises:
            ValidationError: If shipment data or document results are invalid
            DocumentVerificationError: If verification fails unexpectedly and
                the verification policy is "abort"
        """
        documents = self._validate(shipment, document_results)
        shipment_id = get_shipment_id(shipment)
        start_time = time.time()

        logger.info(
            f"Shipment notifications starting: shipment={shipment_id}, "
            f"documents={len(documents)}"
        )

        self._enter_stage(DispatchStage.VERIFYING_DOCUMENTS, shipment_id)
        self._verify_documents(documents)

        totals = ShipmentTotals.from_packages(shipment.get('packages'))
        results = []

        self._enter_stage(DispatchStage.SENDING_CUSTOMER, shipment_id)
        results.append(self._run_stage(
            NotificationType.CUSTOMER, self._send_customer_notification, shipment, documents, totals
        ))

        self._enter_stage(DispatchStage.SENDING_CARRIER, shipment_id)
        if is_canpar_courier(shipment):
            logger.info(
                "Skipping carrier notification for Canpar courier shipment - "
                "Canpar handles their own notifications"
            )
            results.append(NotificationResult.skip(NotificationType.CARRIER, CANPAR_SKIP_REASON))
        else:
            results.append(self._run_stage(
                NotificationType.CARRIER, self._send_carrier_notification, shipment, documents, totals
            ))

        self._enter_stage(DispatchStage.SENDING_INTERNAL, shipment_id)
        results.append(self._run_stage(
            NotificationType.INTERNAL, self._send_internal_notification, shipment, documents, totals
        ))

        self._enter_stage(DispatchStage.DONE, shipment_id)
        summary = DispatchSummary(
            success=True,
            message='Shipment notifications completed',
            results=results,
        )
        self._log_summary(shipment_id, summary, time.time() - start_time)
        return summary

    def _validate(
        self,
        shipment: Dict[str, Any],
        document_results: List[Dict[str, Any]]
    ) -> List[ShipmentDocument]:
        """
        Check required input and parse document results.

        Raises:
            ValidationError: If anything required is missing or malformed
        """
        if not shipment or document_results is None:
            raise ValidationError(
                'Missing required data: shipmentData and documentResults are required'
            )
        if not isinstance(shipment, dict):
            raise ValidationError('shipmentData must be an object')
        if not get_shipment_id(shipment):
            raise ValidationError('Missing required shipment data or shipmentID')
        if not isinstance(document_results, list):
            raise ValidationError('Missing or invalid document results')

        try:
            return [ShipmentDocument.from_dict(raw) for raw in document_results]
        except TypeError as e:
            raise ValidationError(f"Invalid document result: {e}")

    def _enter_stage(self, stage: DispatchStage, shipment_id: str) -> None:
        logger.info(f"[{shipment_id}] stage -> {stage.value}")

    def _verify_documents(self, documents: List[ShipmentDocument]) -> None:
        """
        Wait for documents to become reachable.

        Inaccessible documents only degrade the emails; an unexpected error
        aborts the run or is logged, depending on the verification policy.
        """
        try:
            document_service.verify_documents_accessible(documents, self.verify_policy)
        except Exception as e:
            if self.config.abort_on_verification_error:
                logger.error(f"Document verification failed, aborting notifications: {e}", exc_info=True)
                raise DocumentVerificationError(f"Document verification failed: {e}") from e
            logger.error(
                f"Document verification failed, continuing without verification: {e}",
                exc_info=True
            )

    def _run_stage(
        self,
        notification_type: NotificationType,
        send: Callable[..., NotificationResult],
        shipment: Dict[str, Any],
        documents: List[ShipmentDocument],
        totals: ShipmentTotals
    ) -> NotificationResult:
        """Run one recipient class, recording any failure instead of raising."""
        try:
            return send(shipment, documents, totals)
        except Exception as e:
            logger.error(f"Failed to send {notification_type.value} notification: {e}", exc_info=True)
            return NotificationResult.failed(notification_type, str(e))

    def _prepare_attachments(
        self,
        notification_type: NotificationType,
        shipment: Dict[str, Any],
        documents: List[ShipmentDocument]
    ) -> List[Attachment]:
        """
        Download the documents for a recipient class.

        Documents that fail to download are left out; the email still goes.
        """
        shipment_type = get_shipment_type(shipment)
        attachments: List[Attachment] = []
        audience = f"{notification_type.value.capitalize()} Email"

        for doc in select_documents(notification_type, shipment_type, documents):
            if not doc.download_url:
                continue

            label = f"{DOCUMENT_LABELS.get(doc.kind, 'Document')} ({audience})"
            attached = document_service.download_document_with_retry(
                doc.download_url,
                doc.file_name,
                attachments,
                label,
                self.download_policy,
            )
            if attached:
                logger.info(f"Attached {label}: {doc.file_name}")
            else:
                logger.warning(f"Sending {notification_type.value} email without {label}: {doc.file_name}")

        logger.info(
            f"Prepared {len(attachments)} attachment(s) for {notification_type.value} "
            f"notification ({shipment_type} shipment)"
        )
        return attachments

    def _build_message(
        self,
        notification_type: NotificationType,
        to: str,
        shipment: Dict[str, Any],
        totals: ShipmentTotals,
        attachments: List[Attachment]
    ) -> MailMessage:
        email = self.composer.compose(notification_type, shipment, totals)
        return MailMessage(
            to=to,
            from_email=self.config.from_email,
            from_name=self.config.from_name,
            subject=email.subject,
            html=email.html,
            text=email.text,
            attachments=attachments,
        )

    def _send_customer_notification(
        self,
        shipment: Dict[str, Any],
        documents: List[ShipmentDocument],
        totals: ShipmentTotals
    ) -> NotificationResult:
        customer_email = recipient_service.resolve_customer_email(shipment)
        if not customer_email:
            logger.warning("No customer email found, skipping customer notification")
            return NotificationResult.skip(NotificationType.CUSTOMER, 'No customer email')

        attachments = self._prepare_attachments(NotificationType.CUSTOMER, shipment, documents)
        message = self._build_message(NotificationType.CUSTOMER, customer_email, shipment, totals, attachments)

        self.transport.send(message)
        logger.info(f"Customer notification sent to {customer_email} ({len(attachments)} attachment(s))")
        return NotificationResult.sent(NotificationType.CUSTOMER)

    def _send_carrier_notification(
        self,
        shipment: Dict[str, Any],
        documents: List[ShipmentDocument],
        totals: ShipmentTotals
    ) -> NotificationResult:
        carrier_email = recipient_service.resolve_carrier_email(
            shipment, fallback_email=self.config.carrier_fallback_email
        )
        if not carrier_email:
            logger.warning(
                f"No carrier email for {get_carrier_name(shipment)}, skipping carrier notification"
            )
            return NotificationResult.skip(NotificationType.CARRIER, 'No carrier email')

        attachments = self._prepare_attachments(NotificationType.CARRIER, shipment, documents)
        message = self._build_message(NotificationType.CARRIER, carrier_email, shipment, totals, attachments)

        self.transport.send(message)
        logger.info(f"Carrier notification sent to {carrier_email} ({len(attachments)} attachment(s))")
        return NotificationResult.sent(NotificationType.CARRIER)

    def _send_internal_notification(
        self,
        shipment: Dict[str, Any],
        documents: List[ShipmentDocument],
        totals: ShipmentTotals
    ) -> NotificationResult:
        """
        Send one internal email per subscriber.

        Individual send failures are logged; the class only fails when no
        subscriber could be reached.
        """
        subscribers = self.subscriber_lookup(shipment.get('companyID'))
        if not subscribers:
            logger.warning("No internal notification subscribers found")
            return NotificationResult.skip(NotificationType.INTERNAL, 'No subscribers')

        attachments = self._prepare_attachments(NotificationType.INTERNAL, shipment, documents)

        failures = []
        for subscriber in subscribers:
            message = self._build_message(
                NotificationType.INTERNAL, subscriber.user_email, shipment, totals, attachments
            )
            try:
                self.transport.send(message)
                logger.info(f"Internal notification sent to {subscriber.user_email}")
            except Exception as e:
                logger.error(f"Failed to send internal notification to {subscriber.user_email}: {e}")
                failures.append(subscriber.user_email)

        if len(failures) == len(subscribers):
            raise MailDeliveryError(
                f"All {len(subscribers)} internal notification(s) failed"
            )

        logger.info(
            f"Internal notifications sent: {len(subscribers) - len(failures)}/{len(subscribers)}"
        )
        return NotificationResult.sent(NotificationType.INTERNAL)

    def _log_summary(self, shipment_id: str, summary: DispatchSummary, elapsed: float) -> None:
        """Log dispatch outcome summary."""
        logger.info("=" * 50)
        logger.info(f"SHIPMENT NOTIFICATIONS COMPLETED: {shipment_id} ({elapsed:.2f}s)")
        for result in summary.results:
            logger.info(f"  {result!r}")
        logger.info(
            f"Total: {len(summary.results)}, "
            f"Failed: {summary.failed_count}"
        )
        logger.info("=" * 50)
