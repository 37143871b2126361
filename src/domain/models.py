"""
Data models for the shipment notification domain.

These type-safe data structures define clear contracts between components.
Shipment data itself stays a plain dict (it is owned upstream and only read
here); everything the pipeline produces is a dataclass.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any

# Leading decimal number, e.g. "10" in "10 lbs"
NUMERIC_PREFIX = re.compile(r'^\s*[-+]?(\d+(\.\d*)?|\.\d+)')


def _parse_number(value: Any) -> Optional[float]:
    """
    Read the leading number from a package field.

    Example:
        >>> _parse_number('10 lbs')
        10.0
        >>> _parse_number('heavy') is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    match = NUMERIC_PREFIX.match(str(value)) if value is not None else None
    return float(match.group(0)) if match else None


class DocumentKind(str, Enum):
    """Classification of a generated shipment document."""
    BOL = 'bol'
    CARRIER_CONFIRMATION = 'carrier_confirmation'
    SHIPPING_LABEL = 'shipping_label'
    OTHER = 'other'


class NotificationType(str, Enum):
    """Recipient class of a notification."""
    CUSTOMER = 'customer'
    CARRIER = 'carrier'
    INTERNAL = 'internal'


class DispatchStage(str, Enum):
    """Stages of one dispatch run, in execution order."""
    VERIFYING_DOCUMENTS = 'verifying_documents'
    SENDING_CUSTOMER = 'sending_customer'
    SENDING_CARRIER = 'sending_carrier'
    SENDING_INTERNAL = 'sending_internal'
    DONE = 'done'


def _classify_document(type_tag: Optional[str], file_name: str) -> DocumentKind:
    """
    Resolve the document kind.

    An explicit type tag from the document generator wins. Documents without
    a recognised tag fall back to the filename conventions used by the
    generators (``BOL-...``, ``CARRIER-CONFIRMATION-...``, ``...-label.pdf``).
    """
    if type_tag:
        try:
            return DocumentKind(type_tag.lower())
        except ValueError:
            pass

    if 'label' in file_name:
        return DocumentKind.SHIPPING_LABEL
    if 'BOL' in file_name:
        return DocumentKind.BOL
    if 'CARRIER' in file_name:
        return DocumentKind.CARRIER_CONFIRMATION
    return DocumentKind.OTHER


@dataclass
class ShipmentDocument:
    """
    A document generated for the shipment (BOL, confirmation, label).

    Attributes:
        success: Whether the generator reported success
        download_url: Public URL of the PDF (None if not produced)
        file_name: File name used for the email attachment
        kind: Document classification
    """
    success: bool
    download_url: Optional[str]
    file_name: str
    kind: DocumentKind = DocumentKind.OTHER

    @property
    def is_available(self) -> bool:
        """Check if the document can be fetched at all."""
        return bool(self.success and self.download_url)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'ShipmentDocument':
        """
        Build from a document generator result.

        Accepts ``{success, type?, data: {downloadUrl, fileName|filename, type?}}``.

        Raises:
            TypeError: If the result is not a mapping
        """
        if not isinstance(raw, dict):
            raise TypeError(f"Document result must be a dict, got {type(raw).__name__}")

        data = raw.get('data') or {}
        file_name = data.get('fileName') or data.get('filename') or ''
        type_tag = raw.get('type') or data.get('type')

        return cls(
            success=bool(raw.get('success')),
            download_url=data.get('downloadUrl') or None,
            file_name=file_name,
            kind=_classify_document(type_tag, file_name),
        )


@dataclass
class Attachment:
    """
    Email attachment built from a downloaded document.

    Attributes:
        content: Base64-encoded file content
        filename: Attachment file name
        mime_type: MIME type (always PDF for shipment documents)
    """
    content: str
    filename: str
    mime_type: str = 'application/pdf'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the mail transport attachment format."""
        return {
            'content': self.content,
            'filename': self.filename,
            'type': self.mime_type,
            'disposition': 'attachment',
        }


@dataclass
class Subscriber:
    """Internal user subscribed to shipment_created notifications."""
    user_email: str
    user_id: Optional[str] = None


@dataclass
class ShipmentTotals:
    """
    Package totals shown in every notification.

    Attributes:
        total_weight: Sum of weight x packagingQuantity
        total_pieces: Sum of packagingQuantity
    """
    total_weight: float = 0.0
    total_pieces: int = 0

    @classmethod
    def from_packages(cls, packages: Optional[List[Dict[str, Any]]]) -> 'ShipmentTotals':
        """
        Compute totals from a shipment's package list.

        Missing or unreadable quantity counts as 1, weight as 0. Text values
        use their leading number ("10 lbs" weighs 10). Entries that are not
        objects are ignored.
        """
        total_weight = 0.0
        total_pieces = 0

        for package in packages or []:
            if not isinstance(package, dict):
                continue
            quantity = int(_parse_number(package.get('packagingQuantity')) or 1)
            weight = _parse_number(package.get('weight')) or 0.0
            total_weight += weight * quantity
            total_pieces += quantity

        return cls(total_weight=total_weight, total_pieces=total_pieces)


@dataclass
class NotificationResult:
    """
    Outcome of one recipient class.

    Attributes:
        type: Recipient class
        success: Whether the class completed without error
        error: Error description (if the send failed)
        skipped: True when no email was attempted on purpose
        reason: Why the class was skipped
    """
    type: NotificationType
    success: bool
    error: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def sent(cls, notification_type: NotificationType) -> 'NotificationResult':
        return cls(type=notification_type, success=True)

    @classmethod
    def failed(cls, notification_type: NotificationType, error: str) -> 'NotificationResult':
        return cls(type=notification_type, success=False, error=error)

    @classmethod
    def skip(cls, notification_type: NotificationType, reason: str) -> 'NotificationResult':
        return cls(type=notification_type, success=True, skipped=True, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'type': self.type.value, 'success': self.success}
        if self.error is not None:
            result['error'] = self.error
        if self.skipped:
            result['skipped'] = True
        if self.reason is not None:
            result['reason'] = self.reason
        return result

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.skipped:
            return f"NotificationResult(type={self.type.value}, skipped=True, reason={self.reason})"
        if self.success:
            return f"NotificationResult(type={self.type.value}, success=True)"
        return f"NotificationResult(type={self.type.value}, success=False, error={self.error})"


@dataclass
class DispatchSummary:
    """Return value of one dispatch run."""
    success: bool
    message: str
    results: List[NotificationResult] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'results': [r.to_dict() for r in self.results],
        }
