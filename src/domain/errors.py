"""
Exception types for the notification pipeline.
"""


class NotificationError(Exception):
    """Base class for notification pipeline failures."""
    pass


class ValidationError(NotificationError):
    """Raised when the invocation payload is structurally invalid."""
    pass


class DocumentVerificationError(NotificationError):
    """Raised when the document accessibility check fails unexpectedly."""
    pass


class DocumentDownloadError(NotificationError):
    """Raised by a single download attempt; retried until attempts run out."""
    pass


class SubscriptionLookupError(NotificationError):
    """Raised when internal notification subscribers cannot be loaded."""
    pass


class MailDeliveryError(NotificationError):
    """Raised when the mail transport rejects a message."""
    pass
