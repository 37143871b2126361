"""
Reusable service functions for the notification pipeline.

This package contains document retrieval, recipient resolution, Firestore
subscription lookups, email templates and the shared retry helpers.
"""

__all__ = ['documents', 'recipients', 'retry', 'subscriptions', 'templates']
