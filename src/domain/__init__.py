"""
Domain layer for shipment notification business logic.

This layer contains:
- Data models (type-safe structures)
- Email composition (display values and template rendering)
- Business logic (notification dispatch pipeline)
- Error types (explicit failure taxonomy)
"""
