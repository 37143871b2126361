"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('SENDGRID_API_KEY', 'SG.test-key')
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')

# %PDF-1.4 header plus a minimal body
PDF_BYTES = b'%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n%%EOF\n'


@pytest.fixture
def pdf_bytes():
    """Bytes of a minimal PDF document."""
    return PDF_BYTES


@pytest.fixture
def freight_shipment():
    """Freight shipment with a quickship terminal contact and two packages."""
    return {
        'shipmentID': 'IC-1001',
        'companyID': 'COMP-1',
        'creationMethod': 'quickship',
        'carrier': 'Day & Ross',
        'selectedCarrierContactId': 'TERM1_dispatch_0',
        'selectedCarrier': {
            'name': 'Day & Ross',
            'emailContacts': [
                {
                    'id': 'TERM1',
                    'name': 'Toronto',
                    'contactTypes': {'dispatch': ['ops@x.com']}
                }
            ]
        },
        'shipmentInfo': {
            'shipmentType': 'freight',
            'shipmentDate': '2025-01-06',
            'billType': 'prepaid',
            'shipperReferenceNumber': 'PO-778',
        },
        'shipFrom': {
            'companyName': 'Acme Widgets',
            'street': '1 King St W',
            'city': 'Toronto',
            'state': 'ON',
            'postalCode': 'M5H 1A1',
            'country': 'CA',
        },
        'shipTo': {
            'companyName': 'Buyer Co',
            'street': '200 Main St',
            'city': 'Buffalo',
            'state': 'NY',
            'postalCode': '14202',
            'country': 'US',
            'email': 'buyer@example.com',
        },
        'packages': [
            {'itemDescription': 'Pallet', 'packagingQuantity': 2, 'weight': 5},
            {'itemDescription': 'Crate', 'weight': 15},
        ],
    }


@pytest.fixture
def freight_documents():
    """Document generator results for a freight shipment (BOL + confirmation)."""
    return [
        {
            'success': True,
            'data': {
                'downloadUrl': 'https://files.example.com/BOL-IC-1001.pdf',
                'fileName': 'BOL-IC-1001.pdf'
            }
        },
        {
            'success': True,
            'data': {
                'downloadUrl': 'https://files.example.com/CARRIER-CONFIRMATION-IC-1001.pdf',
                'fileName': 'CARRIER-CONFIRMATION-IC-1001.pdf'
            }
        },
    ]
