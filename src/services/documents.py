"""
Shipment document retrieval for email attachments.

This module polls generated documents until they are reachable and downloads
them as base64 PDF attachments. Download failures are logged and reported as
False; they never raise, so an email can still go out without the document.
"""

import base64
import logging
from typing import List, Optional

import requests
from tenacity import retry_if_exception_type, retry_if_result

from domain.errors import DocumentDownloadError
from domain.models import Attachment, ShipmentDocument
from services.retry import BackoffPolicy, LINEAR, build_retrying

logger = logging.getLogger(__name__)

# Base64 of "%PDF"
PDF_BASE64_HEADER = 'JVBERi'

HEAD_TIMEOUT_SECONDS = 5
GET_TIMEOUT_SECONDS = 10

DEFAULT_VERIFY_POLICY = BackoffPolicy(max_attempts=15, base_delay=1.0, multiplier=1.5)
DEFAULT_DOWNLOAD_POLICY = BackoffPolicy(max_attempts=3, base_delay=1.0, strategy=LINEAR)

# Module-level session (connection pooling reused across warm invocations)
http_session = requests.Session()


def _truncate_url(url: str) -> str:
    return url[:100] + '...' if len(url) > 100 else url


def _is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def _check_documents(documents: List[ShipmentDocument]) -> bool:
    """
    Run one HEAD round over every document.

    Returns:
        True if every document answered with a 2xx status
    """
    all_accessible = True
    results = []

    for doc in documents:
        name = doc.file_name or 'Unknown'

        if not doc.is_available:
            results.append(f"{name}: no download URL or document failed")
            all_accessible = False
            continue

        try:
            response = http_session.head(
                doc.download_url,
                timeout=HEAD_TIMEOUT_SECONDS,
                allow_redirects=True
            )
            accessible = _is_success(response)
            results.append(f"{name}: HTTP {response.status_code}")
        except requests.RequestException as e:
            accessible = False
            results.append(f"{name}: {e.__class__.__name__}: {e}")

        if not accessible:
            all_accessible = False

    logger.info(f"Verification results: {'; '.join(results) or 'no documents'}")
    return all_accessible


def verify_documents_accessible(
    documents: List[ShipmentDocument],
    policy: BackoffPolicy = DEFAULT_VERIFY_POLICY
) -> bool:
    """
    Poll document URLs with HEAD requests until all are reachable.

    Args:
        documents: Generated shipment documents
        policy: Polling budget and backoff (default: 15 attempts, 1s x1.5)

    Returns:
        True if every document became accessible, False if attempts ran out

    Note:
        - Inaccessible documents never fail the pipeline; exhaustion only
          logs a warning
        - Documents without a URL (or with success=False) are inaccessible
          on every attempt and cost no request
    """
    logger.info(
        f"Starting document accessibility verification: "
        f"documents={len(documents)}, max_attempts={policy.max_attempts}, "
        f"initial_delay={policy.base_delay}s"
    )

    def give_up(retry_state) -> bool:
        logger.warning(
            f"Document verification completed after {retry_state.attempt_number} attempts, "
            f"some documents may not be accessible"
        )
        return False

    retrying = build_retrying(
        policy,
        retry=retry_if_result(lambda accessible: not accessible),
        label='Document verification',
        on_give_up=give_up,
    )

    accessible = retrying(_check_documents, documents)
    if accessible:
        logger.info(f"All {len(documents)} document(s) accessible")
    return accessible


def _fetch_pdf(url: str, document_type: str) -> bytes:
    """
    Single GET attempt.

    Raises:
        DocumentDownloadError: On HTTP error, empty body or non-PDF content
    """
    try:
        response = http_session.get(
            url,
            headers={'Accept': 'application/pdf'},
            timeout=GET_TIMEOUT_SECONDS
        )
    except requests.RequestException as e:
        raise DocumentDownloadError(f"Request failed for {document_type}: {e}") from e

    logger.info(
        f"Download response for {document_type}: status={response.status_code}, "
        f"content_type={response.headers.get('Content-Type', 'unknown')}"
    )

    if not _is_success(response):
        raise DocumentDownloadError(f"HTTP {response.status_code}: {response.reason}")

    content = response.content
    if not content:
        raise DocumentDownloadError(f"Empty document received for {document_type}")

    return content


def download_document_with_retry(
    download_url: str,
    file_name: str,
    attachments: List[Attachment],
    document_type: str,
    policy: BackoffPolicy = DEFAULT_DOWNLOAD_POLICY
) -> bool:
    """
    Download a PDF and append it to the attachment list.

    Args:
        download_url: Public document URL
        file_name: Attachment file name
        attachments: List to append the Attachment to (modified in place)
        document_type: Label for log messages (e.g., "BOL (Customer Email)")
        policy: Retry budget (default: 3 attempts, waits of 2s then 3s)

    Returns:
        True if the document was attached, False after all attempts failed

    Example:
        >>> attachments = []
        >>> download_document_with_retry(url, "BOL-123.pdf", attachments, "BOL")
        True
        >>> attachments[0].filename
        'BOL-123.pdf'
    """
    attempt_counter = {'attempt': 0}

    def attempt_download() -> Attachment:
        attempt_counter['attempt'] += 1
        logger.info(
            f"Attempting to download {document_type} document "
            f"(attempt {attempt_counter['attempt']}/{policy.max_attempts}): "
            f"{file_name} from {_truncate_url(download_url)}"
        )

        content = _fetch_pdf(download_url, document_type)
        encoded = base64.b64encode(content).decode('ascii')

        if not encoded.startswith(PDF_BASE64_HEADER):
            raise DocumentDownloadError(
                f"Invalid PDF content for {document_type} (doesn't start with PDF header)"
            )

        logger.info(
            f"Downloaded {document_type} on attempt {attempt_counter['attempt']}: "
            f"{file_name} ({len(content):,} bytes, base64 {len(encoded):,} chars)"
        )
        return Attachment(content=encoded, filename=file_name)

    def give_up(retry_state) -> Optional[Attachment]:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.error(
            f"Final failure downloading {document_type} after "
            f"{retry_state.attempt_number} attempts: {error} "
            f"(file={file_name}, url={_truncate_url(download_url)})"
        )
        return None

    retrying = build_retrying(
        policy,
        retry=retry_if_exception_type(DocumentDownloadError),
        label=f"Download {document_type}",
        on_give_up=give_up,
    )

    attachment = retrying(attempt_download)
    if attachment is None:
        return False

    attachments.append(attachment)
    return True
