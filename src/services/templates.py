"""
Email template management.

Templates are loaded with the following priority:
1. S3 override (optional, for copy changes without redeploy)
2. Local filesystem (email_templates/ directory shipped inside this package)

Loaded templates are cached in memory for warm invocations with a TTL.
"""

import logging
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Configure S3 client with timeouts to prevent infinite hangs
s3_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=10,
    read_timeout=30
)

# Initialize S3 client at module level (thread-safe, reused)
s3_client = boto3.client('s3', config=s3_config)

# Bundled with the services package (see package-data in pyproject.toml)
TEMPLATES_DIR = Path(__file__).parent / 'email_templates'


class TemplateLoader:
    """
    Loads email templates from S3 or the bundled templates directory.

    Args:
        bucket: Optional S3 bucket holding template overrides
        key_prefix: Key prefix for overrides (e.g., "templates/")
        cache_ttl: Seconds a loaded template is reused before reloading
        templates_dir: Directory with bundled templates
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        key_prefix: str = 'templates/',
        cache_ttl: int = 300,
        templates_dir: Path = TEMPLATES_DIR
    ):
        self.bucket = bucket
        self.key_prefix = key_prefix
        self.cache_ttl = cache_ttl
        self.templates_dir = templates_dir
        # {template_name: (content, loaded_at)}
        self._cache: Dict[str, Tuple[str, float]] = {}

    def _load_from_filesystem(self, template_name: str) -> str:
        """
        Load template from the bundled templates directory.

        Raises:
            FileNotFoundError: If the template file doesn't exist
        """
        template_path = self.templates_dir / template_name

        with open(template_path, 'r', encoding='utf-8') as f:
            content = f.read()

        logger.info(f"Loaded template from filesystem: {template_path} ({len(content)} characters)")
        return content

    def _load_from_s3(self, template_name: str) -> str:
        """
        Load template override from S3.

        Raises:
            ValueError: If no template bucket is configured
            ClientError: If the object cannot be read
        """
        if not self.bucket:
            raise ValueError("Template bucket not configured")

        s3_key = f"{self.key_prefix}{template_name}"
        logger.info(f"Loading template from S3: s3://{self.bucket}/{s3_key}")

        response = s3_client.get_object(Bucket=self.bucket, Key=s3_key)
        content = response['Body'].read().decode('utf-8')

        logger.info(f"Loaded template from S3: {len(content)} characters")
        return content

    def load(self, template_name: str, use_cache: bool = True) -> str:
        """
        Load template with caching and fallback.

        Priority: Cache -> S3 override -> Local filesystem

        Args:
            template_name: Template file name (e.g., "customer_email.html")
            use_cache: Use cached version if available (default: True)

        Returns:
            str: Template content

        Raises:
            ValueError: If the template is not found anywhere
        """
        current_time = time.time()

        if use_cache and template_name in self._cache:
            cached_content, cached_time = self._cache[template_name]
            if current_time - cached_time < self.cache_ttl:
                return cached_content
            logger.info(f"Cache expired for template: {template_name}, reloading...")

        content = None

        if self.bucket:
            try:
                content = self._load_from_s3(template_name)
            except (ClientError, ValueError) as e:
                logger.info(
                    f"S3 template override not available ({e.__class__.__name__}), "
                    f"falling back to local filesystem"
                )

        if content is None:
            try:
                content = self._load_from_filesystem(template_name)
            except FileNotFoundError:
                logger.error(
                    f"Template not found: {template_name}. "
                    f"Expected location: {self.templates_dir / template_name}"
                )
                raise ValueError(f"Template '{template_name}' not found in S3 or local filesystem")

        self._cache[template_name] = (content, current_time)
        return content

    def clear_cache(self) -> None:
        """Clear the template cache."""
        self._cache.clear()
        logger.info("Template cache cleared")


def render_template(template: str, **variables) -> str:
    """
    Fill a template's {placeholders} with values.

    Values are inserted literally; braces inside shipment data are not
    interpreted as placeholders.

    Raises:
        ValueError: If the template references a variable that wasn't given

    Example:
        >>> render_template("Shipment {shipment_id} booked", shipment_id="IC-1")
        'Shipment IC-1 booked'
    """
    try:
        return template.format(**variables)
    except KeyError as e:
        missing_var = str(e).strip("'")
        logger.error(f"Missing variable in email template: {missing_var}")
        raise ValueError(f"Missing required variable in template: {missing_var}")
