"""
Runtime configuration for the shipment notification function.

All settings come from environment variables (Lambda configuration) and are
collected into a single NotificationConfig that is validated once at cold
start and passed into the dispatcher.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_FROM_EMAIL = 'noreply@integratedcarriers.com'
DEFAULT_FROM_NAME = 'Integrated Carriers'

MAIL_TRANSPORTS = ('sendgrid', 'ses')
VERIFICATION_FAILURE_POLICIES = ('abort', 'continue')


class ConfigurationError(Exception):
    """Raised when function configuration is invalid or missing."""
    pass


@dataclass(frozen=True)
class NotificationConfig:
    """
    Settings for one deployed notification function.

    Attributes:
        environment: Deployment environment name (dev, staging, prod)
        mail_transport: "sendgrid" or "ses"
        sendgrid_api_key: SendGrid API key (required for the sendgrid transport)
        aws_region: Region used by the SES transport
        from_email: Sender address on every notification
        from_name: Sender display name
        carrier_fallback_email: Address used when no carrier email resolves
            (None means the carrier notification is skipped)
        verify_max_attempts: HEAD polling rounds before giving up
        verify_initial_delay: Seconds to wait after the first failed round
        verify_backoff_multiplier: Growth factor between polling rounds
        download_max_attempts: GET attempts per document
        download_delay_step: Seconds added to the wait before each retry
        verification_failure_policy: "abort" or "continue" when the verifier
            itself fails unexpectedly
        template_bucket: Optional S3 bucket overriding bundled templates
        template_key_prefix: Key prefix for template overrides
        template_cache_ttl: Seconds a loaded template stays cached
    """
    environment: str = 'dev'
    mail_transport: str = 'sendgrid'
    sendgrid_api_key: Optional[str] = None
    aws_region: str = 'us-east-1'
    from_email: str = DEFAULT_FROM_EMAIL
    from_name: str = DEFAULT_FROM_NAME
    carrier_fallback_email: Optional[str] = None
    verify_max_attempts: int = 15
    verify_initial_delay: float = 1.0
    verify_backoff_multiplier: float = 1.5
    download_max_attempts: int = 3
    download_delay_step: float = 1.0
    verification_failure_policy: str = 'abort'
    template_bucket: Optional[str] = None
    template_key_prefix: str = 'templates/'
    template_cache_ttl: int = 300

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'NotificationConfig':
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            NotificationConfig populated from the environment

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ

        try:
            return cls(
                environment=env.get('ENVIRONMENT', 'dev'),
                mail_transport=env.get('MAIL_TRANSPORT', 'sendgrid').strip().lower(),
                sendgrid_api_key=env.get('SENDGRID_API_KEY') or None,
                aws_region=env.get('AWS_REGION', env.get('AWS_DEFAULT_REGION', 'us-east-1')),
                from_email=env.get('SEND_FROM_EMAIL', DEFAULT_FROM_EMAIL),
                from_name=env.get('SEND_FROM_NAME', DEFAULT_FROM_NAME),
                carrier_fallback_email=env.get('CARRIER_FALLBACK_EMAIL') or None,
                verify_max_attempts=int(env.get('VERIFY_MAX_ATTEMPTS', '15')),
                verify_initial_delay=float(env.get('VERIFY_INITIAL_DELAY_SECONDS', '1.0')),
                verify_backoff_multiplier=float(env.get('VERIFY_BACKOFF_MULTIPLIER', '1.5')),
                download_max_attempts=int(env.get('DOWNLOAD_MAX_ATTEMPTS', '3')),
                download_delay_step=float(env.get('DOWNLOAD_DELAY_STEP_SECONDS', '1.0')),
                verification_failure_policy=env.get('VERIFICATION_FAILURE_POLICY', 'abort').strip().lower(),
                template_bucket=env.get('TEMPLATE_BUCKET') or None,
                template_key_prefix=env.get('TEMPLATE_KEY_PREFIX', 'templates/'),
                template_cache_ttl=int(env.get('TEMPLATE_CACHE_TTL', '300')),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric configuration value: {e}")

    def validate(self) -> 'NotificationConfig':
        """
        Fail fast on configuration that would break every invocation.

        Returns:
            self, so calls can be chained after from_environment()

        Raises:
            ConfigurationError: If any setting is missing or invalid
        """
        if self.mail_transport not in MAIL_TRANSPORTS:
            raise ConfigurationError(
                f"MAIL_TRANSPORT must be one of {', '.join(MAIL_TRANSPORTS)}, "
                f"got: '{self.mail_transport}'"
            )

        if self.mail_transport == 'sendgrid' and not self.sendgrid_api_key:
            raise ConfigurationError(
                "SENDGRID_API_KEY environment variable is required but not set. "
                "Please configure this in your SAM template or Lambda environment."
            )

        if self.verification_failure_policy not in VERIFICATION_FAILURE_POLICIES:
            raise ConfigurationError(
                f"VERIFICATION_FAILURE_POLICY must be one of "
                f"{', '.join(VERIFICATION_FAILURE_POLICIES)}, "
                f"got: '{self.verification_failure_policy}'"
            )

        if self.verify_max_attempts < 1 or self.download_max_attempts < 1:
            raise ConfigurationError("Attempt counts must be at least 1")

        if not self.from_email:
            raise ConfigurationError("SEND_FROM_EMAIL cannot be empty")

        logger.info(
            f"Notification config validated: environment={self.environment}, "
            f"transport={self.mail_transport}, "
            f"verification_policy={self.verification_failure_policy}, "
            f"carrier_fallback={'set' if self.carrier_fallback_email else 'skip'}"
        )
        return self

    @property
    def abort_on_verification_error(self) -> bool:
        return self.verification_failure_policy == 'abort'
