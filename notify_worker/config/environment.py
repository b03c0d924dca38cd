"""Environment variable loading and validation."""

import os
import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/notify_worker.db"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Secrets and deployment settings read from the process environment."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        cron_secret: Optional[str] = None,
        worker_service_token: Optional[str] = None,
        log_level: Optional[str] = None,
        msg91_auth_key: Optional[str] = None,
        msg91_sender_email: Optional[str] = None,
        msg91_sender_name: Optional[str] = None,
        msg91_email_domain: Optional[str] = None,
        msg91_sender_id: Optional[str] = None,
        msg91_route: Optional[str] = None,
        msg91_country_code: Optional[str] = None,
        msg91_whatsapp_number: Optional[str] = None,
    ):
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.cron_secret = cron_secret or None
        self.worker_service_token = worker_service_token or None
        self.log_level = log_level
        self.msg91_auth_key = msg91_auth_key
        self.msg91_sender_email = msg91_sender_email
        self.msg91_sender_name = msg91_sender_name
        self.msg91_email_domain = msg91_email_domain
        self.msg91_sender_id = msg91_sender_id
        self.msg91_route = msg91_route
        self.msg91_country_code = msg91_country_code
        self.msg91_whatsapp_number = msg91_whatsapp_number

    def __repr__(self) -> str:
        return (
            f"EnvironmentConfig(database_url={self.database_url!r}, "
            f"cron_secret_set={self.cron_secret is not None}, "
            f"msg91_auth_key_set={self.msg91_auth_key is not None})"
        )


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    All variables are optional. Provider credentials are checked by each
    channel at send time, so a worker that only delivers in-app notifications
    can run without them.

    Variables:
    - DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/notify_worker.db)
    - CRON_SECRET: shared secret accepted in the X-Cron-Secret header
    - WORKER_SERVICE_TOKEN: when set, bearer tokens must match it
    - LOG_LEVEL: override log level
    - MSG91_AUTH_KEY, MSG91_SENDER_EMAIL, MSG91_SENDER_NAME, MSG91_EMAIL_DOMAIN
    - MSG91_SENDER_ID, MSG91_ROUTE, MSG91_COUNTRY_CODE
    - MSG91_WHATSAPP_NUMBER

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If a variable is set to an invalid value
    """
    errors = []

    log_level = _getenv("LOG_LEVEL")
    sender_email = _getenv("MSG91_SENDER_EMAIL")
    route = _getenv("MSG91_ROUTE")
    country_code = _getenv("MSG91_COUNTRY_CODE")
    whatsapp_number = _getenv("MSG91_WHATSAPP_NUMBER")

    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if sender_email:
        try:
            sender_email = validate_email(sender_email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            errors.append(f"Invalid MSG91_SENDER_EMAIL '{sender_email}': {e}")

    if route and not route.isdigit():
        errors.append(f"Invalid MSG91_ROUTE: '{route}'. Must be numeric.")

    if country_code and not re.fullmatch(r"\d{1,4}", country_code):
        errors.append(
            f"Invalid MSG91_COUNTRY_CODE: '{country_code}'. Must be 1-4 digits without '+'."
        )

    if whatsapp_number and not re.fullmatch(r"\+?\d{6,15}", whatsapp_number):
        errors.append(f"Invalid MSG91_WHATSAPP_NUMBER: '{whatsapp_number}'")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Check that email addresses and phone numbers are valid",
            ],
        )

    return EnvironmentConfig(
        database_url=_getenv("DATABASE_URL"),
        cron_secret=_getenv("CRON_SECRET"),
        worker_service_token=_getenv("WORKER_SERVICE_TOKEN"),
        log_level=log_level.upper() if log_level else None,
        msg91_auth_key=_getenv("MSG91_AUTH_KEY"),
        msg91_sender_email=sender_email,
        msg91_sender_name=_getenv("MSG91_SENDER_NAME"),
        msg91_email_domain=_getenv("MSG91_EMAIL_DOMAIN"),
        msg91_sender_id=_getenv("MSG91_SENDER_ID"),
        msg91_route=route,
        msg91_country_code=country_code,
        msg91_whatsapp_number=whatsapp_number,
    )


def _getenv(name: str) -> Optional[str]:
    """Read a variable, treating blank values as unset."""
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None
