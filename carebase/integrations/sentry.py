# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   1. Create a Python project in Sentry
#   2. Copy DSN to .env: SENTRY_DSN=https://...@sentry.io/...
#
# Usage:
#   init_sentry() is called at app startup (in carebase/api/app.py)
#
# =============================================================================

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from carebase.config import get_settings

logger = logging.getLogger(__name__)


def init_sentry() -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    settings = get_settings()

    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        server_name="carebase",

        # Sample 10% of transactions in production
        traces_sample_rate=0.1 if settings.is_production else 1.0,

        integrations=[
            FastApiIntegration(transaction_style="url"),
            StarletteIntegration(transaction_style="url"),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],

        # Clinical data: never send PII
        send_default_pii=False,

        before_send=_filter_events,
        before_send_transaction=_filter_transactions,
    )

    logger.info(f"Sentry initialized for {settings.environment}")
    return True


# Request data that must never leave the server
_SENSITIVE_HEADERS = {"authorization", "cookie", "x-signature"}
_SENSITIVE_PARAMS = ("Signature", "code", "access_token")


def _scrub_request(request: dict) -> None:
    headers = request.get("headers") or {}
    for key in list(headers.keys()):
        if key.lower() in _SENSITIVE_HEADERS:
            headers[key] = "[Filtered]"

    query = str(request.get("query_string") or "")
    if any(f"{param}=" in query for param in _SENSITIVE_PARAMS):
        request["query_string"] = "[Filtered]"


def _filter_events(event: dict, hint: dict) -> dict | None:
    """Drop client errors and scrub credentials before an event is sent."""
    exc_info = hint.get("exc_info")
    if exc_info:
        from fastapi import HTTPException

        # A 4xx is an outcome the caller caused, not an incident
        if isinstance(exc_info[1], HTTPException) and exc_info[1].status_code < 500:
            return None

    if "request" in event:
        _scrub_request(event["request"])

    return event


def _filter_transactions(event: dict, hint: dict) -> dict | None:
    """Skip health probes."""
    if event.get("transaction") == "/health":
        return None
    return event


def capture_exception(error: BaseException, **context) -> str | None:
    """
    Report an exception that was handled without reaching the framework.

    Context keys become tags so events can be grouped by resource.
    Returns the Sentry event id, or None when reporting is disabled.
    """
    if not sentry_sdk.is_initialized():
        logger.error(f"Unreported error: {error!r}", extra={"context": context})
        return None

    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            scope.set_tag(key, str(value))
        return sentry_sdk.capture_exception(error)
