"""
Logging configuration for the ClinicDesk backend.

All application logs are structlog events rendered as JSON lines on stdout.
Credential material is masked before rendering, so services may pass request
fields through without filtering them first.
"""

import logging
import sys
from typing import Any, Dict, Optional
import structlog
from structlog.stdlib import LoggerFactory
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from clinicdesk.core.config import settings

# Event keys whose values are never written out
REDACTED_KEYS = frozenset({"password", "token", "access_token", "authorization", "token_hash"})


def redact_credentials(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "[redacted]"
    return event_dict


def configure_logging():
    """Configure structlog, stdlib logging and, when a DSN is set, Sentry."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            redact_credentials,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if settings.debug else logging.INFO,
        stream=sys.stdout,
    )
    # Statement logging is only useful while debugging queries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            integrations=[FastApiIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=0.1 if settings.is_production else 1.0,
            environment=settings.app_env,
            release=f"{settings.app_name.lower()}@{settings.app_version}",
            send_default_pii=False,
        )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class AuditLogger:
    """Security trail: denied access, credential lifecycle and failed compensations."""

    def __init__(self):
        self.logger = get_logger("clinicdesk.audit")

    def log_security_event(
        self,
        event_type: str,
        user_id: Optional[str] = None,
        clinic_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.logger.warning(
            "Security event",
            event_type=event_type,
            user_id=user_id,
            clinic_id=clinic_id,
            details=details or {},
        )

    def log_access_denied(self, user_id: str, clinic_id: str, action: str, reason: str):
        self.log_security_event(
            "access_denied",
            user_id=user_id,
            clinic_id=clinic_id,
            details={"action": action, "reason": reason},
        )

    def log_compensation_failed(self, operation: str, user_id: str, clinic_id: str, error: Exception):
        """Record a multi-step write that could not be undone and needs manual cleanup."""
        self.logger.error(
            "Compensation failed",
            event_type=f"{operation}_compensation_failed",
            user_id=user_id,
            clinic_id=clinic_id,
            error_type=type(error).__name__,
            error=str(error),
        )


# Global audit logger
audit_logger = AuditLogger()


class RequestLogger:

    def __init__(self):
        self.logger = get_logger("clinicdesk.requests")

    async def log_request(self, request, response, process_time: float):
        log = self.logger.warning if response.status_code >= 500 else self.logger.info
        log(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(process_time * 1000, 1),
            clinic_id=request.headers.get("x-clinic-id"),
            user_agent=request.headers.get("user-agent"),
            ip_address=request.client.host if request.client else None,
        )


# Global request logger
request_logger = RequestLogger()
