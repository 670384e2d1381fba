"""Structured logging for API requests."""

import logging
from typing import Any

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at process start."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


class StructuredRequestLogger:
    """Structured logger for dispatched API requests."""

    def log_request(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        latency_ms: float,
        tenant_slug: str | None = None,
        principal_id: str | None = None,
        auth_type: str | None = None,
        error_code: str | None = None,
    ) -> None:
        """Log one dispatched request with structured data."""
        log_data: dict[str, Any] = {
            "endpoint": endpoint,
            "method": method,
            "status": status_code,
            "latency_ms": round(latency_ms, 2),
        }

        if tenant_slug:
            log_data["tenant"] = tenant_slug
        if principal_id:
            log_data["principal_id"] = principal_id
        if auth_type:
            log_data["auth_type"] = auth_type
        if error_code:
            log_data["error_code"] = error_code

        log_msg = f"API request: {method} {endpoint} - {status_code}"

        if status_code >= 500:
            logger.error(log_msg, extra={"structured": log_data})
        elif status_code >= 400:
            logger.warning(log_msg, extra={"structured": log_data})
        else:
            logger.info(log_msg, extra={"structured": log_data})
