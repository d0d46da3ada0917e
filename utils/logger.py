"""
Logging helpers shared by services, routers and middleware.
"""

import logging
from typing import Any, Dict, Optional


SENSITIVE_FIELDS = {
    'password', 'token', 'secret', 'authorization', 'api_key', 'hash'
}


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``data`` that is safe to log.

    Keys containing a sensitive word are masked: tokens keep their first
    8 characters so a session can still be correlated, everything else
    (passwords, secrets, hashes) is fully redacted. Nested dicts are
    sanitized recursively.
    """
    sanitized = data.copy()

    for key, value in sanitized.items():
        lowered = key.lower()
        if any(sensitive in lowered for sensitive in SENSITIVE_FIELDS):
            if isinstance(value, str):
                if 'token' in lowered and len(value) > 8:
                    sanitized[key] = f"{value[:8]}..."
                else:
                    sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    client_ip: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None
):
    """
    Log one HTTP request; the level follows the status code (5xx error,
    4xx warning, otherwise info).
    """
    log_data = {
        "http_method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
    }

    if client_ip:
        log_data["client_ip"] = client_ip

    if extra:
        log_data.update(sanitize_log_data(extra))

    message = f'{client_ip or "-"} - "{method} {path}" {status_code}'
    if status_code >= 500:
        logger.error(message, extra=log_data)
    elif status_code >= 400:
        logger.warning(message, extra=log_data)
    else:
        logger.info(message, extra=log_data)
