"""
wifi-ble-prov - Logging Configuration

One basicConfig call per process, made by the service entry point. Modules
log through logging.getLogger(__name__).
"""

import logging
from typing import Optional

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_LEVEL = logging.INFO


def setup_service_logging(
    service_name: str,
    level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT
) -> logging.Logger:
    """
    Configure root logging and return the service logger.

    Args:
        service_name: logger name, e.g. 'wifi-ble-prov'
        level: numeric level; anything above CRITICAL silences the service
        log_format: format string for the root handler
    """
    logging.basicConfig(level=level, format=log_format)
    logging.getLogger().setLevel(level)
    return logging.getLogger(service_name)


def log_service_start(logger: logging.Logger, service_name: str) -> None:
    logger.info("=" * 60)
    logger.info(f"{service_name} Starting")
    logger.info("=" * 60)


def log_service_ready(logger: logging.Logger, service_name: str, status_msg: Optional[str] = None) -> None:
    if status_msg:
        logger.info(f"{service_name} ready - {status_msg}")
    else:
        logger.info(f"{service_name} ready")
