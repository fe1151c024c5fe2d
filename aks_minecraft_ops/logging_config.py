"""Logging configuration and setup."""

import logging
import logging.handlers
import json
from datetime import datetime, timezone
from typing import Optional

from aks_minecraft_ops.config import config, LoggingConfig
from aks_minecraft_ops.exceptions import ConfigurationError


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        # Add extra fields if present
        if hasattr(record, 'operation'):
            log_entry['operation'] = record.operation
        if hasattr(record, 'status'):
            log_entry['status'] = record.status
        if hasattr(record, 'resource_group'):
            log_entry['resource_group'] = record.resource_group
        if hasattr(record, 'code'):
            log_entry['code'] = record.code

        return json.dumps(log_entry)


def setup_logging(logging_config: Optional[LoggingConfig] = None):
    """Set up logging configuration."""
    logging_config = logging_config or config.logging

    level = logging.getLevelName(logging_config.level.upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {logging_config.level}", config_key="AKS_MC_LOG_LEVEL")

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(console_handler)

    # File handler if configured
    if logging_config.file_path:
        file_handler = logging.handlers.RotatingFileHandler(
            logging_config.file_path,
            maxBytes=logging_config.max_file_size,
            backupCount=logging_config.backup_count
        )
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Set specific logger levels
    logging.getLogger('aks_minecraft_ops').setLevel(logging.DEBUG)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('kubernetes').setLevel(logging.WARNING)
