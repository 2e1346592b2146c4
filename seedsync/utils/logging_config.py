"""
Logging setup for seedsync

Two output styles: human-readable console lines for the CLI, and one JSON
object per line for the Lambda runtime, where logs end up in a log service.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from seedsync.utils.correlation import setup_correlation_logging

CONSOLE_FORMAT = '[%(asctime)s] %(levelname)s [%(correlation_id)s] %(name)s - %(message)s'
CONSOLE_DATEFMT = '%Y-%m-%d %H:%M:%S'

# Attributes copied from `extra=` into the JSON document when present
EXTRA_FIELDS = ('table', 'request_type', 'state', 'duration', 'purged', 'written')


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter with correlation ID support."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'correlation_id': getattr(record, 'correlation_id', 'N/A'),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_output: bool = False,
    logger: Optional[logging.Logger] = None
) -> logging.Handler:
    """
    Attach a single seedsync handler to the given (default: root) logger.

    Calling it again replaces the previously installed handler, so warm
    Lambda containers do not duplicate output.

    Args:
        level: Log level name or number
        json_output: Emit JSON lines instead of console text
        logger: Logger to configure

    Returns:
        The installed handler
    """
    target = logger or logging.getLogger()

    for existing in list(target.handlers):
        if getattr(existing, '_seedsync_handler', False):
            target.removeHandler(existing)

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
    setup_correlation_logging(handler)
    handler._seedsync_handler = True

    target.addHandler(handler)
    target.setLevel(level.upper() if isinstance(level, str) else level)
    return handler
