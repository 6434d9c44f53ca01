"""Logging setup for the bill scanner: console output plus optional rotating log files."""

import os
import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional

CONSOLE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
FILE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s'
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ('werkzeug', 'urllib3', 'PIL')


def _rotating_file(path: str, level: str, formatter: str) -> Dict[str, Any]:
    return {
        'class': 'logging.handlers.RotatingFileHandler',
        'level': level,
        'formatter': formatter,
        'filename': path,
        'maxBytes': MAX_LOG_BYTES,
        'backupCount': LOG_BACKUPS,
        'encoding': 'utf-8'
    }


def build_logging_config(log_dir: str = 'logs', debug_mode: bool = False,
                         log_to_file: bool = True) -> Dict[str, Any]:
    """
    Build the dictConfig mapping used by setup_logging.

    Console output always goes to stderr so stdout stays clean for CLI JSON.
    With ``log_to_file``, scan events are written as JSON lines to
    ``scans.log`` and errors to ``errors.log``; debug mode adds ``debug.log``.
    """
    level = 'DEBUG' if debug_mode else 'INFO'
    handlers: Dict[str, Any] = {
        'console': {
            'class': 'logging.StreamHandler',
            'level': level,
            'formatter': 'console',
            'stream': 'ext://sys.stderr'
        }
    }

    if log_to_file:
        handlers['scan_file'] = _rotating_file(os.path.join(log_dir, 'scans.log'), 'INFO', 'json')
        handlers['error_file'] = _rotating_file(os.path.join(log_dir, 'errors.log'), 'ERROR', 'file')
        if debug_mode:
            handlers['debug_file'] = _rotating_file(os.path.join(log_dir, 'debug.log'), 'DEBUG', 'file')

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'console': {'format': CONSOLE_FORMAT},
            'file': {'format': FILE_FORMAT},
            'json': {'()': JsonFormatter}
        },
        'handlers': handlers,
        'root': {
            'level': level,
            'handlers': list(handlers)
        },
        'loggers': {
            name: {'level': 'WARNING'} for name in QUIET_LOGGERS
        }
    }


def setup_logging(
    log_dir: str = 'logs',
    debug_mode: bool = False,
    log_to_file: bool = True
) -> None:
    """
    Configure logging for the API server or the CLI.

    Args:
        log_dir: Directory for log files, created if missing
        debug_mode: Log at DEBUG instead of INFO
        log_to_file: Whether to write log files at all
    """
    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig(build_logging_config(log_dir, debug_mode, log_to_file))
    logging.getLogger(__name__).debug(f"Logging configured (log_dir={log_dir}, files={log_to_file})")


class JsonFormatter(logging.Formatter):
    """Formats records as one JSON object per line, including any attached context."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'time': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'location': f"{record.module}:{record.lineno}",
            'message': record.getMessage()
        }
        context = getattr(record, 'context', None)
        if context:
            entry['context'] = context
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def log_with_context(logger: logging.Logger, level: int, msg: str,
                     context: Optional[Dict[str, Any]] = None, **kwargs) -> None:
    """
    Log a message with structured context attached to the record.

    The context appears under ``context`` in JSON log files and is ignored by
    the plain text formatters.
    """
    if context:
        extra = dict(kwargs.pop('extra', None) or {})
        extra['context'] = context
        kwargs['extra'] = extra
    logger.log(level, msg, **kwargs)
