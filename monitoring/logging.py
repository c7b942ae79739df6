"""
Structured Logging - Monitoring Layer

Provides structured logging for the content storage service with:
- JSON formatting for log aggregation
- Context injection (request ID, user ID, content ID)
- Keyword extras on every log call
- Configurable log levels per module

@.architecture
Incoming: core/content/*.py, data/*, scripts/init_schema.py, All modules via get_logger() --- {str log_level, str format_type, Dict[str, str] module_levels, str request_id/user_id/content_id}
Processing: configure_logging(), JSONFormatter.format(), set_request_context(), StructuredLogger._log_with_context() --- {4 jobs: context_injection, formatting, log_configuration, structured_logging}
Outgoing: sys.stdout, Log files, All modules --- {StructuredLogger instances, JSON formatted logs, context variables}
"""

import logging
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar
from pathlib import Path

# Context variables for request tracking
request_id_ctx: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_ctx: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
content_id_ctx: ContextVar[Optional[str]] = ContextVar('content_id', default=None)


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    One JSON object per line, with context variables and keyword extras merged in.
    """

    def __init__(
        self,
        include_traceback: bool = True,
        include_context: bool = True
    ):
        """
        Initialize JSON formatter.

        Args:
            include_traceback: Include exception traceback in output
            include_context: Include context variables (request_id, user_id, content_id)
        """
        super().__init__()
        self.include_traceback = include_traceback
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if self.include_context:
            for key, ctx in (
                ('request_id', request_id_ctx),
                ('user_id', user_id_ctx),
                ('content_id', content_id_ctx),
            ):
                value = ctx.get()
                if value:
                    log_data[key] = value

        if record.exc_info and self.include_traceback:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_data['extra'] = record.extra_fields

        return json.dumps(log_data, default=str)


class ContextFilter(logging.Filter):
    """
    Logging filter that adds context variables to log records.

    Lets the text formatter reference %(request_id)s and %(content_id)s.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get() or '-'
        record.user_id = user_id_ctx.get() or '-'
        record.content_id = content_id_ctx.get() or '-'
        return True


class StructuredLogger:
    """
    Wrapper for Python logger with structured logging support.

    Keyword arguments passed to any log method end up in the record's
    ``extra_fields`` and are rendered by JSONFormatter.
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log_with_context(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any
    ) -> None:
        extra = {'extra_fields': kwargs} if kwargs else {}
        self._logger.log(level, message, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message with context."""
        self._log_with_context(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message with context."""
        self._log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message with context."""
        self._log_with_context(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message with context."""
        self._log_with_context(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log_with_context(logging.ERROR, message, exc_info=True, **kwargs)


def configure_logging(
    level: str = "INFO",
    format_type: str = "json",
    log_file: Optional[Path] = None,
    enable_console: bool = True,
    module_levels: Optional[Dict[str, str]] = None
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ("json" or "text")
        log_file: Optional file path for log output
        enable_console: Enable console (stdout) logging
        module_levels: Per-module log levels (e.g. {"psycopg.pool": "WARNING"})
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-30s | [%(request_id)s] [content=%(content_id)s] | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handlers = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(ContextFilter())
        handlers.append(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(ContextFilter())
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []
    for handler in handlers:
        root_logger.addHandler(handler)

    if module_levels:
        for module_name, module_level in module_levels.items():
            module_log_level = getattr(logging, module_level.upper(), logging.INFO)
            logging.getLogger(module_name).setLevel(module_log_level)

    # Silence noisy libraries
    logging.getLogger('psycopg').setLevel(logging.WARNING)
    logging.getLogger('psycopg.pool').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get structured logger for module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)


def set_request_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    content_id: Optional[str] = None
) -> None:
    """Set context variables for the current request."""
    if request_id:
        request_id_ctx.set(request_id)
    if user_id:
        user_id_ctx.set(user_id)
    if content_id:
        content_id_ctx.set(content_id)


def clear_request_context() -> None:
    """Clear all context variables."""
    request_id_ctx.set(None)
    user_id_ctx.set(None)
    content_id_ctx.set(None)


def get_request_id() -> Optional[str]:
    """Get current request ID from context."""
    return request_id_ctx.get()


# Default configuration presets
LOGGING_PRESETS = {
    'development': {
        'level': 'DEBUG',
        'format_type': 'text',
        'enable_console': True,
        'module_levels': {
            'psycopg': 'WARNING',
            'asyncio': 'WARNING',
        }
    },
    'production': {
        'level': 'INFO',
        'format_type': 'json',
        'enable_console': True,
        'module_levels': {
            'psycopg': 'WARNING',
            'psycopg.pool': 'WARNING',
            'asyncio': 'WARNING',
        }
    },
    'test': {
        'level': 'WARNING',
        'format_type': 'text',
        'enable_console': True,
    }
}


def configure_from_preset(preset: str = 'development', **overrides: Any) -> None:
    """
    Configure logging from preset.

    Args:
        preset: Preset name ('development', 'production', or 'test')
        **overrides: Override preset values
    """
    if preset not in LOGGING_PRESETS:
        raise ValueError(f"Unknown preset: {preset}. Available: {list(LOGGING_PRESETS.keys())}")

    config = LOGGING_PRESETS[preset].copy()
    config.update(overrides)

    configure_logging(**config)
