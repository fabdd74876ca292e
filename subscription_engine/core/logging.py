"""
Logging Configuration and Utilities

Structured logging for the subscription engine: structlog processors,
JSON formatting via python-json-logger, and a context-carrying logger
adapter used by every service module.
"""

import inspect
import logging
import logging.handlers
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from pythonjsonlogger import jsonlogger

from subscription_engine.config.settings import Settings, settings as default_settings

SERVICE_NAME = 'subscription-engine'

# Context variables for the subscription currently being evaluated
subscription_id: ContextVar[Optional[str]] = ContextVar('subscription_id', default=None)
user_id: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

CONTEXT_VARS = {
    'subscription_id': subscription_id,
    'user_id': user_id,
}

ROTATE_MAX_BYTES = 10 * 1024 * 1024
ROTATE_BACKUPS = 5


def current_context() -> Dict[str, str]:
    """Bound subscription/user identifiers, skipping unset ones."""
    return {key: var.get() for key, var in CONTEXT_VARS.items() if var.get()}


class SubscriptionContextProcessor:
    """Stamp events with the bound subscription and user"""

    def __init__(self, config: Optional[Settings] = None):
        self.environment = (config or default_settings).ENVIRONMENT

    def __call__(self, logger, method_name, event_dict):
        event_dict.update(current_context())
        event_dict.setdefault('timestamp', datetime.now(timezone.utc).isoformat())
        event_dict['service'] = SERVICE_NAME
        event_dict['environment'] = self.environment
        return event_dict


class SensitiveDataProcessor:
    """Mask payment-gateway identifiers and credentials"""

    SENSITIVE_KEYS = (
        'gateway_customer_id', 'gateway_subscription_id', 'payment_method',
        'token', 'secret', 'password', 'credentials',
    )
    MASK = '[REDACTED]'

    def __call__(self, logger, method_name, event_dict):
        return self._redact(event_dict)

    def _redact(self, values: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in values.items():
            if any(marker in key.lower() for marker in self.SENSITIVE_KEYS):
                values[key] = self.MASK
            elif isinstance(value, dict):
                self._redact(value)
        return values


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record, with the subscription context attached"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            level=record.levelname,
            logger=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        )
        for key, value in current_context().items():
            log_record.setdefault(key, value)
        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


class LoggingConfig:
    """Handler and processor setup, driven by Settings"""

    TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    JSON_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'

    @staticmethod
    def configure_structured_logging(config: Optional[Settings] = None):
        config = config or default_settings
        renderer = (
            structlog.processors.JSONRenderer() if config.LOG_FORMAT == 'json'
            else structlog.processors.KeyValueRenderer()
        )
        structlog.configure(
            processors=[
                SubscriptionContextProcessor(config),
                SensitiveDataProcessor(),
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                renderer,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    @classmethod
    def configure_standard_logging(cls, config: Optional[Settings] = None):
        """Replace the root handlers with a console handler (and a rotating file, if set)."""
        config = config or default_settings
        level = getattr(logging, config.LOG_LEVEL)
        formatter = (
            CustomJsonFormatter(cls.JSON_FORMAT) if config.LOG_FORMAT == 'json'
            else logging.Formatter(cls.TEXT_FORMAT)
        )

        handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        if config.LOG_FILE:
            log_path = Path(config.LOG_FILE)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                log_path, maxBytes=ROTATE_MAX_BYTES, backupCount=ROTATE_BACKUPS,
            ))

        root = logging.getLogger()
        root.setLevel(level)
        root.handlers.clear()
        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            root.addHandler(handler)


class LoggerAdapter:
    """
    Wraps a stdlib logger and merges a persistent context into ``extra``.

    Keys passed in ``extra`` must not clash with LogRecord attributes
    (``name``, ``message``, ``module``, ...); services prefix them instead.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._context: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self.logger.name

    def add_context(self, **kwargs):
        self._context.update(kwargs)
        return self

    def remove_context(self, *keys):
        for key in keys:
            self._context.pop(key, None)
        return self

    def clear_context(self):
        self._context.clear()
        return self

    def log(self, level: int, message: str, *args, **kwargs):
        kwargs['extra'] = {**(kwargs.get('extra') or {}), **self._context}
        self.logger.log(level, message, *args, **kwargs)

    def debug(self, message: str, *args, **kwargs):
        self.log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self.log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self.log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self.log(logging.ERROR, message, *args, **kwargs)

    def critical(self, message: str, *args, **kwargs):
        self.log(logging.CRITICAL, message, *args, **kwargs)


def get_logger(name: Optional[str] = None) -> LoggerAdapter:
    """Logger adapter for ``name``, defaulting to the calling module."""
    if name is None:
        caller = inspect.currentframe().f_back
        name = caller.f_globals.get('__name__', 'subscription_engine')
    return LoggerAdapter(logging.getLogger(name))


def log_execution_time(logger_name: Optional[str] = None):
    """Log how long the wrapped call took, at DEBUG."""
    def decorator(func):
        logger = get_logger(logger_name or func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                logger.debug("Function executed", extra={
                    'function': func.__name__,
                    'execution_time': time.perf_counter() - started,
                })

        return wrapper

    return decorator


def setup_logging(config: Optional[Settings] = None) -> LoggerAdapter:
    config = config or default_settings
    if config.ENABLE_STRUCTURED_LOGGING:
        LoggingConfig.configure_structured_logging(config)
    LoggingConfig.configure_standard_logging(config)

    logger = get_logger(__name__)
    logger.info("Logging system initialized", extra={
        'log_level': config.LOG_LEVEL,
        'log_format': config.LOG_FORMAT,
        'structured_logging': config.ENABLE_STRUCTURED_LOGGING,
    })
    return logger
