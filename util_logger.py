# ============================================================================
# CLAUDE CONTEXT - LOGGING
# ============================================================================
# STATUS: Core Infrastructure - Structured logging
# PURPOSE: Layer-tagged JSON log lines for the Functions host and Application Insights
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ComponentType, LogLevel, LogContext, LoggerFactory, JSONFormatter, log_exceptions, scrub_secrets
# DEPENDENCIES: stdlib logging only
# SCOPE: Every logger in the application
# PATTERNS: Factory, JSON-only output, exception decorator
# ENTRY_POINTS: LoggerFactory.create_logger(), @log_exceptions
# ============================================================================

"""
Unified Logger System

Every component asks the factory for a logger tagged with its architectural
layer. Records are written to stdout as one JSON object per line, and
propagate to the Functions host logger so Application Insights receives the
same `customDimensions`.

Request correlation travels in LogContext (request_id, user_id, operation),
passed per call as extra={'custom_dimensions': ctx.to_dict()}.

Bearer tokens must never reach a log sink. Callers do not log them, and the
formatter masks anything that still looks like `Bearer <token>`.

Levels:
    LOG_LEVEL=<name> sets every component level (default INFO).
    DEBUG_LOGGING=true is shorthand for LOG_LEVEL=DEBUG.

Date: 19 OCT 2026
"""

from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from dataclasses import dataclass
from functools import wraps
import logging
import os
import re
import sys
import json
import traceback

_BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)


def scrub_secrets(text: str) -> str:
    """Mask bearer tokens in free text."""
    return _BEARER_PATTERN.sub(r"\1[redacted]", text)


# ============================================================================
# LAYERS AND LEVELS
# ============================================================================

class ComponentType(Enum):
    """Architectural layer a logger belongs to."""
    TRIGGER = "trigger"        # HTTP handlers
    SERVICE = "service"        # Read/write sequences, health
    REPOSITORY = "repository"  # Store access
    ADAPTER = "adapter"        # Identity Provider, API client
    SCHEMA = "schema"          # Models, config


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        return getattr(logging, self.value)

    @classmethod
    def from_string(cls, level: str) -> 'LogLevel':
        """Parse a level name; unknown names fall back to INFO."""
        try:
            return cls[level.strip().upper()]
        except KeyError:
            return cls.INFO


def _level_from_env() -> LogLevel:
    if os.getenv('DEBUG_LOGGING', '').lower() == 'true':
        return LogLevel.DEBUG
    return LogLevel.from_string(os.getenv('LOG_LEVEL', 'INFO'))


# ============================================================================
# REQUEST CORRELATION
# ============================================================================

@dataclass
class LogContext:
    """Correlation fields for one HTTP request."""
    request_id: Optional[str] = None      # x-request-id header or generated
    correlation_id: Optional[str] = None  # x-correlation-id header
    operation: Optional[str] = None       # e.g. "observations.read"
    user_id: Optional[str] = None         # Resolved identity id, never the token

    def to_dict(self) -> Dict[str, Any]:
        """Set fields only, for use as custom dimensions."""
        fields = {
            'request_id': self.request_id,
            'correlation_id': self.correlation_id,
            'operation': self.operation,
            'user_id': self.user_id
        }
        return {k: v for k, v in fields.items() if v is not None}


@dataclass
class ComponentConfig:
    component_type: ComponentType
    log_level: LogLevel = LogLevel.INFO


# ============================================================================
# OUTPUT
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: timestamp, level, message, logger, module, function, line, plus
    customDimensions when the record carries them and exception when
    exc_info is set. Messages and tracebacks go through scrub_secrets().
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'message': scrub_secrets(record.getMessage()),
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        dimensions = getattr(record, 'custom_dimensions', None)
        if dimensions:
            entry['customDimensions'] = dimensions

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry['exception'] = {
                'type': exc_type.__name__ if exc_type else None,
                'message': scrub_secrets(str(exc_value)) if exc_value else None,
                'traceback': scrub_secrets(self.formatException(record.exc_info))
            }

        return json.dumps(entry, default=str)


# ============================================================================
# FACTORY
# ============================================================================

class LoggerFactory:
    """
    Hands out layer-tagged loggers.

        logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "ObservationsRepository")
        logger.info("Created species 12", extra={'custom_dimensions': {'user_id': uid}})

    Every record gets component_type and component_name in its custom
    dimensions; per-call dimensions are merged on top.
    """

    DEFAULT_CONFIGS = {
        component: ComponentConfig(component, _level_from_env())
        for component in ComponentType
    }

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        config: Optional[ComponentConfig] = None
    ) -> logging.Logger:
        """
        Configure and return the logger "<layer>.<name>".

        Calling this again for the same name reconfigures the same logger:
        the handler is replaced, not added.

        Args:
            component_type: Layer of the calling component
            name: Component name, e.g. "ObservationsService"
            config: Level override
        """
        config = config or cls.DEFAULT_CONFIGS[component_type]
        level = config.log_level.to_python_level()

        logger = logging.getLogger(f"{component_type.value}.{name}")
        logger.setLevel(level)

        logger.handlers.clear()
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(level)
        stdout_handler.setFormatter(JSONFormatter())
        logger.addHandler(stdout_handler)

        # Host logger forwards to Application Insights
        logger.propagate = True

        base_log = getattr(logger, '_unwrapped_log', logger._log)
        logger._unwrapped_log = base_log
        fixed_dimensions = {
            'component_type': component_type.value,
            'component_name': name
        }

        def log_with_dimensions(level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
            extra = dict(extra) if extra else {}
            extra['custom_dimensions'] = {**fixed_dimensions, **extra.get('custom_dimensions', {})}
            base_log(level, msg, args, exc_info=exc_info, extra=extra,
                     stack_info=stack_info, stacklevel=stacklevel + 1)

        logger._log = log_with_dimensions
        return logger


# ============================================================================
# EXCEPTION DECORATOR
# ============================================================================

def log_exceptions(component_type: Optional[ComponentType] = None,
                   component_name: Optional[str] = None,
                   logger: Optional[logging.Logger] = None):
    """
    Log any exception escaping the wrapped function, then re-raise it.

    Uses `logger` if given, else a logger for (component_type, component_name),
    else a SERVICE logger named after the function's module.

    Example:
        @log_exceptions(logger=logger)
        def insert_species(self, common_name, identity):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if logger is not None:
                    log = logger
                elif component_type and component_name:
                    log = LoggerFactory.create_logger(component_type, component_name)
                else:
                    log = LoggerFactory.create_logger(ComponentType.SERVICE, func.__module__ or "unknown")

                # Arguments stay out of the record: they can carry caller claims
                log.error(
                    f"{func.__qualname__} raised {type(e).__name__}",
                    exc_info=True,
                    extra={'custom_dimensions': {
                        'function_name': func.__name__,
                        'function_module': func.__module__,
                        'exception_type': type(e).__name__,
                        'exception_message': scrub_secrets(str(e)),
                        'traceback': scrub_secrets(traceback.format_exc())
                    }}
                )
                raise
        return wrapper
    return decorator
