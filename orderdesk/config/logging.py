# orderdesk/config/logging.py
import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from typing import Dict, Any
from .settings import get_settings

settings = get_settings()

# Custom formatter with colors for console output
class ColoredFormatter(logging.Formatter):
    """Custom formatter with color coding for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record):
        levelname = record.levelname
        color = self.COLORS.get(levelname, self.COLORS['RESET'])
        record.levelname = f"{color}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname

# JSON formatter for structured logging
class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    EXTRA_FIELDS = ('request_id', 'user_id', 'tenant_id', 'order_id', 'error_code', 'duration')

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def build_logging_config() -> Dict[str, Any]:
    """Build the dictConfig for the current settings."""
    console_formatter = 'json' if settings.LOG_JSON else ('colored' if settings.DEBUG else 'standard')
    app_handlers = ['console']

    handlers: Dict[str, Any] = {
        'console': {
            'level': 'DEBUG' if settings.DEBUG else 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': console_formatter,
            'stream': 'ext://sys.stdout'
        }
    }

    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers['file'] = {
            'level': 'INFO',
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'json' if settings.LOG_JSON else 'detailed',
            'filename': settings.LOG_FILE,
            'maxBytes': 10485760,  # 10MB
            'backupCount': 5,
            'encoding': 'utf8'
        }
        app_handlers.append('file')

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(funcName)s(): %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'colored': {
                '()': ColoredFormatter,
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'json': {
                '()': JSONFormatter
            }
        },
        'handlers': handlers,
        'loggers': {
            '': {  # Root logger
                'handlers': app_handlers,
                'level': settings.LOG_LEVEL,
            },
            'orderdesk': {
                'handlers': app_handlers,
                'level': 'DEBUG' if settings.DEBUG else settings.LOG_LEVEL,
                'propagate': False
            },
            'api': {
                'handlers': app_handlers,
                'level': 'INFO',
                'propagate': False
            },
            'notifications': {
                'handlers': app_handlers,
                'level': 'INFO',
                'propagate': False
            },
            'security': {
                'handlers': app_handlers,
                'level': 'WARNING',
                'propagate': False
            },
            'uvicorn': {
                'handlers': app_handlers,
                'level': 'INFO',
                'propagate': False
            },
            'sqlalchemy.engine': {
                'handlers': app_handlers,
                'level': 'INFO' if settings.DEBUG else 'WARNING',
                'propagate': False
            }
        }
    }

def setup_logging():
    """Setup logging configuration."""
    logging.config.dictConfig(build_logging_config())

    if not settings.DEBUG:
        # Reduce noise in production
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("multipart").setLevel(logging.WARNING)

def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)

def log_api_request(request_id: str, method: str, path: str, user_id: str = None):
    """Log API request information."""
    logger = get_logger("api")
    extra = {'request_id': request_id}
    if user_id:
        extra['user_id'] = user_id
    logger.info(f"{method} {path}", extra=extra)

def log_api_response(request_id: str, status_code: int, duration: float):
    """Log API response information."""
    logger = get_logger("api")
    extra = {'request_id': request_id, 'duration': duration}
    logger.info(f"Response: {status_code} ({duration:.3f}s)", extra=extra)

def log_security_event(event_type: str, user_id: str = None, details: str = None, tenant_id: str = None):
    """Log security-related events."""
    logger = get_logger("security")
    extra = {}
    if user_id:
        extra['user_id'] = user_id
    if tenant_id:
        extra['tenant_id'] = tenant_id

    message = f"Security Event: {event_type}"
    if details:
        message += f" - {details}"

    logger.warning(message, extra=extra)

def log_order_event(event: str, order_id: str, tenant_id: str = None, user_id: str = None,
                    level: int = logging.INFO, **details):
    """Log an order lifecycle event."""
    logger = get_logger("orderdesk.orders")
    extra = {'order_id': order_id}
    if tenant_id:
        extra['tenant_id'] = tenant_id
    if user_id:
        extra['user_id'] = user_id

    message = f"Order {event}: {order_id}"
    if details:
        message += " - " + ", ".join(f"{key}={value}" for key, value in details.items())

    logger.log(level, message, extra=extra)

# Performance logging decorator
def log_performance(logger_name: str = "orderdesk.performance"):
    """Decorator to log function performance."""
    def decorator(func):
        import functools
        import time

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.debug(f"{func.__name__} completed in {duration:.3f}s")
                return result
            except Exception as e:
                duration = time.time() - start_time
                logger.warning(f"{func.__name__} failed after {duration:.3f}s: {str(e)}")
                raise
        return wrapper
    return decorator

# Export commonly used functions
__all__ = [
    "setup_logging",
    "get_logger",
    "log_api_request",
    "log_api_response",
    "log_security_event",
    "log_order_event",
    "log_performance"
]
