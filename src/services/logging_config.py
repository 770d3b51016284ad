"""
Logging Configuration for the tax-regime guidance core.

Provides structured logging with:
- JSON formatting for production
- Human-readable formatting for development
- Request/user correlation through context variables
- Analysis-run logging and timing
"""

import logging
import json
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Callable, Iterator
from functools import wraps
from pathlib import Path
from contextvars import ContextVar

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    One JSON object per line, for log aggregators.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add context variables
        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        user_id = user_id_var.get()
        if user_id:
            log_data["user_id"] = user_id

        # Add extra fields from the record
        if hasattr(record, 'extra_data'):
            log_data.update(record.extra_data)

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """
    Human-readable log formatter for development.
    """

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human readability."""
        if self.use_colors:
            color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
            reset = self.COLORS['RESET']
        else:
            color = reset = ""

        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        level = f"{color}{record.levelname:8s}{reset}"

        message = f"{timestamp} {level} [{record.name}] {record.getMessage()}"

        # Add extra fields
        if hasattr(record, 'extra_data') and record.extra_data:
            extras = ' | '.join(f"{k}={v}" for k, v in record.extra_data.items())
            message += f" | {extras}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes context in all log messages.
    """

    def process(self, msg: str, kwargs: Dict) -> tuple:
        """Add context to log message."""
        extra = dict(kwargs.get('extra') or {})

        # Add context variables
        request_id = request_id_var.get()
        if request_id:
            extra['request_id'] = request_id

        user_id = user_id_var.get()
        if user_id:
            extra['user_id'] = user_id

        # Adapter context first, call-site data wins
        extra_data = {k: v for k, v in self.extra.items() if v is not None}
        extra_data.update(extra.get('extra_data') or {})
        extra['extra_data'] = extra_data

        kwargs['extra'] = extra
        return msg, kwargs


@contextmanager
def log_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Iterator[None]:
    """
    Bind request/user IDs to every log line emitted inside the block.

    Usage:
        with log_context(request_id="req-1", user_id="owner-1"):
            service.create_analysis(...)
    """
    request_token = request_id_var.set(request_id) if request_id is not None else None
    user_token = user_id_var.set(user_id) if user_id is not None else None
    try:
        yield
    finally:
        if user_token is not None:
            user_id_var.reset(user_token)
        if request_token is not None:
            request_id_var.reset(request_token)


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Path] = None
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON formatted logs
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    root_logger.handlers.clear()

    # Create formatter
    if json_output:
        formatter = JsonFormatter()
    else:
        formatter = ReadableFormatter(use_colors=sys.stdout.isatty())

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JsonFormatter())  # Always JSON for files
        root_logger.addHandler(file_handler)

    # Set levels for noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)


def configure_from_settings(settings=None) -> None:
    """Configure logging from the application settings."""
    if settings is None:
        from config.settings import get_settings
        settings = get_settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json)


def get_logger(name: str, **extra) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (typically __name__)
        **extra: Additional context to include in all logs

    Returns:
        ContextLogger instance
    """
    base_logger = logging.getLogger(name)
    return ContextLogger(base_logger, extra)


class AnalysisLogger:
    """
    Logger for one analysis run.

    Records the input figures, the comparison outcome and the
    opportunity summary under a single analysis_id, with timing.
    """

    def __init__(self, analysis_id: str, company_id: str):
        self.logger = get_logger(
            "analysis",
            analysis_id=analysis_id,
            company_id=company_id,
        )
        self.analysis_id = analysis_id
        self._start_time: Optional[float] = None

    def start(self, year: int, revision: int, gross_revenue: int) -> None:
        """Log analysis start. Amounts in centavos."""
        self._start_time = time.perf_counter()
        self.logger.info(
            "Starting tax analysis",
            extra={'extra_data': {
                'year': year,
                'revision': revision,
                'gross_revenue': gross_revenue,
            }}
        )

    def log_comparison(
        self,
        recommended_regime: Optional[str],
        baseline_regime: str,
        estimated_annual_savings: int,
        ranking: list,
    ) -> None:
        self.logger.info(
            "Regimes compared",
            extra={'extra_data': {
                'recommended_regime': recommended_regime,
                'baseline_regime': baseline_regime,
                'estimated_annual_savings': estimated_annual_savings,
                'ranking': ranking,
            }}
        )

    def log_opportunities(self, total: int, potential_savings: int, high_priority: int) -> None:
        self.logger.info(
            "Opportunities derived",
            extra={'extra_data': {
                'total_opportunities': total,
                'potential_annual_savings': potential_savings,
                'high_priority_count': high_priority,
            }}
        )

    def complete(self) -> None:
        """Log analysis completion with elapsed time."""
        duration_ms = (
            int((time.perf_counter() - self._start_time) * 1000)
            if self._start_time is not None else 0
        )
        self.logger.info(
            "Analysis complete",
            extra={'extra_data': {'duration_ms': duration_ms}}
        )


def log_performance(name: Optional[str] = None) -> Callable:
    """
    Decorator to log function duration.

    Args:
        name: Optional name override for the log entry

    Returns:
        Decorator function
    """
    def decorator(func: Callable) -> Callable:
        func_name = name or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger("performance")
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration_ms = int((time.perf_counter() - start) * 1000)
                logger.warning(
                    f"{func_name} failed",
                    extra={'extra_data': {
                        'duration_ms': duration_ms,
                        'error': type(e).__name__,
                    }}
                )
                raise
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.debug(
                f"{func_name} completed",
                extra={'extra_data': {'duration_ms': duration_ms}}
            )
            return result

        return wrapper

    return decorator
