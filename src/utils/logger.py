"""
Structured Logging System for the Caravan Ops API
Provides rotating file logs with immediate flush for real-time monitoring
"""
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler


class OpsLogger:
    """Centralized logging with rotation and formatting"""

    def __init__(self, name="Caravan-Ops", log_dir="logs", log_level="INFO",
                 max_mb=10, backup_count=5):
        """
        Initialize logger with rotating file handlers

        Args:
            name: Logger name
            log_dir: Directory for log files
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            max_mb: Size of the main log file before it rotates
            backup_count: Rotated main log files to keep
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
        self.logger.propagate = False

        # Clear any existing handlers
        self.logger.handlers.clear()

        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        log_format = logging.Formatter(
            '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # 1. Main rotating file handler
        main_handler = RotatingFileHandler(
            log_path / 'caravan_ops.log',
            maxBytes=max_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding='utf-8'
        )
        main_handler.setLevel(logging.DEBUG)
        main_handler.setFormatter(log_format)
        self.logger.addHandler(main_handler)

        # 2. Error-only log file (5MB per file, keep 3 files)
        error_handler = RotatingFileHandler(
            log_path / 'errors.log',
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(log_format)
        self.logger.addHandler(error_handler)

        # 3. Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(log_format)
        self.logger.addHandler(console_handler)

    def debug(self, message, component=""):
        self._log(logging.DEBUG, message, component)

    def info(self, message, component=""):
        self._log(logging.INFO, message, component)

    def warning(self, message, component=""):
        self._log(logging.WARNING, message, component)

    def error(self, message, component="", exc_info=False):
        self._log(logging.ERROR, message, component, exc_info=exc_info)

    def critical(self, message, component="", exc_info=False):
        self._log(logging.CRITICAL, message, component, exc_info=exc_info)

    def _log(self, level, message, component="", exc_info=False):
        """Internal logging method with component prefix"""
        if component:
            message = f"[{component}] {message}"

        self.logger.log(level, message, exc_info=exc_info)

        # Force immediate flush
        for handler in self.logger.handlers:
            handler.flush()

    def log_gate_decision(self, path, email, action, location=None):
        """Log an access gate decision that did not simply pass through"""
        target = f" -> {location}" if location else ""
        self.info(
            f"{action.upper()} {path} for {email or 'anonymous'}{target}",
            component="AccessGate"
        )

    def log_sheet_fetch(self, range_expr, row_count):
        """Log a Google Sheets range read"""
        self.info(
            f"Read {row_count} row(s) from '{range_expr}'",
            component="Sheets"
        )

    def log_row_skipped(self, row_num, reason, detail=""):
        """Log a spreadsheet row that failed admission"""
        suffix = f": {detail}" if detail else ""
        self.debug(
            f"Row {row_num} skipped ({reason}){suffix}",
            component="SheetMapper"
        )

    def log_store_call(self, method, resource, status_code):
        """Log a Supabase REST call"""
        self.debug(
            f"{method} {resource} -> HTTP {status_code}",
            component="Supabase"
        )

    def log_error(self, context, error_type, error_message):
        """Log error with context"""
        self.error(
            f"{context} - {error_type}: {error_message}",
            component="Error"
        )


# Global logger instance
_global_logger = None

def get_logger(log_level=None):
    """Get or create global logger instance"""
    global _global_logger
    if _global_logger is None:
        import config
        _global_logger = OpsLogger(
            log_dir=config.LOG_DIR,
            log_level=log_level or config.LOG_LEVEL,
            max_mb=config.LOG_FILE_MAX_MB,
            backup_count=config.LOG_FILE_BACKUP_COUNT,
        )
    return _global_logger
