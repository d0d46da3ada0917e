import logging
import logging.handlers
import sys
from pathlib import Path
from pythonjsonlogger import jsonlogger


NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "sqlalchemy.engine",
    "aiokafka",
    "passlib.handlers.bcrypt",
)


class AuthJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding the fields every auth-service log line carries.
    """
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = record.created
        log_record['level'] = record.levelname
        log_record['logger'] = record.name        # e.g. 'services.auth_service'
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno
        # Set by RequestIDMiddleware while a request is in flight
        log_record['request_id'] = getattr(record, "request_id", None)


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application-wide logging.

    Console output follows LOG_LEVEL; ``auth.log`` keeps everything as JSON and
    ``error.log`` keeps ERROR and above. Safe to call more than once.

    Args:
        log_level: Minimum console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory where log files will be stored
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # "INFO" -> logging.INFO
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    json_formatter = AuthJsonFormatter('%(timestamp)s %(level)s %(logger)s %(message)s')
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(console_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers do the filtering
    root_logger.handlers.clear()

    root_logger.addHandler(console_handler)
    root_logger.addHandler(_rotating_handler(log_path / "auth.log", logging.DEBUG, json_formatter))
    root_logger.addHandler(_rotating_handler(log_path / "error.log", logging.ERROR, json_formatter))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={
            "log_level": log_level,
            "log_dir": str(log_path.absolute())
        }
    )
