import json
import logging
from datetime import datetime, timezone

_RESERVED_ATTRS = {
    "args", "exc_info", "exc_text", "msg", "message", "levelname", "module", "created", "msecs",
    "relativeCreated", "levelno", "pathname", "filename", "funcName", "lineno", "asctime",
    "name", "process", "processName", "thread", "threadName", "stack_info", "taskName",
}


# Configure logging with JSON formatter
class JSONFormatter(logging.Formatter):
    def __init__(self, service: str = "records-api"):
        super().__init__()
        self.service = service

    def format(self, record):
        log_record = {
            "@timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "logger": record.name,
            "service": self.service,  # Service name for easy filtering in Kibana
        }
        # Add all extra attributes
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_record[key] = value

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


logger = logging.getLogger("records_api")


def setup_logging(level: str = "INFO", service: str = "records-api", name: str = "records_api") -> logging.Logger:
    """Configure the named logger with a JSON console handler.

    Safe to call more than once: previous handlers are replaced.
    """
    _logger = logging.getLogger(name)
    _logger.setLevel(level.upper())
    _logger.handlers.clear()

    # Console handler, collected by Filebeat from container stdout
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(JSONFormatter(service=service))
    _logger.addHandler(console_handler)

    return _logger
