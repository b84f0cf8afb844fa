import logging

_formatter = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - "
    "%(module)s.%(funcName)s.%(lineno)s - %(message)s"
)


def setup_logging(level: str = "INFO", name: str = "records_client") -> logging.Logger:
    """Configure the client logger with a plain-text console handler."""
    _logger = logging.getLogger(name)
    _logger.setLevel(level.upper())
    _logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(_formatter)
    _logger.addHandler(console_handler)

    return _logger
