"""
Logging configuration.

One console handler on the root logger; every module logs through
``logging.getLogger(__name__)``.
"""

import logging

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "facedash-console"


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Configure the root logger.

    Called by the CLI and the Streamlit runtime.
    Idempotent: repeated calls won't create duplicate handlers.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        return

    console_handler = logging.StreamHandler()
    console_handler.set_name(_HANDLER_NAME)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
