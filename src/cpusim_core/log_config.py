# --- src/cpusim_core/log_config.py ---
import logging
import os
import sys

LOG_LEVEL_ENV_VAR = "CPUSIM_LOG_LEVEL"


def setup_logging(level=None):
    """ Configures basic logging to stdout. The level defaults to $CPUSIM_LOG_LEVEL or INFO. """
    if level is None:
        level_name = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.INFO

    log_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)-5.5s] [%(name)s] %(message)s"
    )
    root_logger = logging.getLogger() # Get the root logger

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_formatter)
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)
    logging.info("Logging configured.")
