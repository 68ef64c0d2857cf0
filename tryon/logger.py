# tryon/logger.py
import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name, level=logging.INFO):
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        logger.addHandler(console_handler)

    # httpx logs full request URLs at INFO, and the search URL carries the api key
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger
