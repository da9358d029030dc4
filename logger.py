import logging
import sys

from config import get_settings


def setup_logging():
    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s - [%(levelname)s] - %(name)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty third-party loggers
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)

    return logging.getLogger("vidtube")


logger = setup_logging()
