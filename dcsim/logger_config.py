import logging, os
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "DCSIM"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def get_logger(log_dir: str, level: int = logging.DEBUG, console: bool = False):
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "project.log")
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.hasHandlers():
        logger.setLevel(level)
        formatter = logging.Formatter(LOG_FORMAT)

        # append, rotate at 5MB, keep 3 old files
        file_handler = RotatingFileHandler(
            log_path,
            mode='a',
            maxBytes=5_000_000,
            backupCount=3,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        if console:
            stream_handler = logging.StreamHandler()
            stream_handler.setLevel(logging.INFO)
            stream_handler.setFormatter(formatter)
            logger.addHandler(stream_handler)

    return logger
