# wholesale_pos/utils/loggers.py
import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str = "wholesale_pos", level: int = logging.INFO) -> logging.Logger:
    """
    Logger with a single stream handler. Child loggers created with
    logging.getLogger(__name__) inside the package report through it.
    Calling this again for the same name does not stack handlers.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
