import logging
import os
import sys

LOGGER_NAME = "dicomsynth"
DEFAULT_LOG_FILE = "dicomsynth.log"


def _drop_handlers(logger: logging.Logger):
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def configure_logger(log_file=None, console_level=logging.WARNING):
    """
    Configures the dicomsynth logger for one run:
    - a DEBUG file log (patients, series folders, read-back accessions)
    - a stdout stream that only shows warnings and errors, so the
      organization progress bar stays readable

    The file defaults to $DICOMSYNTH_LOG_FILE, then `dicomsynth.log`.
    """
    log_file = log_file or os.getenv("DICOMSYNTH_LOG_FILE", DEFAULT_LOG_FILE)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    # Reconfiguring replaces the previous run's handlers
    _drop_handlers(logger)

    file_handler = logging.FileHandler(log_file, mode='w')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    logger.addHandler(console)

    return logger


def get_logger():
    return logging.getLogger(LOGGER_NAME)
