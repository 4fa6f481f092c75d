import logging
import sys
from pathlib import Path

from pdf_dev_server import config


def setup_logger(verbose: bool = False):
    logger = logging.getLogger("pdf_dev_server")

    # Handlers are attached once, later calls only adjust the console level
    if logger.handlers:
        if verbose:
            for handler in logger.handlers:
                if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                    handler.setLevel(logging.DEBUG)
        return logger

    # Create logs directory if it doesn't exist
    logs_dir = Path(config.LOGS_DIR)
    logs_dir.mkdir(exist_ok=True, parents=True)

    logger.setLevel(logging.DEBUG)

    # Create formatters
    file_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )

    # File handler (for detailed logging)
    file_handler = logging.FileHandler(logs_dir / "pdf_dev_server.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)

    # Console handler (for basic logging)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(console_formatter)

    # Add handlers to logger
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
