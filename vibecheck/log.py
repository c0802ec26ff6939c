import logging
import sys

APP_NAME = "vibecheck"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure package logging with consistent formatting.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    package_logger = logging.getLogger(APP_NAME)
    package_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)
