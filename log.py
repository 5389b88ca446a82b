import logging
import os
import sys


def configure_logging(level: str | None = None) -> None:
    """
    Configure logging for the whole app.
    Call this once at Streamlit startup or at the top of a script.
    """
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


logger = logging.getLogger("nu_housing")


def get_logger(name: str) -> logging.Logger:
    return logger.getChild(name)
