import logging
import sys
from app.core.config import Settings

VERBOSE = 5
logging.addLevelName(VERBOSE, "VERBOSE")

LEVEL_MAP = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "log": logging.INFO,
    "debug": logging.DEBUG,
    "verbose": VERBOSE,
}

HANDLER_NAME = "token_sale"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def setup_logging(settings: Settings) -> None:
    """
    Configures the root logger once from LOG_LEVEL.
    Safe to call more than once; the handler is replaced, not duplicated.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.set_name(HANDLER_NAME)
    root.addHandler(handler)
    root.setLevel(LEVEL_MAP[settings.log_level])
