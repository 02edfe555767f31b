# log_config.py

import logging
import os
import sys
import time

from uvicorn.logging import ColourizedFormatter


class CustomColourizedFormatter(ColourizedFormatter):
    def format(self, record):
        record.asctime = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.created))
        if record.levelno == logging.ERROR:
            record.msg = f"!!! {record.msg}"
        return super().format(record)


def setup_logging(level_name=None):
    """
    Route every module logger (logging.getLogger(__name__)) and uvicorn's
    loggers through one colourized stdout handler.

    Level comes from TLSCHECK_LOG_LEVEL (default INFO).
    """
    level_name = (level_name or os.getenv("TLSCHECK_LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    log_format = "%(asctime)s - %(levelprefix)s %(message)s"
    formatter = CustomColourizedFormatter(log_format, use_colors=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(console_handler)
    root.setLevel(level)

    # Uvicorn installs its own handlers unless log_config=None; keep them
    # on the shared handler and out of the root to avoid double lines
    for name in ("uvicorn.error", "uvicorn.access"):
        log = logging.getLogger(name)
        log.handlers = [console_handler]
        log.setLevel(logging.INFO)
    logging.getLogger("uvicorn").propagate = False

    # httpx logs every request at INFO; range refreshes and probes would flood the console
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root


# Configure on import
setup_logging()
