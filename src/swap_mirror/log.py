import logging
import sys
import time
from pathlib import Path
from typing import List, Optional


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    log = logging.getLogger("swap_mirror")
    log.setLevel(level.upper())
    fmt = logging.Formatter(
        fmt="%(asctime)sZ %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    fmt.converter = time.gmtime  # UTC
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in list(log.handlers):
        log.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(fmt)
        log.addHandler(handler)
    return log
