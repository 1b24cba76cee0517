import logging
from pathlib import Path

from .config import data_dir, exports_dir, log_level


def ensure_data_dirs():
    for p in [data_dir(), exports_dir()]:
        Path(p).mkdir(parents=True, exist_ok=True)


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, log_level(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
