# dispatch/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Console threshold per logger prefix; anything unlisted (including
# captured 'py.warnings') reaches the console only at ERROR+.
_CONSOLE_LEVELS = (
    ("dispatch", logging.NOTSET),
    ("uvicorn", logging.INFO),
    ("sqlalchemy", logging.WARNING),
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console gate for Dispatch:
    - dispatch.* passes at any level
    - uvicorn server and access logs pass at INFO+
    - sqlalchemy passes at WARNING+ (engine echo stays in the file log)
    - every other logger passes at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        for prefix, level in _CONSOLE_LEVELS:
            if name == prefix or name.startswith(prefix + "."):
                return record.levelno >= level
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/dispatch",
    console_level: int | str = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with a filtered console handler and a full file handler.

    Call this ONCE, before the app starts serving.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "dispatch.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
