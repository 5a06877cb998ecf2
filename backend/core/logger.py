# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Logging for tcadmin.

Handlers, levels and the line format are declared in etc/logging.conf; the
only value filled in here is where the rotating file lives (``log/app.log``
under the project root, or ``$TCADMIN_LOG_DIR/app.log``).

    from core.logger import logger

Auth code logs user ids, paths and decision reasons.  Passwords, hashes,
session cookies and single-use tokens are never passed to the logger.
"""

import configparser as _cp
import logging
import logging.config
import os
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_LOGGING_CONF = _PROJECT_ROOT / "etc" / "logging.conf"


def _log_dir() -> Path:
    override = os.environ.get("TCADMIN_LOG_DIR")
    return Path(override) if override else _PROJECT_ROOT / "log"


def _configure() -> None:
    log_dir = _log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    text = _LOGGING_CONF.read_text(encoding="utf-8")
    text = text.replace("%(log_file)s", (log_dir / "app.log").as_posix())

    # Raw parser: the format line is full of %(...)s fields meant for logging
    parser = _cp.RawConfigParser()
    parser.read_string(text)
    logging.config.fileConfig(parser, disable_existing_loggers=False)


_configure()

logger = logging.getLogger("tcadmin")
