"""
This module contains the default configuration settings for runsvdir.
It defines the service directory layout, the polling cadence, and the logging
configuration. Every UPPERCASE name here is picked up by `MergedSettings`.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't', 'yes', 'y')


#* --- Core Paths ---
BASE_DIR = pathlib.Path.cwd()
SERVICE_DIR = pathlib.Path(os.getenv("RUNSVDIR_DIR", "service"))
OVERRIDES_JSON_PATH = pathlib.Path(os.getenv("RUNSVDIR_OVERRIDES", str(BASE_DIR / "runsvdir.overrides.json")))

#* --- Service Layout ---
# Every subdirectory of SERVICE_DIR is expected to hold an executable with this name.
RUN_FILE_NAME = "run"

#* --- Supervisor Settings ---
PAUSE_MS = int(os.getenv("RUNSVDIR_PAUSE_MS", "1000"))  # milliseconds between passes
GRACEFUL_SHUTDOWN_TIMEOUT = 5                            # seconds to reap children on exit
FINGERPRINT_CHUNK_SIZE = 64 * 1024                       # bytes per read while hashing
PROCESS_TITLE_PREFIX = "runsvdir"

#* --- Logging ---
LOG_LEVEL = os.getenv("RUNSVDIR_LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = False
LOG_BUFFER_FLUSH_INTERVAL = 10

# Grafana Loki (for observability)
LOKI_ENABLED = _env_bool("RUNSVDIR_LOKI_ENABLED")
LOKI_URL = os.getenv("RUNSVDIR_LOKI_URL", "http://localhost:3100")
LOKI_ORG_ID = os.getenv("RUNSVDIR_LOKI_ORG_ID", "fake")
LOKI_BATCH_SIZE = 200

#* --- MODIFIABLE SETTINGS (Changeable through the overrides file) ---
MODIFIABLE_SETTINGS = {
    "SERVICE_DIR", "PAUSE_MS", "GRACEFUL_SHUTDOWN_TIMEOUT",
    "LOG_LEVEL", "LOG_BUFFER_FLUSH_INTERVAL",
    "LOKI_ENABLED", "LOKI_URL", "LOKI_ORG_ID",
}
