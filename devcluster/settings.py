"""
This module contains the default configuration settings for devcluster.
It defines paths, the ordered list of nodes to launch, the process name
patterns used when stopping, and supervisor timing.
Values can be tuned through environment variables (or a `.env` file) and,
for keys in MODIFIABLE_SETTINGS, through `overrides.json`.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't', 'yes', 'y')


#* --- Core Paths ---
# Node binaries and their config files are looked up relative to the
# directory devcluster is invoked from (normally the repository root).
BASE_DIR = pathlib.Path(os.getenv("DEVCLUSTER_BASE_DIR", os.getcwd())).resolve()
RUN_DIR = pathlib.Path(os.getenv("DEVCLUSTER_RUN_DIR", str(BASE_DIR / ".devcluster")))
LOGS_DIR = RUN_DIR / "logs"
PID_FILE_PATH = RUN_DIR / "devcluster.pid"
OVERRIDES_JSON_PATH = RUN_DIR / "overrides.json"

#* --- External Executable Paths ---
META_EXECUTABLE_PATH = pathlib.Path(os.getenv("DEVCLUSTER_META_BIN", "target/debug/databend-meta"))
QUERY_EXECUTABLE_PATH = pathlib.Path(os.getenv("DEVCLUSTER_QUERY_BIN", "target/debug/databend-query"))
NODE_CONFIG_DIR = pathlib.Path(os.getenv("DEVCLUSTER_CONFIG_DIR", "scripts/ci/deploy/config"))

#* --- Cluster Layout ---
# Launched strictly in this order. Each entry may carry a "readiness" probe,
# e.g. {"kind": "tcp", "target": "127.0.0.1:9191", "timeout": 20}.
LAUNCH_SPECS = [
    {
        "name": "meta-1",
        "executable": str(META_EXECUTABLE_PATH),
        "config": str(NODE_CONFIG_DIR / "databend-meta-node-1.toml"),
    },
    {
        "name": "meta-3",
        "executable": str(META_EXECUTABLE_PATH),
        "config": str(NODE_CONFIG_DIR / "databend-meta-node-3.toml"),
    },
    {
        "name": "meta-2",
        "executable": str(META_EXECUTABLE_PATH),
        "config": str(NODE_CONFIG_DIR / "databend-meta-node-2.toml"),
    },
]

# Substrings matched against full command lines by 'stop'.
STOP_PATTERNS = ["databend-meta", "databend-query"]
STOP_BY_PATTERN = _env_flag("DEVCLUSTER_STOP_BY_PATTERN", "True")

#* --- Supervisor Settings ---
LAUNCH_DELAY_SECONDS = float(os.getenv("DEVCLUSTER_LAUNCH_DELAY", "2"))
READINESS_TIMEOUT_SECONDS = float(os.getenv("DEVCLUSTER_READINESS_TIMEOUT", "30"))
READINESS_POLL_INTERVAL = 0.5
STOP_ON_LAUNCH_FAILURE = _env_flag("DEVCLUSTER_STOP_ON_LAUNCH_FAILURE", "False")
GRACEFUL_SHUTDOWN_TIMEOUT = 10  # seconds before force-killing
RESTART_DELAY_SECONDS = 2

#* --- Logging ---
VERBOSE_LOGGING = False
LOG_TO_FILE = _env_flag("DEVCLUSTER_LOG_TO_FILE", "False")
LOG_FILE_PATH = LOGS_DIR / "devcluster.log"

#* --- MODIFIABLE SETTINGS (Changeable through overrides.json) ---
MODIFIABLE_SETTINGS = {
    "LAUNCH_SPECS", "STOP_PATTERNS", "STOP_BY_PATTERN",
    "LAUNCH_DELAY_SECONDS", "READINESS_TIMEOUT_SECONDS", "READINESS_POLL_INTERVAL",
    "STOP_ON_LAUNCH_FAILURE", "GRACEFUL_SHUTDOWN_TIMEOUT", "RESTART_DELAY_SECONDS",
    "LOG_TO_FILE",
}
