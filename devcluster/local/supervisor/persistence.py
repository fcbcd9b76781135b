import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from devcluster.local.models import ProcessHandle

if TYPE_CHECKING:
    from .supervisor import ProcessManager

log = logging.getLogger(__name__)


def _pid_file_path(manager: "ProcessManager") -> Path:
    return Path(manager.config["PID_FILE_PATH"])


def get_pid_info(manager: "ProcessManager") -> Optional[List[ProcessHandle]]:
    """
    Reads the PID file from disk and returns the handles it records.

    A malformed PID file is deleted and treated as absent.

    :param manager: The ProcessManager instance.
    :return: The recorded handles if the file exists and is valid, else None.
    """
    pid_file = _pid_file_path(manager)
    if not pid_file.exists():
        return None
    try:
        with pid_file.open("r") as f:
            data = json.load(f)
        if not isinstance(data, list):
            log.warning(f"PID file '{pid_file}' has an unexpected format. Removing it.")
            pid_file.unlink(missing_ok=True)
            return None
        handles = [ProcessHandle.from_dict(entry) for entry in data]
    except (json.JSONDecodeError, IOError, KeyError, TypeError, ValueError) as e:
        log.warning(f"PID file '{pid_file}' is unreadable ({e}). Removing it.")
        pid_file.unlink(missing_ok=True)
        return None
    return handles

def write_pid_file(manager: "ProcessManager", handles: List[ProcessHandle]) -> None:
    """
    Atomically writes the given handles to the PID file.

    :param manager: The ProcessManager instance.
    :param handles: The handles to persist, in launch order.
    """
    pid_file = _pid_file_path(manager)
    temp_pid_path = pid_file.with_suffix(".tmp")
    try:
        pid_file.parent.mkdir(parents=True, exist_ok=True)
        with temp_pid_path.open("w") as f:
            json.dump([h.to_dict() for h in handles], f, indent=4)
        temp_pid_path.replace(pid_file)
    except (IOError, OSError) as e:
        log.error(f"Failed to write PID file: {e}", exc_info=True)
    finally:
        temp_pid_path.unlink(missing_ok=True)

def remove_pid_file(manager: "ProcessManager") -> None:
    """Removes the PID file, if any."""
    _pid_file_path(manager).unlink(missing_ok=True)
    log.debug("Cleaned up PID file.")
