import time
import psutil
import logging
from pathlib import Path
from typing import TYPE_CHECKING, List

from devcluster.local.models import LaunchOutcome, LaunchResult, LaunchSpec
from devcluster.local.supervisor import persistence, process_utils, readiness

if TYPE_CHECKING:
    from .supervisor import ProcessManager

log = logging.getLogger(__name__)


def check_if_already_running(manager: "ProcessManager") -> bool:
    """
    Checks if a previous 'start' left live processes behind, based on the PID file.

    :param manager: The ProcessManager instance.
    :return: True if already running, False otherwise.
    """
    for handle in persistence.get_pid_info(manager) or []:
        try:
            if process_utils.resolve_handle(handle) is not None:
                log.error(
                    f"Cluster appears to be running ('{handle.name}' is alive with PID {handle.pid}). "
                    "Use 'stop' or 'restart'."
                )
                return True
        except psutil.AccessDenied:
            log.error(f"Cannot inspect PID {handle.pid} ('{handle.name}'); assuming it is still running.")
            return True
    return False


def wait_launch_delay(manager: "ProcessManager") -> None:
    """
    Sleeps the fixed delay between two launches. This is only a time-based
    stand-in for readiness; nothing checks that the previous node is up.
    """
    delay = float(manager.config["LAUNCH_DELAY_SECONDS"])
    if delay > 0:
        log.debug(f"Waiting {delay}s before the next launch.")
        time.sleep(delay)


def launch_spec(manager: "ProcessManager", spec: LaunchSpec, is_last: bool) -> LaunchResult:
    """
    Spawns one LaunchSpec and waits for it according to its readiness probe,
    or the fixed launch delay when it has none.

    :param manager: The ProcessManager instance.
    :param spec: The spec to launch.
    :param is_last: True for the final spec; the fixed delay is skipped after it.
    :return: The outcome of this launch.
    """
    logs_dir = Path(manager.config["LOGS_DIR"])
    output_path = process_utils.get_output_log_path(logs_dir, spec.name)
    output_offset = output_path.stat().st_size if output_path.exists() else 0

    try:
        handle, popen = process_utils.spawn_process(spec, logs_dir, Path(manager.config["BASE_DIR"]))
    except OSError as e:
        log.error(f"Failed to start process '{spec.name}': {e}")
        # Later nodes still get the same spacing as if this one had started.
        if not is_last:
            wait_launch_delay(manager)
        return LaunchResult(spec=spec, outcome=LaunchOutcome.SPAWN_FAILED, detail=str(e))

    manager.running_procs[spec.name] = handle
    manager.children[spec.name] = popen

    ready, detail = True, ""
    if spec.readiness is not None:
        try:
            proc = process_utils.get_process_from_pid(handle.pid)
            ready, detail = readiness.wait_until_ready(
                spec.readiness,
                spec.name,
                proc,
                output_path,
                output_offset,
                float(manager.config["READINESS_POLL_INTERVAL"]),
            )
        except psutil.NoSuchProcess:
            ready, detail = False, "process disappeared right after spawn"
    elif not is_last:
        wait_launch_delay(manager)

    returncode = popen.poll()
    if returncode is not None:
        log.error(f"Process '{spec.name}' (PID {handle.pid}) exited early with code {returncode}.")
        manager.running_procs.pop(spec.name, None)
        manager.children.pop(spec.name, None)
        return LaunchResult(
            spec=spec, outcome=LaunchOutcome.EXITED_EARLY, handle=handle,
            detail=f"exited with code {returncode}",
        )
    if not ready:
        return LaunchResult(spec=spec, outcome=LaunchOutcome.NOT_READY, handle=handle, detail=detail)
    return LaunchResult(spec=spec, outcome=LaunchOutcome.STARTED, handle=handle)


def start_all_processes(manager: "ProcessManager", results: List[LaunchResult]) -> None:
    """
    Starts all LaunchSpecs strictly in their configured order, appending one
    result per spec to `results`.

    :param manager: The ProcessManager instance.
    :param results: Collects the outcome of each launch as it happens.
    :raises RuntimeError: If a launch fails and STOP_ON_LAUNCH_FAILURE is set.
    """
    specs: List[LaunchSpec] = list(manager.config["LAUNCH_SPECS"])
    for index, spec in enumerate(specs):
        result = launch_spec(manager, spec, is_last=index == len(specs) - 1)
        results.append(result)

        if not result.ok and manager.config.get("STOP_ON_LAUNCH_FAILURE", False):
            raise RuntimeError(f"Launch of '{spec.name}' failed ({result.outcome.value}): {result.detail}")
