import time
import psutil
import logging
import subprocess
from typing import Any, Dict, List, Optional

from devcluster.local import effective_settings
from devcluster.local.models import LaunchResult, ProcessHandle, StopResult
from devcluster.local.supervisor import persistence, process_utils, shutdown, startup

log = logging.getLogger(__name__)


class ProcessManager:
    """
    Starts the configured cluster nodes in order and stops them again.

    The manager owns the handles of the processes it spawned. 'stop' uses
    those handles first and only then falls back to matching command lines
    for nodes that were started some other way.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ProcessManager, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        """Initializes the ProcessManager state."""
        if getattr(self, '_initialized', False):
            return

        self.config: Dict[str, Any] = effective_settings.get_all_settings()
        self.running_procs: Dict[str, ProcessHandle] = {}
        self.children: Dict[str, subprocess.Popen] = {}
        self._initialized = True

    def start_all(self) -> Optional[List[LaunchResult]]:
        """
        Launches every configured LaunchSpec in order.

        :return: One result per attempted spec, or None if the cluster is
                 already running and nothing was launched.
        """
        if startup.check_if_already_running(self):
            return None

        log.info("=" * 20 + " Cluster Starting " + "=" * 20)
        self.running_procs.clear()
        self.children.clear()
        start_time = time.time()
        results: List[LaunchResult] = []

        try:
            startup.start_all_processes(self, results)
        except Exception as e:
            log.critical(f"Startup failed due to an error: {e}", exc_info=True)
            self.stop_all(is_cleanup_after_failure=True)
            return results

        persistence.write_pid_file(self, list(self.running_procs.values()))
        started = sum(1 for r in results if r.ok)
        log.info(
            f"{started}/{len(results)} processes started in {time.time() - start_time:.2f} seconds."
        )
        return results

    def stop_all(self, is_cleanup_after_failure: bool = False) -> List[StopResult]:
        """
        Stops the cluster: first the processes recorded as spawned by this
        supervisor, then (unless disabled or cleaning up after a failed start)
        every process whose command line contains one of STOP_PATTERNS.

        :param is_cleanup_after_failure: If True, uses internal state instead of
                                         the PID file and skips pattern matching.
        :return: One result per process found. Empty when nothing matched.
        """
        targets, results = shutdown.identify_managed_processes(self, is_cleanup_after_failure)
        if is_cleanup_after_failure:
            log.warning("Cleaning up processes after a startup failure.")
        elif self.config.get("STOP_BY_PATTERN", True):
            skip_pids = {proc.pid for proc, _ in targets}
            targets.extend(shutdown.identify_pattern_processes(self.config["STOP_PATTERNS"], skip_pids))

        if targets:
            log.info(f"Initiating graceful shutdown for {len(targets)} processes...")
            results.extend(
                shutdown.graceful_shutdown_sequence(targets, float(self.config["GRACEFUL_SHUTDOWN_TIMEOUT"]))
            )
        else:
            log.info("No running cluster processes found to stop.")

        # Collect exit statuses so our own children do not linger as zombies.
        for popen in self.children.values():
            popen.poll()
        self.children.clear()
        self.running_procs.clear()
        persistence.remove_pid_file(self)
        log.info("Cluster stop sequence completed.")
        return results

    def restart(self) -> Optional[List[LaunchResult]]:
        """Stops the cluster, waits RESTART_DELAY_SECONDS, and starts it again."""
        log.info("Stopping services...")
        self.stop_all()
        time.sleep(float(self.config.get("RESTART_DELAY_SECONDS", 0)))
        log.info("Starting services...")
        return self.start_all()

    def get_pid_info(self) -> Optional[List[ProcessHandle]]:
        """
        Retrieves the recorded process handles from the PID file.

        :return: The recorded handles, or None if there is no valid PID file.
        """
        return persistence.get_pid_info(self)

    def get_status(self) -> List[Dict[str, Any]]:
        """
        Describes every recorded node plus any unmanaged process matching
        STOP_PATTERNS.

        :return: A list of rows with name, pid, status, managed, cpu, mem_mb.
        """
        rows: List[Dict[str, Any]] = []
        managed_pids = set()
        for handle in self.get_pid_info() or []:
            row = {"name": handle.name, "pid": handle.pid, "managed": True, "cpu": None, "mem_mb": None}
            try:
                proc = process_utils.resolve_handle(handle)
                if proc is None:
                    row["status"] = "stopped"
                else:
                    managed_pids.add(proc.pid)
                    row.update(_resource_usage(proc))
                    row["status"] = process_utils.get_proc_status_string(proc)
            except psutil.NoSuchProcess:
                row["status"] = "stopped"
            except psutil.AccessDenied:
                row["status"] = "access denied"
            rows.append(row)

        for proc, _, _ in process_utils.find_processes_by_pattern(self.config["STOP_PATTERNS"], managed_pids):
            row = {"name": proc.info.get("name") or "?", "pid": proc.pid, "managed": False, "cpu": None, "mem_mb": None}
            row["status"] = process_utils.get_proc_status_string(proc)
            try:
                row.update(_resource_usage(proc))
            except psutil.Error:
                pass
            rows.append(row)
        return rows


def _resource_usage(proc: psutil.Process) -> Dict[str, float]:
    with proc.oneshot():
        return {
            "cpu": proc.cpu_percent(interval=0.1),
            "mem_mb": proc.memory_info().rss / 1024 / 1024,
        }
