import logging
from typing import List, Optional

from devcluster.local import effective_settings as config
from devcluster.local.models import LaunchResult, StopResult
from devcluster.local.supervisor import ProcessManager
from devcluster.log import set_console_level

log = logging.getLogger(__name__)


def report_launch_results(results: Optional[List[LaunchResult]]) -> int:
    """
    Logs one line per launch and returns the exit status for 'start'.

    :param results: What start_all returned (None if it refused to start).
    :return: 0 if every spec started, 1 otherwise.
    """
    if results is None:
        return 1
    for result in results:
        pid = f"PID {result.handle.pid}" if result.handle else "no PID"
        if result.ok:
            log.info(f"  {result.spec.name:<12} {result.outcome.value:<14} ({pid})")
        else:
            log.error(f"  {result.spec.name:<12} {result.outcome.value:<14} ({pid}) {result.detail}")
    return 0 if all(r.ok for r in results) else 1


def report_stop_results(results: List[StopResult]) -> int:
    """Logs one line per stopped process. Stopping never fails the command."""
    for result in results:
        log.info(
            f"  PID {result.pid:<8} {result.name:<20} {result.outcome.value:<17} via {result.matched_by}"
            + (f" ({result.detail})" if result.detail else "")
        )
    return 0


def display_status() -> int:
    """Prints the status of every recorded node and any unmanaged matching process."""
    rows = ProcessManager().get_status()
    if not rows:
        print("\nCluster is STOPPED (no PID file and no matching processes).\n")
        return 0

    print("\n--- Cluster Status ---")
    for row in rows:
        label = row["name"] if row["managed"] else f"{row['name']} (unmanaged)"
        usage = ""
        if row["cpu"] is not None:
            usage = f" | CPU: {row['cpu']:.1f}% | MEM: {row['mem_mb']:.1f} MB"
        print(f"  - {label:<32} : PID {row['pid']:<8} | Status: {row['status'].upper()}{usage}")
    print("----------------------\n")
    return 0


def enable_verbose_logging() -> None:
    """Switches console logging to DEBUG."""
    config.VERBOSE_LOGGING = True
    set_console_level(logging.DEBUG)
    log.debug("Verbose logging enabled.")


def print_help() -> int:
    print("\nAvailable commands:")
    print("  start     - Launch every configured node, in order.")
    print("  stop      - Stop the nodes started by 'start' and any process matching the stop patterns.")
    print("  restart   - 'stop' followed by 'start'.")
    print("  status    - Show the state of the cluster processes.")
    print("  help      - Show this help message.")
    print("Add --verbose after a command for DEBUG output.\n")
    return 0
