import psutil
import logging
from typing import TYPE_CHECKING, Iterable, List, Set, Tuple

from devcluster.local.models import ProcessHandle, StopOutcome, StopResult
from devcluster.local.supervisor import persistence, process_utils

if TYPE_CHECKING:
    from .supervisor import ProcessManager

log = logging.getLogger(__name__)

# A process selected for termination, paired with the result that will
# describe what happened to it.
Target = Tuple[psutil.Process, StopResult]

KILL_REAP_TIMEOUT = 5  # seconds to wait for SIGKILL to take effect


def identify_managed_processes(
    manager: "ProcessManager",
    is_cleanup_after_failure: bool,
) -> Tuple[List[Target], List[StopResult]]:
    """
    Resolves the handles this supervisor spawned into live processes.

    :param manager: The ProcessManager instance.
    :param is_cleanup_after_failure: If True, uses internal state instead of the PID file.
    :return: (targets to stop, results for handles that need no signal).
    """
    handles: List[ProcessHandle] = list(manager.running_procs.values())
    if not is_cleanup_after_failure:
        known = {(h.pid, h.create_time) for h in handles}
        for handle in persistence.get_pid_info(manager) or []:
            if (handle.pid, handle.create_time) not in known:
                handles.append(handle)

    targets: List[Target] = []
    settled: List[StopResult] = []
    for handle in handles:
        result = StopResult(
            pid=handle.pid, name=handle.name, outcome=StopOutcome.TERMINATED,
            matched_by="handle", cmdline=handle.command,
        )
        try:
            proc = process_utils.resolve_handle(handle)
        except psutil.AccessDenied:
            result.outcome = StopOutcome.PERMISSION_DENIED
            result.detail = "access denied while inspecting the process"
            settled.append(result)
            continue
        if proc is None:
            result.outcome = StopOutcome.NOT_FOUND
            result.detail = "no live process for the recorded handle"
            settled.append(result)
            continue
        targets.append((proc, result))
    return targets, settled


def identify_pattern_processes(patterns: Iterable[str], skip_pids: Set[int]) -> List[Target]:
    """
    Finds processes started out-of-band by substring match on their command line.

    Any process whose command line merely contains a pattern is selected too;
    callers get that as documented behavior, not as an error.

    :param patterns: Command line substrings to look for.
    :param skip_pids: PIDs already selected by the precise pass.
    :return: Targets matched by pattern.
    """
    targets: List[Target] = []
    for proc, pattern, cmdline in process_utils.find_processes_by_pattern(patterns, skip_pids):
        name = proc.info.get("name") or ""
        log.debug(f"Pattern '{pattern}' matched PID {proc.pid}: {' '.join(cmdline)}")
        targets.append((
            proc,
            StopResult(
                pid=proc.pid, name=name, outcome=StopOutcome.TERMINATED,
                matched_by=f"pattern:{pattern}", cmdline=tuple(cmdline),
            ),
        ))
    return targets


def _terminate_processes(targets: List[Target]) -> List[Target]:
    """Sends SIGTERM to every target and returns the ones that were signalled."""
    signalled: List[Target] = []
    for proc, result in targets:
        try:
            log.debug(f"Sending SIGTERM to {result.name} (PID {proc.pid})")
            proc.terminate()
            signalled.append((proc, result))
        except psutil.NoSuchProcess:
            log.debug(f"Process {proc.pid} no longer exists, skipping termination.")
            result.outcome = StopOutcome.ALREADY_EXITED
        except psutil.AccessDenied:
            log.warning(f"Permission denied sending SIGTERM to {result.name} (PID {proc.pid}).")
            result.outcome = StopOutcome.PERMISSION_DENIED
            result.detail = "access denied sending SIGTERM"
    return signalled


def _forceful_kill(targets: List[Target]) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    if not targets:
        return

    log.warning(f"{len(targets)} processes did not terminate gracefully. Forcing shutdown...")
    killed: List[psutil.Process] = []
    for proc, result in targets:
        try:
            log.warning(f"Killing stubborn process {result.name} (PID {proc.pid}).")
            proc.kill()
            result.outcome = StopOutcome.KILLED
            killed.append(proc)
        except psutil.NoSuchProcess:
            # It went away on its own between the wait and the kill.
            result.outcome = StopOutcome.TERMINATED
        except psutil.AccessDenied:
            result.outcome = StopOutcome.PERMISSION_DENIED
            result.detail = "ignored SIGTERM and access denied sending SIGKILL"

    _, still_alive = psutil.wait_procs(killed, timeout=KILL_REAP_TIMEOUT)
    for proc in still_alive:
        log.error(f"Process {proc.pid} is still alive after SIGKILL.")


def graceful_shutdown_sequence(targets: List[Target], timeout: float) -> List[StopResult]:
    """
    Runs the full graceful shutdown sequence for the given targets:
    SIGTERM, wait up to `timeout` seconds, then SIGKILL whatever is left.

    :param targets: Processes to shut down, with their pending results.
    :param timeout: Seconds to wait for SIGTERM to take effect.
    :return: The final result of every target.
    """
    signalled = _terminate_processes(targets)

    # Wait and verify
    procs_list = [proc for proc, _ in signalled]
    try:
        _, alive = psutil.wait_procs(procs_list, timeout=timeout)
    except psutil.NoSuchProcess:
        alive = []

    alive_pids = {proc.pid for proc in alive}
    # If any processes are still alive after the timeout, forcefully kill them.
    _forceful_kill([(proc, result) for proc, result in signalled if proc.pid in alive_pids])
    return [result for _, result in targets]
