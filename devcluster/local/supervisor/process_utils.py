import os
import sys
import psutil
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from devcluster.local.models import LaunchSpec, ProcessHandle

log = logging.getLogger(__name__)


#* --- Process Status & Lookup ---
def pid_exists(pid: int) -> bool:
    """A wrapper for psutil.pid_exists for easy testing/mocking if needed."""
    return psutil.pid_exists(pid)

def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)

def get_proc_status_string(proc: psutil.Process) -> str:
    """Gets a string representation of a process status."""
    try:
        if proc.status() == psutil.STATUS_ZOMBIE:
            return "zombie"
        return "running"
    except psutil.NoSuchProcess:
        return "stopped"
    except psutil.Error:
        return "unknown"

def is_alive(proc: psutil.Process) -> bool:
    """True if the process exists and is not a zombie."""
    try:
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False

def resolve_handle(handle: ProcessHandle) -> Optional[psutil.Process]:
    """
    Returns the live process behind a handle, or None when the pid is gone
    or now belongs to a different process.

    :param handle: A handle recorded when the process was spawned.
    :raises psutil.AccessDenied: If the process exists but cannot be inspected.
    """
    if not pid_exists(handle.pid):
        return None
    try:
        proc = get_process_from_pid(handle.pid)
        if abs(proc.create_time() - handle.create_time) > 0.01:
            log.debug(f"PID {handle.pid} was reused by another process; ignoring handle '{handle.name}'.")
            return None
        return proc if is_alive(proc) else None
    except psutil.NoSuchProcess:
        return None

def _joined_cmdline(proc: psutil.Process) -> Tuple[List[str], str]:
    cmdline = proc.info.get("cmdline") or []
    if not cmdline:
        # Kernel threads and some zombies have no argv; fall back to the name.
        name = proc.info.get("name") or ""
        return [name] if name else [], name
    return cmdline, " ".join(cmdline)

def find_processes_by_pattern(
    patterns: Iterable[str],
    exclude_pids: Optional[Set[int]] = None,
) -> List[Tuple[psutil.Process, str, List[str]]]:
    """
    Scans the process table for processes whose full command line contains
    any of the given substrings.

    The current process and its ancestors are never returned.

    :param patterns: Substrings to look for.
    :param exclude_pids: Additional PIDs to skip.
    :return: A list of (process, matched pattern, cmdline) tuples.
    """
    skip = set(exclude_pids or ())
    skip.add(os.getpid())
    try:
        skip.update(p.pid for p in psutil.Process().parents())
    except psutil.Error:
        pass

    patterns = [p for p in patterns if p]
    matches: List[Tuple[psutil.Process, str, List[str]]] = []
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        if proc.pid in skip:
            continue
        cmdline, joined = _joined_cmdline(proc)
        for pattern in patterns:
            if pattern in joined:
                matches.append((proc, pattern, cmdline))
                break
    return matches


#* --- Process Creation ---
def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    if sys.platform == "win32" and not base_path.suffix:
        return base_path.with_suffix(".exe")
    return base_path

def get_popen_creation_flags() -> Dict[str, Any]:
    """
    Returns platform-specific keyword arguments that detach the child from the
    supervisor, so it keeps running after the supervisor exits.
    """
    if sys.platform == "win32":
        return {"creationflags": subprocess.DETACHED_PROCESS | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}

def get_output_log_path(logs_dir: Path, name: str) -> Path:
    """Returns the file a node's stdout/stderr is appended to."""
    return logs_dir / f"{name}.log"

def spawn_process(spec: LaunchSpec, logs_dir: Path, cwd: Path) -> Tuple[ProcessHandle, subprocess.Popen]:
    """
    Spawns a single LaunchSpec as a detached background process.

    The call returns as soon as the process has been created; it never waits
    for the child to exit.

    :param spec: What to launch.
    :param logs_dir: Directory for the node's output log.
    :param cwd: Working directory of the child.
    :return: A handle identifying the spawned process, and its Popen object.
    :raises OSError: If the executable is missing or cannot be executed.
    """
    args = spec.command()
    args[0] = str(get_executable_path(Path(args[0])))
    logs_dir.mkdir(parents=True, exist_ok=True)
    output_path = get_output_log_path(logs_dir, spec.name)

    log.info(f"Starting process: {spec.name} ({' '.join(args)})...")
    # The child inherits its own copy of the descriptor; ours is closed on exit.
    with output_path.open("ab") as output:
        p = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=output,
            stderr=subprocess.STDOUT,
            cwd=str(cwd),
            **get_popen_creation_flags(),
        )

    try:
        create_time = psutil.Process(p.pid).create_time()
    except psutil.NoSuchProcess:
        # Exited (and was reaped) before we could look at it.
        create_time = 0.0
    handle = ProcessHandle(name=spec.name, pid=p.pid, create_time=create_time, command=tuple(args))
    log.info(f"{spec.name} started with PID: {p.pid} (output: {output_path})")
    return handle, p
