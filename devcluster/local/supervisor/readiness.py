import time
import socket
import psutil
import logging
import requests
from pathlib import Path
from typing import List, Tuple

from devcluster.local.models import ReadinessProbe
from devcluster.local.supervisor.process_utils import is_alive

log = logging.getLogger(__name__)


def _split_host_port(target: str) -> Tuple[str, int]:
    host, _, port = target.rpartition(":")
    if not host or not port.isdigit():
        raise ValueError(f"TCP readiness target must look like 'host:port', got '{target}'.")
    return host.strip("[]"), int(port)


def check_tcp(target: str) -> bool:
    """True if something accepts connections on host:port."""
    host, port = _split_host_port(target)
    try:
        with socket.create_connection((host, port), timeout=1):
            return True
    except OSError:
        return False


def check_http(url: str) -> bool:
    """True if a GET on the URL answers with a 2xx status."""
    try:
        response = requests.get(url, timeout=2)
        response.raise_for_status()
        return True
    except requests.exceptions.RequestException as e:
        log.debug(f"Health endpoint '{url}' not ready yet: {e}")
        return False


def read_new_output(path: Path, offset: int) -> Tuple[List[str], int]:
    """
    Reads the complete lines appended to a node's output log since `offset`.

    :return: The new lines and the offset to continue from.
    """
    try:
        with path.open("rb") as f:
            f.seek(offset)
            data = f.read()
    except FileNotFoundError:
        return [], offset

    # Leave a trailing partial line for the next read.
    end = data.rfind(b"\n") + 1
    lines = [
        line.decode("utf-8", errors="replace").rstrip("\r")
        for line in data[:end].split(b"\n")
        if line.strip()
    ]
    return lines, offset + end


def wait_until_ready(
    probe: ReadinessProbe,
    name: str,
    proc: psutil.Process,
    output_path: Path,
    output_offset: int,
    poll_interval: float,
) -> Tuple[bool, str]:
    """
    Polls a readiness probe until it succeeds, the process dies, or the
    probe's timeout elapses. Node output seen while waiting is relayed to the
    'proc.<name>' logger at DEBUG level.

    :param probe: The probe to evaluate.
    :param name: Logical node name, for log context.
    :param proc: The spawned process.
    :param output_path: The node's output log.
    :param output_offset: Size of the output log before the node was spawned.
    :param poll_interval: Seconds between checks.
    :return: (ready, detail) where detail explains a failure.
    """
    proc_logger = logging.getLogger(f"proc.{name}")
    log.info(f"Waiting for {name} to become ready ({probe.kind}: {probe.target}, timeout {probe.timeout}s)...")

    start_time = time.monotonic()
    offset = output_offset
    while True:
        lines, offset = read_new_output(output_path, offset)
        marker_seen = False
        for line in lines:
            proc_logger.debug(line)
            if probe.kind == "log" and probe.target in line:
                marker_seen = True

        if probe.kind == "log":
            ready = marker_seen
        elif probe.kind == "tcp":
            ready = check_tcp(probe.target)
        else:
            ready = check_http(probe.target)

        elapsed = time.monotonic() - start_time
        if ready:
            log.info(f"{name} is ready after {elapsed:.2f} seconds.")
            return True, ""
        if not is_alive(proc):
            return False, "process exited while waiting for readiness"
        if elapsed >= probe.timeout:
            log.error(f"{name} did not become ready within {probe.timeout} seconds.")
            return False, f"readiness probe '{probe.kind}: {probe.target}' timed out after {probe.timeout}s"
        time.sleep(poll_interval)
