"""Shared fixtures: an isolated ProcessManager and a fake node executable."""

import os
import stat
import sys
import uuid

import psutil
import pytest

from devcluster.local.models import LaunchSpec
from devcluster.local.supervisor import ProcessManager
from devcluster.local.supervisor.process_utils import find_processes_by_pattern


FAKE_NODE_SOURCE = """#!{python}
import os
import signal
import sys
import time

args = sys.argv[1:]
config = args[args.index("-c") + 1] if "-c" in args else ""
config_name = os.path.basename(config)
if config_name.startswith("ignore-term"):
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
if config_name.startswith("crash"):
    sys.exit(3)
print("node ready with " + config, flush=True)
while True:
    time.sleep(0.1)
"""


@pytest.fixture
def marker():
    """A substring unique to the processes started by one test."""
    return f"fakenode-{uuid.uuid4().hex[:12]}"


@pytest.fixture
def fake_node(tmp_path, marker):
    """
    An executable that behaves like a server node: it stays up until
    signalled. Its behaviour is driven by the file name of the -c argument:
    'crash' exits with code 3, 'ignore-term' ignores SIGTERM.
    """
    path = tmp_path / "bin" / marker
    path.parent.mkdir()
    path.write_text(FAKE_NODE_SOURCE.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def make_spec(tmp_path, fake_node):
    """Builds a LaunchSpec for the fake node with a config named `config_name`."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    def _make(config_name, name="", readiness=None, executable=None):
        config_path = config_dir / f"{config_name}.toml"
        config_path.write_text("# fake node config\n")
        return LaunchSpec(
            executable_path=executable or fake_node,
            config_path=config_path,
            name=name,
            readiness=readiness,
        )

    return _make


@pytest.fixture
def manager(tmp_path, marker):
    """A fresh ProcessManager whose state lives under tmp_path."""
    ProcessManager._instance = None
    pm = ProcessManager()
    pm.config.update(
        BASE_DIR=tmp_path,
        LOGS_DIR=tmp_path / "run" / "logs",
        PID_FILE_PATH=tmp_path / "run" / "devcluster.pid",
        LAUNCH_SPECS=[],
        STOP_PATTERNS=[marker],
        STOP_BY_PATTERN=True,
        LAUNCH_DELAY_SECONDS=0.1,
        READINESS_POLL_INTERVAL=0.05,
        STOP_ON_LAUNCH_FAILURE=False,
        GRACEFUL_SHUTDOWN_TIMEOUT=3,
        RESTART_DELAY_SECONDS=0,
    )
    yield pm

    # Never leave fake nodes behind, whatever the test did.
    leftovers = [proc for proc, _, _ in find_processes_by_pattern([marker])]
    for proc in leftovers:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    psutil.wait_procs(leftovers, timeout=5)
    for popen in pm.children.values():
        popen.poll()
    ProcessManager._instance = None


def _live_matching(marker):
    pids = []
    for proc, _, _ in find_processes_by_pattern([marker]):
        try:
            if proc.status() != psutil.STATUS_ZOMBIE:
                pids.append(proc.pid)
        except psutil.NoSuchProcess:
            continue
    return pids


@pytest.fixture
def live_matching():
    """Returns a function listing PIDs of live (non-zombie) processes matching a marker."""
    return _live_matching


@pytest.fixture
def own_handle_args():
    """Name/pid/create_time of the test process itself, for 'alive' checks."""
    me = psutil.Process(os.getpid())
    return {"name": "self", "pid": me.pid, "create_time": me.create_time()}
