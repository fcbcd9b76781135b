import logging
from typing import List

from devcluster.local.supervisor import ProcessManager
from devcluster.local.console.handler import (
    display_status, print_help, report_launch_results, report_stop_results,
)

log = logging.getLogger(__name__)


def execute_command(command: str, args: List[str]) -> int:
    """
    Executes a single command from the user.

    Anything that is not a known command is ignored without a diagnostic.

    :param command: The main command string (e.g., 'start', 'stop').
    :param args: A list of arguments for the command.
    :return int: The process exit status.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    process_manager = ProcessManager()
    command_map = {
        "start": lambda: report_launch_results(process_manager.start_all()),
        "stop": lambda: report_stop_results(process_manager.stop_all()),
        "restart": lambda: report_launch_results(process_manager.restart()),
        "status": display_status,
        "help": print_help,
    }

    if command in command_map:
        return command_map[command]()

    log.debug(f"Ignoring unknown command: '{command}'.")
    return 0
