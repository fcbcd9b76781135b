import logging
import sys
from typing import List, Optional

import devcluster.local.console as console
from devcluster.log import setup_logging

log = logging.getLogger("console")


def main(argv: Optional[List[str]] = None) -> int:
    """
    The entry point of the devcluster command.

    :param argv: Command line arguments without the program name.
    :return int: The exit status.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    setup_logging(logging.INFO)

    # No command is the same as an unknown one: nothing happens.
    if not argv:
        log.debug("No command given.")
        return 0

    command, args = argv[0].lower(), argv[1:]
    if "--verbose" in args:
        console.enable_verbose_logging()
        args.remove("--verbose")

    return console.execute_command(command, args)


if __name__ == "__main__":
    sys.exit(main())
