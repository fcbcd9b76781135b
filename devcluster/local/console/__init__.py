"""
This module initializes the console package, exposing command execution,
verbose logging and help output.
"""

from .process import execute_command
from .handler import enable_verbose_logging, print_help

__all__ = ["execute_command", "enable_verbose_logging", "print_help"]
