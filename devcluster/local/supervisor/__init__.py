"""
The Supervisor package.
Manages the lifecycle of the cluster's node processes.

This package contains the central ProcessManager class and its helper modules,
which together handle spawning nodes in order, waiting for them, recording
their handles, and stopping them.
"""
from .supervisor import ProcessManager

__all__ = ['ProcessManager']
