"""
devcluster: start and stop a local cluster of server nodes.

Each node is an external executable launched with `-c <config file>`.
"""

__version__ = "0.1.0"
