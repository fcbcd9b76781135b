"""
Local package for devcluster.

This package provides the effective configuration (defaults merged with
environment and JSON overrides) through the effective_settings object.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
