"""
Shared compute infrastructure for pymixed.

Submodules:
    timing: Execution timing utilities
"""

from pymixed.core.compute.timing import Timer

__all__ = [
    "Timer",
]
