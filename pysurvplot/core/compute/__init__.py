"""
Shared compute infrastructure for pysurvplot.

Submodules:
    timing: Execution timing utilities
"""

from pysurvplot.core.compute.timing import Timer

__all__ = [
    "Timer",
]
