"""
workbloom - Git worktree management with safe cleanup and port allocation
"""

from .__version__ import __version__
from .core import CleanupOrchestrator, SetupOrchestrator

__all__ = ["CleanupOrchestrator", "SetupOrchestrator", "__version__"]
