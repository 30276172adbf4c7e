"""Core orchestration for workbloom"""

from .cleanup_orchestrator import CleanupOrchestrator
from .setup_orchestrator import SetupOrchestrator, SetupResult

__all__ = ["CleanupOrchestrator", "SetupOrchestrator", "SetupResult"]
