"""Services used by the workbloom orchestrators."""

from .branch_validation_service import BranchValidationService
from .port_allocator import PortAllocator, allocate_ports
from .safety_gate import SafetyGate
from .session_service import SessionService, session_name

__all__ = [
    "BranchValidationService",
    "PortAllocator",
    "SafetyGate",
    "SessionService",
    "allocate_ports",
    "session_name",
]
