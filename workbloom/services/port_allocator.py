"""Deterministic per-branch port allocation."""

import hashlib

from workbloom.constants import (
    BACKEND_BASE_PORT,
    DATABASE_BASE_PORT,
    FRONTEND_BASE_PORT,
    PORT_SPAN,
)
from workbloom.models.decision import PortTriple


def stable_hash(value: str) -> int:
    """64-bit digest of ``value`` that is identical across processes and machines.

    Python's built-in ``hash()`` is salted per process and must not be used here.
    """
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


class PortAllocator:
    """Map a branch name to its frontend/backend/database ports.

    The mapping depends on the branch name alone. Collisions between branches,
    or with ports already bound by other processes, are not detected.
    """

    def __init__(
        self,
        span: int = PORT_SPAN,
        frontend_base: int = FRONTEND_BASE_PORT,
        backend_base: int = BACKEND_BASE_PORT,
        database_base: int = DATABASE_BASE_PORT,
    ):
        self.span = span
        self.frontend_base = frontend_base
        self.backend_base = backend_base
        self.database_base = database_base

    @classmethod
    def from_config(cls, config) -> "PortAllocator":
        return cls(
            span=config.port_span,
            frontend_base=config.frontend_base_port,
            backend_base=config.backend_base_port,
            database_base=config.database_base_port,
        )

    def offset(self, branch_name: str) -> int:
        """Offset in ``1..span``; never zero so the base ports stay free for the main checkout."""
        return stable_hash(branch_name) % self.span + 1

    def allocate(self, branch_name: str) -> PortTriple:
        offset = self.offset(branch_name)
        return PortTriple(
            frontend=self.frontend_base + offset,
            backend=self.backend_base + offset,
            database=self.database_base + offset,
        )


def allocate_ports(branch_name: str) -> PortTriple:
    """Ports for ``branch_name`` with the default bases and span."""
    return PortAllocator().allocate(branch_name)
