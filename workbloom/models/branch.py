"""Branch model and related enums"""
from enum import Enum
from dataclasses import dataclass
from typing import Optional


class UpstreamKind(Enum):
    """Where a branch's upstream lives."""
    NONE = "none"
    LOCAL_ONLY = "local-only"
    REMOTE = "remote"


@dataclass(frozen=True)
class Branch:
    """A branch as observed in the repository during one command."""
    name: str
    head: str
    upstream: UpstreamKind = UpstreamKind.NONE
    upstream_ref: Optional[str] = None  # e.g. "origin/feature/x"
