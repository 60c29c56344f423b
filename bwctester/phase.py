from __future__ import annotations

from enum import Enum
from typing import Dict

OLD_CLUSTER = "old_cluster"
MIXED_CLUSTER = "mixed_cluster"
UPGRADED_CLUSTER = "upgraded_cluster"


class ClusterPhase(Enum):
    OLD = 1
    MIXED = 2
    UPGRADED = 3


class UnknownClusterPhaseError(ValueError):
    def __init__(self, token):
        super().__init__(f"unknown cluster type: {token}")
        self.token = token


_PHASES_BY_TOKEN: Dict[str, ClusterPhase] = {
    OLD_CLUSTER: ClusterPhase.OLD,
    MIXED_CLUSTER: ClusterPhase.MIXED,
    UPGRADED_CLUSTER: ClusterPhase.UPGRADED,
}


def resolve_cluster_phase(token: str) -> ClusterPhase:
    """Maps the phase token the suite was started with to a ClusterPhase.
    Unknown tokens (including None) are a setup error and are never retried."""
    try:
        return _PHASES_BY_TOKEN[token]
    except (KeyError, TypeError):
        raise UnknownClusterPhaseError(token) from None
