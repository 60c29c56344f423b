from __future__ import annotations

from dataclasses import dataclass

from .phase import ClusterPhase


@dataclass(frozen=True)
class RetentionPolicy:
    """Which resources survive the end of a test run.

    The MIXED and UPGRADED phases validate indices, pipelines and models created by the OLD
    phase, so the default per-test cleanup must never run between phases."""

    preserve_indices: bool = True
    preserve_repositories: bool = True
    preserve_templates: bool = True
    clean_up_resources: bool = False


ROLLING_UPGRADE_RETENTION = RetentionPolicy()


def retention_policy_for(phase: ClusterPhase) -> RetentionPolicy:
    # The UPGRADED phase removes its own resources explicitly once it has validated them.
    return ROLLING_UPGRADE_RETENTION
