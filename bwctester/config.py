from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

import semver

from .phase import ClusterPhase, resolve_cluster_phase

BWCSUITE_CLUSTER = "BWCSUITE_CLUSTER"
ROLLING_UPGRADE_FIRST_ROUND = "ROLLING_UPGRADE_FIRST_ROUND"
BWC_VERSION = "BWC_VERSION"
OPENSEARCH_URL = "OPENSEARCH_URL"
OPENSEARCH_USER = "OPENSEARCH_USER"
OPENSEARCH_PASSWORD = "OPENSEARCH_PASSWORD"
OPENSEARCH_VERIFY_TLS = "OPENSEARCH_VERIFY_TLS"

DEFAULT_OPENSEARCH_URL = "http://localhost:9200"

# Waits for a green cluster health during an upgrade need to be longer than a minute
# to account for delayed shards.
REST_CLIENT_SOCKET_TIMEOUT = 120


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Only a case-insensitive "true" is true, anything else set is false."""
    if value is None:
        return default
    return value.lower() == "true"


def is_rolling_upgrade_run(environ: Optional[Mapping[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    return bool(environ.get(BWCSUITE_CLUSTER))


@dataclass(frozen=True)
class BWCConfig:
    cluster_phase: ClusterPhase
    first_mixed_round: bool = False
    bwc_version: Optional[str] = None
    base_url: str = DEFAULT_OPENSEARCH_URL
    user: Optional[str] = None
    password: Optional[str] = None
    verify_tls: bool = False
    socket_timeout: int = REST_CLIENT_SOCKET_TIMEOUT

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> BWCConfig:
        """Builds the suite configuration once. The phase token is mandatory and must be one of
        the three known values."""
        environ = os.environ if environ is None else environ
        return BWCConfig(
            cluster_phase=resolve_cluster_phase(environ.get(BWCSUITE_CLUSTER)),
            first_mixed_round=parse_bool(environ.get(ROLLING_UPGRADE_FIRST_ROUND), default=False),
            bwc_version=environ.get(BWC_VERSION) or None,
            base_url=environ.get(OPENSEARCH_URL, DEFAULT_OPENSEARCH_URL).rstrip("/"),
            user=environ.get(OPENSEARCH_USER) or None,
            password=environ.get(OPENSEARCH_PASSWORD) or None,
            verify_tls=parse_bool(environ.get(OPENSEARCH_VERIFY_TLS)),
        )

    def is_first_mixed_round(self) -> bool:
        return self.first_mixed_round

    def resolved_bwc_version(self) -> Optional[str]:
        return self.bwc_version

    def bwc_version_at_least(self, minimum: str) -> bool:
        """Returns True if the version the suite upgrades from is `minimum` or newer.
        Pre-release suffixes such as -SNAPSHOT are ignored. False when no version was given."""
        if self.bwc_version is None:
            return False
        current = semver.VersionInfo.parse(self.bwc_version, optional_minor_and_patch=True).finalize_version()
        return current >= semver.VersionInfo.parse(minimum, optional_minor_and_patch=True).finalize_version()
