from bwctester import index_name_for_test
from bwctester.config import BWCConfig, is_rolling_upgrade_run
from bwctester.mltester import MLCommonsTester, NeuralSearchContext
from bwctester.phase import ClusterPhase
from bwctester.registration import ModelRegistrar
from bwctester.retention import RetentionPolicy, retention_policy_for
from bwctester.test_logger import get_test_logger
from pytest import fixture, mark

logger = get_test_logger(__name__)

ROLLING_UPGRADE_MARKER = "e2e_rolling_upgrade"


def pytest_collection_modifyitems(config, items):
    """Rolling upgrade tests need a cluster, they only run when the suite was started for one of the phases."""
    if is_rolling_upgrade_run():
        return
    skip_e2e = mark.skip(reason="BWCSUITE_CLUSTER is not set, not a rolling upgrade run")
    for item in items:
        if ROLLING_UPGRADE_MARKER in item.keywords:
            item.add_marker(skip_e2e)


@fixture(scope="session")
def bwc_config() -> BWCConfig:
    config = BWCConfig.from_env()
    logger.info(
        f"Running rolling upgrade phase {config.cluster_phase.name} "
        f"(first mixed round: {config.first_mixed_round}, bwc version: {config.bwc_version})"
    )
    return config


@fixture(scope="session")
def cluster_phase(bwc_config: BWCConfig) -> ClusterPhase:
    return bwc_config.cluster_phase


@fixture(scope="session")
def retention_policy(cluster_phase: ClusterPhase) -> RetentionPolicy:
    return retention_policy_for(cluster_phase)


@fixture(scope="session")
def ml_tester(bwc_config: BWCConfig, retention_policy: RetentionPolicy) -> MLCommonsTester:
    tester = MLCommonsTester(NeuralSearchContext.build_from_config(bwc_config))
    yield tester
    tester.wipe_cluster(retention_policy)


@fixture(scope="session")
def registrar(ml_tester: MLCommonsTester, retention_policy: RetentionPolicy) -> ModelRegistrar:
    registrar = ModelRegistrar(ml_tester)
    yield registrar
    registrar.clean_up(retention_policy)


@fixture(scope="function")
def index_name(request) -> str:
    return index_name_for_test(request.node.originalname)
