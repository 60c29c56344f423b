from bwctester.config import BWCConfig
from bwctester.mltester import MLCommonsTester
from bwctester.phase import ClusterPhase
from bwctester.registration import ModelKind, ModelRegistrar
from bwctester.test_logger import get_test_logger
from pytest import mark
from tests.common.neural_search_helper import (
    NUM_DOCS_PER_ROUND,
    assert_doc_count,
    assert_query_has_hits,
    create_index_with_pipeline,
    load_and_wait_for_model,
    wipe_test_resources,
)

logger = get_test_logger(__name__)

PIPELINE_NAME = "nlp-ingest-pipeline"
TEXT_EMBEDDING_PROCESSOR = "text_embedding"
TEST_FIELD = "passage_text"
TEXT = "Hello world"
TEXT_MIXED = "Hi planet"
TEXT_UPGRADED = "Hi earth"


def validate_index(ml_tester: MLCommonsTester, index_name: str, model_id: str, expected_docs: int, text: str):
    assert_doc_count(ml_tester, index_name, expected_docs)
    query = {"neural": {"passage_embedding": {"query_text": text, "model_id": model_id, "k": 1}}}
    assert_query_has_hits(ml_tester, index_name, query)


@mark.e2e_rolling_upgrade
def test_text_embedding_e2e_flow(
    bwc_config: BWCConfig, ml_tester: MLCommonsTester, registrar: ModelRegistrar, index_name: str
):
    if bwc_config.cluster_phase == ClusterPhase.OLD:
        model_id = registrar.upload_model(ModelKind.TEXT_EMBEDDING)
        load_and_wait_for_model(ml_tester, model_id)
        registrar.create_pipeline_processor(model_id, PIPELINE_NAME)
        create_index_with_pipeline(ml_tester, index_name, "index/IndexMappings.json", PIPELINE_NAME)
        ml_tester.add_document(index_name, "0", {TEST_FIELD: TEXT})

    elif bwc_config.cluster_phase == ClusterPhase.MIXED:
        model_id = ml_tester.get_model_id_from_pipeline(PIPELINE_NAME, TEXT_EMBEDDING_PROCESSOR)
        load_and_wait_for_model(ml_tester, model_id)
        if bwc_config.is_first_mixed_round():
            validate_index(ml_tester, index_name, model_id, NUM_DOCS_PER_ROUND, TEXT)
            ml_tester.add_document(index_name, "1", {TEST_FIELD: TEXT_MIXED})
        else:
            validate_index(ml_tester, index_name, model_id, 2 * NUM_DOCS_PER_ROUND, TEXT_MIXED)

    else:
        model_id = ml_tester.get_model_id_from_pipeline(PIPELINE_NAME, TEXT_EMBEDDING_PROCESSOR)
        try:
            load_and_wait_for_model(ml_tester, model_id)
            ml_tester.add_document(index_name, "2", {TEST_FIELD: TEXT_UPGRADED})
            validate_index(ml_tester, index_name, model_id, 3 * NUM_DOCS_PER_ROUND, TEXT_UPGRADED)
        finally:
            wipe_test_resources(ml_tester, index_name, PIPELINE_NAME, model_id)
