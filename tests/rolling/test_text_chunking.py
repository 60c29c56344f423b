from bwctester.config import BWCConfig
from bwctester.mltester import MLCommonsTester
from bwctester.phase import ClusterPhase
from bwctester.registration import ModelRegistrar
from pytest import mark
from tests.common.neural_search_helper import (
    NUM_DOCS_PER_ROUND,
    assert_doc_count,
    create_index_with_pipeline,
    wipe_test_resources,
)

PIPELINE_NAME = "pipeline-text-chunking"
INPUT_FIELD = "body"
OUTPUT_FIELD = "body_chunk"
TEXT = "This is an example document to be chunked. The document contains a single paragraph, two sentences and 24 tokens by standard tokenizer in OpenSearch."


def assert_chunked(ml_tester: MLCommonsTester, index_name: str, expected_docs: int):
    assert_doc_count(ml_tester, index_name, expected_docs)
    for hit in ml_tester.search(index_name, {"match_all": {}}, size=expected_docs):
        chunks = hit["_source"].get(OUTPUT_FIELD)
        assert chunks, f"document {hit['_id']} in {index_name} was not chunked"


@mark.e2e_rolling_upgrade
def test_text_chunking_e2e_flow(
    bwc_config: BWCConfig, ml_tester: MLCommonsTester, registrar: ModelRegistrar, index_name: str
):
    if bwc_config.cluster_phase == ClusterPhase.OLD:
        registrar.create_pipeline_for_text_chunking_processor(PIPELINE_NAME)
        create_index_with_pipeline(ml_tester, index_name, "index/ChunkingIndexSettings.json", PIPELINE_NAME)
        ml_tester.add_document(index_name, "0", {INPUT_FIELD: TEXT})

    elif bwc_config.cluster_phase == ClusterPhase.MIXED:
        if bwc_config.is_first_mixed_round():
            assert_chunked(ml_tester, index_name, NUM_DOCS_PER_ROUND)
            ml_tester.add_document(index_name, "1", {INPUT_FIELD: TEXT})
        else:
            assert_chunked(ml_tester, index_name, 2 * NUM_DOCS_PER_ROUND)

    else:
        try:
            ml_tester.add_document(index_name, "2", {INPUT_FIELD: TEXT})
            assert_chunked(ml_tester, index_name, 3 * NUM_DOCS_PER_ROUND)
        finally:
            wipe_test_resources(ml_tester, index_name, PIPELINE_NAME)
