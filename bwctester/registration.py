from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, List, Optional

from . import generate_model_id, read_fixture, test_logger
from .mltester import MLCommonsTester
from .retention import RetentionPolicy
from .templates import build_payload

logger = test_logger.get_test_logger(__name__)

MODEL_GROUP_TEMPLATE = "processor/CreateModelGroupRequestBody.json"


class ModelKind(Enum):
    TEXT_EMBEDDING = "text_embedding"
    TEXT_IMAGE_EMBEDDING = "text_image_embedding"
    SPARSE_ENCODING = "sparse_encoding"


class PipelineKind(Enum):
    TEXT_EMBEDDING = "text_embedding"
    TEXT_IMAGE_EMBEDDING = "text_image_embedding"
    SPARSE_ENCODING = "sparse_encoding"
    TEXT_CHUNKING = "text_chunking"


MODEL_TEMPLATES: Dict[ModelKind, str] = {
    ModelKind.TEXT_EMBEDDING: "processor/UploadModelRequestBody.json",
    ModelKind.TEXT_IMAGE_EMBEDDING: "processor/UploadModelRequestBody.json",
    ModelKind.SPARSE_ENCODING: "processor/UploadSparseEncodingModelRequestBody.json",
}

PIPELINE_TEMPLATES: Dict[PipelineKind, str] = {
    PipelineKind.TEXT_EMBEDDING: "processor/PipelineConfiguration.json",
    PipelineKind.TEXT_IMAGE_EMBEDDING: "processor/PipelineForTextImageProcessorConfiguration.json",
    PipelineKind.SPARSE_ENCODING: "processor/PipelineForSparseEncodingProcessorConfiguration.json",
    PipelineKind.TEXT_CHUNKING: "processor/PipelineForTextChunkingProcessorConfiguration.json",
}


class ModelRegistrar:
    """Creates model groups, models and ingest pipelines from the request templates.

    Every model and pipeline created is remembered so the suite can remove them when the
    retention policy allows it."""

    def __init__(
        self,
        tester: MLCommonsTester,
        load_template: Callable[[str], str] = read_fixture,
        new_model_group_name: Callable[[], str] = generate_model_id,
    ):
        self.tester = tester
        self.load_template = load_template
        self.new_model_group_name = new_model_group_name
        self.created_models: List[str] = []
        self.created_pipelines: List[str] = []

    def register_model_group_and_get_model_id(self, model_template: str) -> str:
        model_group_body = build_payload(
            self.load_template(MODEL_GROUP_TEMPLATE), {"model_group_name": self.new_model_group_name()}
        )
        model_group_id = self.tester.register_model_group(model_group_body)
        model_id = self.tester.upload_model(build_payload(model_template, {"model_group_id": model_group_id}))
        self.created_models.append(model_id)
        return model_id

    def upload_model(self, kind: ModelKind) -> str:
        logger.info(f"Uploading {kind.value} model")
        return self.register_model_group_and_get_model_id(self.load_template(MODEL_TEMPLATES[kind]))

    def create_pipeline(
        self,
        kind: PipelineKind,
        pipeline_name: str,
        model_id: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        body = build_payload(
            self.load_template(PIPELINE_TEMPLATES[kind]), {"model_id": model_id, "batch_size": batch_size}
        )
        logger.info(f"Creating {kind.value} pipeline {pipeline_name}")
        self.tester.create_pipeline_processor(body, pipeline_name)
        self.created_pipelines.append(pipeline_name)

    def create_pipeline_processor(self, model_id: str, pipeline_name: str):
        self.create_pipeline(PipelineKind.TEXT_EMBEDDING, pipeline_name, model_id)

    def create_pipeline_for_text_image_processor(self, model_id: str, pipeline_name: str):
        self.create_pipeline(PipelineKind.TEXT_IMAGE_EMBEDDING, pipeline_name, model_id)

    def create_pipeline_for_sparse_encoding_processor(
        self, model_id: str, pipeline_name: str, batch_size: Optional[int] = None
    ):
        self.create_pipeline(PipelineKind.SPARSE_ENCODING, pipeline_name, model_id, batch_size)

    def create_pipeline_for_text_chunking_processor(self, pipeline_name: str):
        self.create_pipeline(PipelineKind.TEXT_CHUNKING, pipeline_name)

    def clean_up(self, policy: RetentionPolicy):
        if not policy.clean_up_resources:
            logger.debug(
                f"Keeping {len(self.created_pipelines)} pipeline(s) and {len(self.created_models)} model(s) "
                "for the next phase"
            )
            return
        for pipeline_name in self.created_pipelines:
            self.tester.delete_pipeline(pipeline_name)
        for model_id in self.created_models:
            self.tester.delete_model(model_id)
        self.created_pipelines.clear()
        self.created_models.clear()
