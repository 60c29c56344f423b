from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional

import requests
from opentelemetry import trace
from requests.auth import HTTPBasicAuth

from . import test_logger
from .bwctester import AttemptsExhaustedError, retry_until
from .config import REST_CLIENT_SOCKET_TIMEOUT, BWCConfig
from .model_state import ModelState, parse_model_state
from .retention import RetentionPolicy

TRACER = trace.get_tracer("bwc-rolling-upgrade")
logger = test_logger.get_test_logger(__name__)

ML_BASE_URI = "/_plugins/_ml"
TASK_MAX_ATTEMPTS = 60
TASK_WAIT_SECONDS = 1


class TaskState:
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    COMPLETED_WITH_ERROR = "COMPLETED_WITH_ERROR"


TASK_FAILED_STATES = (TaskState.FAILED, TaskState.CANCELLED, TaskState.COMPLETED_WITH_ERROR)


class OpenSearchRequestError(Exception):
    def __init__(self, status_code: int, method: str, path: str, body: str):
        super().__init__(
            "Error sending request to OpenSearch. {} ({}).\n Request details: {} {}".format(
                status_code, body, method.upper(), path
            )
        )
        self.status_code = status_code
        self.method = method
        self.path = path
        self.body = body


class MLTaskFailedError(Exception):
    def __init__(self, task_id: str, task: Dict):
        super().__init__(f"ml-commons task {task_id} ended in state {task.get('state')}: {task.get('error')}")
        self.task_id = task_id
        self.task = task


class NeuralSearchContext(object):
    def __init__(
        self,
        base_url: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        verify: bool = False,
        timeout: int = REST_CLIENT_SOCKET_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.user = user
        self.password = password
        self.verify = verify
        self.timeout = timeout

    @staticmethod
    def build_from_config(config: BWCConfig) -> NeuralSearchContext:
        return NeuralSearchContext(
            base_url=config.base_url,
            user=config.user,
            password=config.password,
            verify=config.verify_tls,
            timeout=config.socket_timeout,
        )


class MLCommonsTester(object):
    """MLCommonsTester encapsulates the REST calls the rolling upgrade tests make against the
    neural-search and ml-commons plugins. Failed requests are raised, never retried."""

    def __init__(self, context: NeuralSearchContext, session: Optional[requests.Session] = None):
        self.context = context
        self.session = session if session is not None else requests.Session()
        self.sleep: Callable[[float], None] = time.sleep

    @TRACER.start_as_current_span("opensearch_request")
    def request(self, method: str, path: str, json_object: Optional[Dict] = None, data: Optional[str] = None):
        """Sends a request to the cluster. `data` is an already rendered JSON payload and takes
        precedence over `json_object`."""
        span = trace.get_current_span()
        span.set_attribute(key="bwc.request.path", value=path)
        span.set_attribute(key="bwc.request.method", value=method.upper())

        auth = None
        if self.context.user is not None:
            auth = HTTPBasicAuth(self.context.user, self.context.password or "")

        start_time = time.time()
        response = self.session.request(
            method=method,
            url=f"{self.context.base_url}{path}",
            auth=auth,
            headers={"Content-Type": "application/json"},
            json=json_object if data is None else None,
            data=data.encode("utf-8") if data is not None else None,
            timeout=self.context.timeout,
            verify=self.context.verify,
        )
        span.set_attribute(key="bwc.request.duration", value=time.time() - start_time)

        if response.status_code >= 300:
            raise OpenSearchRequestError(response.status_code, method, path, response.text)
        return response

    # ml-commons

    def register_model_group(self, body: str) -> str:
        response = self.request("post", f"{ML_BASE_URI}/model_groups/_register", data=body).json()
        model_group_id = response["model_group_id"]
        logger.debug(f"Registered model group {model_group_id}")
        return model_group_id

    def upload_model(self, body: str) -> str:
        """Registers a model and returns its id once the registration task completed."""
        response = self.request("post", f"{ML_BASE_URI}/models/_register", data=body).json()
        task = self.wait_for_task(response["task_id"])
        model_id = task["model_id"]
        logger.debug(f"Uploaded model {model_id}")
        return model_id

    def load_model(self, model_id: str):
        response = self.request("post", f"{ML_BASE_URI}/models/{model_id}/_deploy").json()
        self.wait_for_task(response["task_id"])

    def get_task(self, task_id: str) -> Dict:
        return self.request("get", f"{ML_BASE_URI}/tasks/{task_id}").json()

    def wait_for_task(
        self, task_id: str, max_attempts: int = TASK_MAX_ATTEMPTS, interval: float = TASK_WAIT_SECONDS
    ) -> Dict:
        task = {}

        def task_is_complete():
            nonlocal task
            task = self.get_task(task_id)
            state = task.get("state")
            if state in TASK_FAILED_STATES:
                raise MLTaskFailedError(task_id, task)
            return state == TaskState.COMPLETED, f"task {task_id} is {state}"

        try:
            retry_until(
                task_is_complete,
                max_attempts=max_attempts,
                interval=interval,
                sleep=self.sleep,
                msg=f"ml-commons task {task_id}",
            )
        except AttemptsExhaustedError as e:
            raise TimeoutError(f"ml-commons task {task_id} did not complete after {e.attempts} attempts") from e
        return task

    def get_model_state(self, model_id: str) -> ModelState:
        model = self.request("get", f"{ML_BASE_URI}/models/{model_id}").json()
        return parse_model_state(model.get("model_state"))

    def delete_model(self, model_id: str):
        self.request("post", f"{ML_BASE_URI}/models/{model_id}/_undeploy")
        self.request("delete", f"{ML_BASE_URI}/models/{model_id}")

    # ingest pipelines

    def create_pipeline_processor(self, body: str, pipeline_name: str):
        response = self.request("put", f"/_ingest/pipeline/{pipeline_name}", data=body).json()
        assert response.get("acknowledged") is True, f"pipeline {pipeline_name} was not acknowledged: {response}"

    def get_pipeline(self, pipeline_name: str) -> Dict:
        return self.request("get", f"/_ingest/pipeline/{pipeline_name}").json()[pipeline_name]

    def get_model_id_from_pipeline(self, pipeline_name: str, processor: str) -> str:
        """Returns the model id an earlier phase configured on `processor` in the pipeline."""
        for p in self.get_pipeline(pipeline_name)["processors"]:
            if processor in p:
                return p[processor]["model_id"]
        raise KeyError(f"pipeline {pipeline_name} has no {processor} processor")

    def delete_pipeline(self, pipeline_name: str):
        self.request("delete", f"/_ingest/pipeline/{pipeline_name}")

    # indices

    def create_index(self, index_name: str, body: str):
        self.request("put", f"/{index_name}", data=body)

    def index_exists(self, index_name: str) -> bool:
        try:
            self.request("head", f"/{index_name}")
        except OpenSearchRequestError as e:
            if e.status_code != 404:
                raise e
            return False
        return True

    def add_document(self, index_name: str, doc_id: str, document: Dict, pipeline: Optional[str] = None):
        path = f"/{index_name}/_doc/{doc_id}?refresh=true"
        if pipeline is not None:
            path += f"&pipeline={pipeline}"
        self.request("put", path, json_object=document)

    def get_doc_count(self, index_name: str) -> int:
        self.request("post", f"/{index_name}/_refresh")
        return self.request("get", f"/{index_name}/_count").json()["count"]

    def search(self, index_name: str, query: Dict, size: int = 10) -> List[Dict]:
        response = self.request("post", f"/{index_name}/_search", json_object={"query": query, "size": size})
        return response.json()["hits"]["hits"]

    def delete_index(self, index_name: str):
        self.request("delete", f"/{index_name}")

    # cleanup

    def wipe_cluster(self, policy: RetentionPolicy):
        """Removes what the retention policy doesn't preserve. System indices (starting with '.')
        are never deleted."""
        if not policy.preserve_indices:
            for index in self.request("get", "/_cat/indices?format=json&expand_wildcards=all").json():
                if not index["index"].startswith("."):
                    logger.debug(f"Deleting index {index['index']}")
                    self.delete_index(index["index"])
        if not policy.preserve_templates:
            for template in self.request("get", "/_index_template").json().get("index_templates", []):
                if not template["name"].startswith("."):
                    logger.debug(f"Deleting index template {template['name']}")
                    self.request("delete", f"/_index_template/{template['name']}")
        if not policy.preserve_repositories:
            for repository in self.request("get", "/_snapshot/_all").json():
                logger.debug(f"Deleting snapshot repository {repository}")
                self.request("delete", f"/_snapshot/{repository}")
