from __future__ import annotations

import time
from enum import Enum
from typing import Callable, FrozenSet, Union

from opentelemetry import trace

from . import test_logger
from .bwctester import AttemptsExhaustedError, retry_until

TRACER = trace.get_tracer("bwc-rolling-upgrade")
logger = test_logger.get_test_logger(__name__)

MODEL_LOAD_MAX_ATTEMPTS = 30
MODEL_LOAD_WAIT_SECONDS = 2


class MLModelState(str, Enum):
    """Model lifecycle states reported by ml-commons. Note that 'str' is inherited so the raw
    value from a response compares equal to the member."""

    REGISTERING = "REGISTERING"
    REGISTERED = "REGISTERED"
    DEPLOYING = "DEPLOYING"
    DEPLOYED = "DEPLOYED"
    PARTIALLY_DEPLOYED = "PARTIALLY_DEPLOYED"
    UNDEPLOYED = "UNDEPLOYED"
    DEPLOY_FAILED = "DEPLOY_FAILED"
    LOADING = "LOADING"
    LOADED = "LOADED"
    PARTIALLY_LOADED = "PARTIALLY_LOADED"
    UNLOADED = "UNLOADED"
    LOAD_FAILED = "LOAD_FAILED"
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    UPLOAD_FAILED = "UPLOAD_FAILED"

    def __str__(self):
        return self.value


READY_FOR_INFERENCE_STATES: FrozenSet[MLModelState] = frozenset({MLModelState.LOADED, MLModelState.DEPLOYED})

ModelState = Union[MLModelState, str, None]


def parse_model_state(value) -> ModelState:
    """States this harness doesn't know about are kept as plain strings, they are never ready."""
    if value is None:
        return None
    try:
        return MLModelState(value)
    except ValueError:
        logger.warning(f"Unknown model state reported by the cluster: {value}")
        return value


def is_model_ready_for_inference(state: ModelState) -> bool:
    return state in READY_FOR_INFERENCE_STATES


class ModelLoadTimeoutError(TimeoutError):
    def __init__(self, model_id: str, attempts: int):
        super().__init__(f"Model {model_id} failed to load after {attempts} attempts")
        self.model_id = model_id
        self.attempts = attempts


@TRACER.start_as_current_span("wait_for_model_to_load")
def wait_for_model_to_load(
    tester,
    model_id: str,
    max_attempts: int = MODEL_LOAD_MAX_ATTEMPTS,
    interval: float = MODEL_LOAD_WAIT_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    is_ready: Callable[[ModelState], bool] = is_model_ready_for_inference,
) -> int:
    """Polls the state of `model_id` with a fixed interval until it can serve inference.
    `tester` is anything with a get_model_state(model_id) method. Returns the attempt that observed
    the model ready."""
    span = trace.get_current_span()
    span.set_attribute("bwc.model.id", model_id)
    attempt = 0

    def model_is_ready():
        nonlocal attempt
        attempt += 1
        state = tester.get_model_state(model_id)
        span.set_attribute("bwc.model.state", str(state))
        span.set_attribute("bwc.model.attempt", attempt)
        if is_ready(state):
            return True
        logger.info(
            f"Waiting for model {model_id} to load. Current state: {state}. Attempt {attempt}/{max_attempts}"
        )
        return False

    try:
        attempts = retry_until(model_is_ready, max_attempts=max_attempts, interval=interval, sleep=sleep)
    except AttemptsExhaustedError as e:
        raise ModelLoadTimeoutError(model_id, e.attempts) from e

    logger.info(f"Model {model_id} is now loaded after {attempts} attempts")
    return attempts
