import random
import string

from .bwctester import AttemptsExhaustedError, retry_until

# Re-exports
from .bwctester import fixture as find_fixture

NEURAL_SEARCH_BWC_PREFIX = "neural-bwc-"
MODEL_ID_PREFIX = "public_model_"


def read_fixture(filename: str) -> str:
    """Returns the contents of a request template from the fixture directories."""
    with open(find_fixture(filename), encoding="utf-8") as f:
        return f.read()


def generate_model_id(prefix=MODEL_ID_PREFIX) -> str:
    return prefix + "".join(random.choice(string.ascii_letters + string.digits) for _ in range(8))


def index_name_for_test(test_name: str) -> str:
    """Every index of the suite is named after the test that owns it, so that a later phase
    running the same test finds the index the OLD phase created."""
    return NEURAL_SEARCH_BWC_PREFIX + test_name.lower()
