import os
import time
import warnings
from typing import Callable, Optional, Tuple, Union


from . import test_logger

logger = test_logger.get_test_logger(__name__)

SLEEP_TIME = 2


class AttemptsExhaustedError(AssertionError):
    def __init__(self, callable_name: str, attempts: int, elapsed: float):
        super().__init__(
            "Gave up executing {} after {} attempt(s) and {} seconds".format(callable_name, attempts, elapsed)
        )
        self.callable_name = callable_name
        self.attempts = attempts


def current_milliseconds():
    return int(round(time.time() * 1000))


def retry_until(
    fn: Callable[[], Union[bool, Tuple[bool, str]]],
    max_attempts: int,
    interval: float = SLEEP_TIME,
    sleep: Callable[[float], None] = time.sleep,
    msg: Optional[str] = None,
) -> int:
    """
    Calls `fn` until it succeeds, at most `max_attempts` times, sleeping `interval` seconds after
    every unsuccessful call. Callable fn can return single bool (condition result) or
    tuple[bool, str] ([condition result, status message]).
    Returns the number of the attempt that succeeded, raises AttemptsExhaustedError otherwise.
    """
    start_time = current_milliseconds()
    callable_name = getattr(fn, "__name__", repr(fn))

    for attempt in range(1, max_attempts + 1):
        fn_result = fn()
        fn_condition_msg = None
        if isinstance(fn_result, bool):
            fn_condition = fn_result
        elif isinstance(fn_result, tuple) and len(fn_result) == 2:
            fn_condition = fn_result[0]
            fn_condition_msg = fn_result[1]
        else:
            raise TypeError("Invalid fn return type. Fn have to return either bool or a tuple[bool, str].")

        if fn_condition:
            logger.debug(
                "{} executed successfully after {} seconds and {} attempts".format(
                    callable_name, (current_milliseconds() - start_time) / 1000, attempt
                )
            )
            return attempt
        if msg is not None:
            condition_msg = f": {fn_condition_msg}" if fn_condition_msg is not None else ""
            logger.debug(f"waiting for {msg}{condition_msg} ({attempt}/{max_attempts})...")
        sleep(interval)

    raise AttemptsExhaustedError(callable_name, max_attempts, (current_milliseconds() - start_time) / 1000)


def fixture(filename, root_dir=None):
    """
    Returns a path to a filename in one of the fixture directories. `filename` can contain
    a sub directory, e.g. "processor/PipelineConfiguration.json"
    """
    if root_dir is None:
        root_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), "tests")

    fixture_dirs = []

    for dirpath, dirnames, filenames in os.walk(root_dir):
        if os.path.basename(dirpath) == "fixtures":
            fixture_dirs.append(dirpath)

    found = None
    for dirs in fixture_dirs:
        full_path = os.path.join(dirs, filename)
        if os.path.exists(full_path) and os.path.isfile(full_path):
            if found is not None:
                warnings.warn("Fixtures with the same name were found: {}".format(full_path))
            found = full_path

    if found is None:
        raise FileNotFoundError("Fixture file {} not found".format(filename))

    return found
