"""Exponential backoff for connection bootstrap."""

import time
from typing import Callable, Tuple, Type, TypeVar

from botocore.exceptions import ClientError, ConnectTimeoutError, EndpointConnectionError

from utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERROR_CODES = {
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
}


def is_transient(exc: BaseException) -> bool:
    """True for network failures and throttling-style AWS errors."""
    if isinstance(exc, (EndpointConnectionError, ConnectTimeoutError)):
        return True
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code") in TRANSIENT_ERROR_CODES
    return False


def run_with_backoff(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    backoff_base: float = 0.2,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Call ``func`` until it succeeds, sleeping ``backoff_base * 2**attempt``
    between tries.

    Only transient errors are retried; anything else is raised immediately.
    """
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            if not is_transient(exc) or attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning(
                "Transient error, retrying",
                extra={"attempt": attempt + 1, "delay_seconds": delay, "error": str(exc)},
            )
            time.sleep(delay)
    raise RuntimeError("run_with_backoff called with attempts < 1")
