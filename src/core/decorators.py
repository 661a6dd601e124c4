"""Decorators for the deep research server."""

import functools
import time
import traceback
import uuid
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from .exceptions import CollaboratorQuotaError, ConfigurationError
from .logging import logger, request_id_ctx

P = ParamSpec("P")
R = TypeVar("R")


def track_request(
    operation: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator to track pipeline requests with a request id, timing and error logging.

    Caller-actionable failures (missing configuration, collaborator quota) are
    logged as warnings without a traceback; everything else is logged as an error.

    Args:
        operation: Name of the operation being tracked

    Returns:
        Decorated coroutine function with request tracking
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            # Nested tracked calls keep the outer request id
            outer_id = request_id_ctx.get()
            token = None
            if outer_id is None:
                token = request_id_ctx.set(str(uuid.uuid4())[:8])
            started = time.monotonic()

            logger.info("Starting %s", operation)
            if logger.isEnabledFor(10):  # DEBUG level
                logger.debug("Arguments: %s", kwargs)

            try:
                result = await func(*args, **kwargs)
            except (ConfigurationError, CollaboratorQuotaError) as e:
                logger.warning(
                    "%s aborted after %.2fs: %s",
                    operation,
                    time.monotonic() - started,
                    e,
                )
                raise
            except Exception as e:
                logger.error(
                    "Failed %s after %.2fs: %s",
                    operation,
                    time.monotonic() - started,
                    e,
                )
                logger.debug("Traceback: %s", traceback.format_exc())
                raise
            else:
                logger.info(
                    "Completed %s in %.2fs", operation, time.monotonic() - started
                )
            finally:
                if token is not None:
                    request_id_ctx.reset(token)

            return result

        return wrapper

    return decorator
