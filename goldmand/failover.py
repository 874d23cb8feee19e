import asyncio
import logging

logger = logging.getLogger("goldmand")

DEFAULT_TIMEOUT = 5.0

# returned by race() when the timer wins
TIMED_OUT = object()


def _observe(task):
    # retrieve the result of an abandoned attempt so asyncio does not warn about it
    if not task.cancelled():
        task.exception()


async def race(coro, timeout):
    """Run ``coro`` against a timer; the loser is abandoned, never raised into the caller."""
    task = asyncio.ensure_future(coro)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()
    task.add_done_callback(_observe)
    return TIMED_OUT


async def fetch_with_failover(fetch, endpoints, timeout=DEFAULT_TIMEOUT, empty=None, label="request"):
    """
    Try ``fetch(endpoint)`` on each endpoint in order until one returns a payload.

    An exception, a timeout or a ``None`` payload moves on to the next endpoint.
    When every endpoint failed ``empty`` is returned, nothing is raised.
    """
    last_error = None
    for endpoint in endpoints:
        try:
            result = await race(fetch(endpoint), timeout)
        except Exception as e:
            last_error = e
            logger.debug(f"{label} failed on {endpoint}: {e}")
            continue

        if result is TIMED_OUT:
            last_error = TimeoutError(f"{endpoint} did not answer within {timeout}s")
        elif result is None:
            last_error = ValueError(f"{endpoint} returned no data")
        else:
            return result
        logger.debug(f"{label}: {last_error}")

    logger.warning(f"{label}: all endpoints failed, last error: {last_error}")
    return empty
