import functools
import inspect

from loguru import logger


def safe_job(func):
    """
    A decorator for scheduled coroutine jobs.

    Features:
    - Logs the job name and parameters before execution
    - Logs the exception and returns None instead of raising, so the
      scheduler keeps the job alive for its next run
    - Preserves function metadata and return values
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        func_name = func.__qualname__

        sig = inspect.signature(func)
        bound_args = sig.bind(*args, **kwargs)
        bound_args.apply_defaults()
        params = {k: v for k, v in bound_args.arguments.items() if k != "self"}

        logger.debug(f"Entering {func_name} with params: {params}")

        try:
            result = await func(*args, **kwargs)
            logger.debug(f"{func_name} finished")
            return result
        except Exception as e:
            logger.error(f"Job {func_name} failed: {type(e).__name__}: {e}")
            return None

    return wrapper
