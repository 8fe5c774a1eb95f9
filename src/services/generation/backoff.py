"""Exponential backoff for model calls."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .errors import ErrorCategory, GenerationError, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


async def call_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``fn`` and retry it while it fails with an overloaded service.
    
    Rate-limit and unclassified failures are raised on the first occurrence.
    Overloaded failures wait ``base_delay * 2**attempt`` seconds before the
    next attempt; after ``max_attempts`` the last failure is raised, still
    tagged as retryable.
    
    Raises:
        GenerationError: carrying the failure category and original exception
    """
    last_error: BaseException | None = None
    
    for attempt in range(max_attempts):
        try:
            return await fn()
        except Exception as e:
            last_error = e
            category = classify_error(e)
            
            if category is ErrorCategory.RATE_LIMITED:
                logger.error(f"❌ API quota exceeded: {e}")
                raise GenerationError(str(e), category, cause=e) from e
            if category is not ErrorCategory.OVERLOADED:
                raise GenerationError(str(e), category, cause=e) from e
            
            if attempt + 1 >= max_attempts:
                break
            
            delay = base_delay * (2 ** attempt)
            logger.warning(f"⏳ Retrying in {delay:g} seconds... (Attempt {attempt + 1}/{max_attempts})")
            await sleep(delay)
    
    logger.error(f"❌ Model still overloaded after {max_attempts} attempts")
    raise GenerationError(
        str(last_error),
        ErrorCategory.OVERLOADED,
        cause=last_error,
    ) from last_error
