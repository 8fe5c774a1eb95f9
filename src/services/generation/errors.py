"""Failure taxonomy for model calls."""
from enum import Enum
from typing import Optional

RATE_LIMIT_MARKERS = ("429", "quota", "too many requests")
OVERLOAD_MARKERS = ("503", "overloaded")


class ErrorCategory(str, Enum):
    """Classification of a failed generation attempt."""
    
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    UNKNOWN = "unknown"
    UNAVAILABLE = "unavailable"
    
    @property
    def retryable(self) -> bool:
        return self is ErrorCategory.OVERLOADED


class GenerationError(Exception):
    """A model call that could not be completed."""
    
    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.category = category
        self.cause = cause
    
    @property
    def retryable(self) -> bool:
        return self.category.retryable


def _status_code(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_error(exc: BaseException) -> ErrorCategory:
    """
    Classify an exception raised by one model call.
    
    The status code is checked first, then the error text (SDKs often only
    carry the HTTP status inside the message). Causes are walked so wrapped
    SDK exceptions classify like the original error.
    """
    if isinstance(exc, GenerationError):
        return exc.category
    
    seen = set()
    current: Optional[BaseException] = exc
    texts = []
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        status = _status_code(current)
        if status == 429:
            return ErrorCategory.RATE_LIMITED
        if status == 503:
            return ErrorCategory.OVERLOADED
        texts.append(str(current).lower())
        current = current.__cause__ or current.__context__
    
    text = " ".join(texts)
    if any(marker in text for marker in RATE_LIMIT_MARKERS):
        return ErrorCategory.RATE_LIMITED
    if any(marker in text for marker in OVERLOAD_MARKERS):
        return ErrorCategory.OVERLOADED
    return ErrorCategory.UNKNOWN
