from enum import Enum

# Signals the vision backends use for "too many requests".
RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED", "ThrottlingException", "TooManyRequests")


class ScanError(Exception):
    """Base class for scanner errors."""


class ClassifierError(ScanError):
    """The vision classifier failed. `payload` keeps the raw error for inspection."""

    def __init__(self, message: str, payload=None):
        super().__init__(message)
        self.payload = payload


class RateLimitedError(ClassifierError):
    """The vision backend refused the request because of rate limiting."""


class QuotaCeilingReached(ScanError):
    """The local daily scan ceiling refused a capture before the classifier was called."""


class InvalidTransition(ScanError):
    """A loop action was requested from a state that does not allow it."""


class FailureKind(Enum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"


def classify_failure(exc: BaseException) -> FailureKind:
    """Map any classifier failure onto the rate-limit / transient taxonomy."""
    if isinstance(exc, RateLimitedError):
        return FailureKind.RATE_LIMITED
    # Backends raise RateLimitedError for throttling. Payloads can hold raw model text.
    if isinstance(exc, ClassifierError):
        return FailureKind.TRANSIENT

    parts = [type(exc).__name__, str(exc)]
    parts.extend(repr(arg) for arg in exc.args)
    response = getattr(exc, "response", None)
    if response is not None:
        parts.append(repr(response))

    text = " ".join(parts)
    if any(marker in text for marker in RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMITED
    return FailureKind.TRANSIENT
