# API module - ElevenLabs HTTP client and the resilient request layer
# Only the ResilientCaller retries; the client just classifies failures

from .client import ElevenLabsClient, APIConfig
from .rate_limiter import RateLimiter, RateLimitConfig
from .retry import (
    ResilientCaller, RetryConfig, RetryState, Success, Failure, CallOutcome,
    FailureClass, classify_failure,
)

__all__ = [
    "ElevenLabsClient", "APIConfig",
    "RateLimiter", "RateLimitConfig",
    "ResilientCaller", "RetryConfig", "RetryState", "Success", "Failure",
    "CallOutcome", "FailureClass", "classify_failure",
]
