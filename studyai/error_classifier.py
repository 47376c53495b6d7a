"""Error classification for generation backend failures.

Backend SDKs raise a zoo of exception types. Classifying them into a small
set of categories lets the aggregate fallback error tell an operator whether
a backend is down, throttled, or misconfigured.
"""

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple


class ErrorCategory(Enum):
    """Categories of backend errors."""

    BILLING_QUOTA = "billing_quota"  # Insufficient funds, quota exceeded
    RATE_LIMIT = "rate_limit"  # Rate limit/throttling errors
    AUTHENTICATION = "authentication"  # API key invalid or expired
    INVALID_REQUEST = "invalid_request"  # Malformed request or invalid parameters
    SERVER_ERROR = "server_error"  # Provider server errors (5xx)
    NETWORK_ERROR = "network_error"  # Connection errors
    TIMEOUT = "timeout"  # Call exceeded its deadline
    MODEL_ERROR = "model_error"  # Model not found or unavailable
    UNSUPPORTED_INPUT = "unsupported_input"  # e.g. images sent to a text-only model
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    CRITICAL = "critical"  # Needs operator action (billing, credentials)
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"  # Usually transient


@dataclass(frozen=True)
class ClassifiedError:
    """A classified backend error with category and severity."""

    category: ErrorCategory
    severity: ErrorSeverity
    provider: str
    original_error: str
    message: str
    is_retryable: bool = False

    def __str__(self) -> str:
        return f"{self.category.value} - {self.message}"

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "provider": self.provider,
            "original_error": self.original_error,
            "message": self.message,
            "is_retryable": self.is_retryable,
        }


# (category, severity, retryable, patterns) checked in order
_RULES: List[Tuple[ErrorCategory, ErrorSeverity, bool, List[str]]] = [
    (
        ErrorCategory.BILLING_QUOTA,
        ErrorSeverity.CRITICAL,
        False,
        [
            r"insufficient.*funds",
            r"insufficient.*balance",
            r"quota.*exceeded",
            r"exceeded.*quota",
            r"insufficient.*quota",
            r"billing",
            r"credit.*balance",
            r"payment.*required",
            r"\b402\b",
        ],
    ),
    (
        ErrorCategory.AUTHENTICATION,
        ErrorSeverity.CRITICAL,
        False,
        [
            r"invalid.*api.*key",
            r"incorrect.*api.*key",
            r"api.*key.*not.*valid",
            r"authentication",
            r"unauthorized",
            r"permission.*denied",
            r"\b401\b",
            r"\b403\b",
        ],
    ),
    (
        ErrorCategory.RATE_LIMIT,
        ErrorSeverity.HIGH,
        True,
        [
            r"rate.*limit",
            r"too.*many.*requests",
            r"throttl",
            r"resource.*exhausted",
            r"\b429\b",
        ],
    ),
    (
        ErrorCategory.MODEL_ERROR,
        ErrorSeverity.MEDIUM,
        False,
        [
            r"model.*not.*found",
            r"model.*does.*not.*exist",
            r"invalid.*model",
            r"model.*unavailable",
            r"model.*deprecated",
        ],
    ),
    (
        ErrorCategory.TIMEOUT,
        ErrorSeverity.LOW,
        True,
        [r"timed?\s*out", r"timeout", r"deadline.*exceeded"],
    ),
    (
        ErrorCategory.SERVER_ERROR,
        ErrorSeverity.MEDIUM,
        True,
        [
            r"internal.*server.*error",
            r"service.*unavailable",
            r"overloaded",
            r"\b50[0-9]\b",
            r"server.*error",
            r"upstream",
        ],
    ),
    (
        ErrorCategory.NETWORK_ERROR,
        ErrorSeverity.LOW,
        True,
        [
            r"connection",
            r"network",
            r"dns",
            r"name.*resolution",
        ],
    ),
    (
        ErrorCategory.INVALID_REQUEST,
        ErrorSeverity.MEDIUM,
        False,
        [r"invalid", r"bad.*request", r"\b400\b"],
    ),
]

_MESSAGES = {
    ErrorCategory.BILLING_QUOTA: "Billing or quota issue. Check the {provider} account balance.",
    ErrorCategory.AUTHENTICATION: "Authentication failed. Verify the {provider} API key.",
    ErrorCategory.RATE_LIMIT: "Rate limit exceeded for {provider}.",
    ErrorCategory.MODEL_ERROR: "Model configuration issue with {provider}.",
    ErrorCategory.TIMEOUT: "Request to {provider} timed out.",
    ErrorCategory.SERVER_ERROR: "{provider} server error.",
    ErrorCategory.NETWORK_ERROR: "Network error reaching {provider}.",
    ErrorCategory.INVALID_REQUEST: "Invalid request to {provider}.",
}


class ErrorClassifier:
    """Classifies backend errors from the supported SDKs."""

    @staticmethod
    def classify_error(error: BaseException, provider: str) -> ClassifiedError:
        """Classify a backend error.

        Args:
            error: The exception that was raised
            provider: Provider name (openai, deepseek, anthropic, google)

        Returns:
            ClassifiedError with category and severity
        """
        error_type = type(error).__name__

        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorClassifier.timeout(provider, error_type=error_type)

        # Type names carry signal too (APITimeoutError, AuthenticationError, ...)
        error_str = f"{error_type} {error}".lower()

        for category, severity, retryable, patterns in _RULES:
            if ErrorClassifier._match_patterns(error_str, patterns):
                detail = str(error)[:200]
                message = _MESSAGES[category].format(provider=provider)
                if detail:
                    message = f"{message} ({detail})"
                return ClassifiedError(
                    category=category,
                    severity=severity,
                    provider=provider,
                    original_error=error_type,
                    message=message,
                    is_retryable=retryable,
                )

        return ClassifiedError(
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            provider=provider,
            original_error=error_type,
            message=f"Unclassified error from {provider}: {str(error)[:200]}",
            is_retryable=False,
        )

    @staticmethod
    def timeout(
        provider: str, seconds: float = 0.0, error_type: str = "TimeoutError"
    ) -> ClassifiedError:
        """Build the classification for a call that exceeded its deadline."""
        message = f"Request to {provider} timed out"
        if seconds:
            message += f" after {seconds:g}s"
        return ClassifiedError(
            category=ErrorCategory.TIMEOUT,
            severity=ErrorSeverity.LOW,
            provider=provider,
            original_error=error_type,
            message=message,
            is_retryable=True,
        )

    @staticmethod
    def unsupported_input(provider: str, message: str) -> ClassifiedError:
        """Build the classification for input a backend cannot accept."""
        return ClassifiedError(
            category=ErrorCategory.UNSUPPORTED_INPUT,
            severity=ErrorSeverity.LOW,
            provider=provider,
            original_error="UnsupportedInput",
            message=message,
            is_retryable=False,
        )

    @staticmethod
    def _match_patterns(text: str, patterns: List[str]) -> bool:
        return any(re.search(pattern, text, re.IGNORECASE) for pattern in patterns)
