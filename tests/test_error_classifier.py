"""Tests for backend error classification."""

import asyncio

import pytest

from studyai.error_classifier import (
    ClassifiedError,
    ErrorCategory,
    ErrorClassifier,
    ErrorSeverity,
)


class TestErrorClassifier:
    """Test suite for ErrorClassifier.classify_error."""

    @pytest.mark.parametrize(
        "message,category",
        [
            ("You exceeded your current quota, please check your plan", ErrorCategory.BILLING_QUOTA),
            ("Error code: 402 - Insufficient Balance", ErrorCategory.BILLING_QUOTA),
            ("Incorrect API key provided: sk-***", ErrorCategory.AUTHENTICATION),
            ("Error code: 401 - unauthorized", ErrorCategory.AUTHENTICATION),
            ("Rate limit reached for requests", ErrorCategory.RATE_LIMIT),
            ("429 Resource has been exhausted", ErrorCategory.RATE_LIMIT),
            ("The model `gpt-9` does not exist", ErrorCategory.MODEL_ERROR),
            ("Request timed out.", ErrorCategory.TIMEOUT),
            ("Error code: 503 - Service Unavailable", ErrorCategory.SERVER_ERROR),
            ("Overloaded", ErrorCategory.SERVER_ERROR),
            ("Connection reset by peer", ErrorCategory.NETWORK_ERROR),
            ("Error code: 400 - bad request", ErrorCategory.INVALID_REQUEST),
            ("something odd happened", ErrorCategory.UNKNOWN),
        ],
    )
    def test_categories(self, message, category):
        classified = ErrorClassifier.classify_error(Exception(message), "openai")
        assert classified.category == category
        assert classified.provider == "openai"

    def test_type_name_is_considered(self):
        class APIConnectionError(Exception):
            pass

        classified = ErrorClassifier.classify_error(APIConnectionError("boom"), "deepseek")
        assert classified.category == ErrorCategory.NETWORK_ERROR
        assert classified.original_error == "APIConnectionError"

    def test_asyncio_timeout(self):
        classified = ErrorClassifier.classify_error(asyncio.TimeoutError(), "google")
        assert classified.category == ErrorCategory.TIMEOUT
        assert classified.is_retryable is True

    def test_billing_is_critical_and_not_retryable(self):
        classified = ErrorClassifier.classify_error(
            Exception("insufficient_quota"), "openai"
        )
        assert classified.severity == ErrorSeverity.CRITICAL
        assert classified.is_retryable is False
        assert "openai account balance" in classified.message

    def test_timeout_builder(self):
        classified = ErrorClassifier.timeout("anthropic", seconds=60)
        assert classified.message == "Request to anthropic timed out after 60s"
        assert str(classified) == "timeout - Request to anthropic timed out after 60s"

    def test_unsupported_input_builder(self):
        classified = ErrorClassifier.unsupported_input("deepseek", "no images")
        assert classified.category == ErrorCategory.UNSUPPORTED_INPUT
        assert classified.is_retryable is False


class TestClassifiedError:
    """Tests for ClassifiedError."""

    def test_to_dict(self):
        error = ClassifiedError(
            category=ErrorCategory.RATE_LIMIT,
            severity=ErrorSeverity.HIGH,
            provider="openai",
            original_error="RateLimitError",
            message="Rate limit exceeded for openai.",
            is_retryable=True,
        )
        assert error.to_dict() == {
            "category": "rate_limit",
            "severity": "high",
            "provider": "openai",
            "original_error": "RateLimitError",
            "message": "Rate limit exceeded for openai.",
            "is_retryable": True,
        }
