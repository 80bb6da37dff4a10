"""Unit tests for the schema validation helpers."""

import pytest

from app.domain.exceptions import ValidationError
from app.schemas.recommendations import FeedbackRequest, RecommendationOptions
from app.utils.validation import sanitize_string, validate_model


class TestValidateModel:
    """Tests for validate_model."""

    def test_defaults_applied(self):
        options = validate_model(RecommendationOptions, None)
        assert options.confidence_threshold == pytest.approx(0.7)
        assert options.include_historical is False

    def test_errors_are_flattened(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_model(RecommendationOptions, {"confidence_threshold": -1, "surprise": True})
        errors = exc_info.value.errors
        assert any(err.startswith("confidence_threshold:") for err in errors)
        assert any(err.startswith("surprise:") for err in errors)
        assert exc_info.value.detail["schema"] == "RecommendationOptions"

    def test_cache_fields_exclude_force_refresh(self):
        options = validate_model(RecommendationOptions, {"force_refresh": True})
        assert "force_refresh" not in options.cache_fields()

    def test_feedback_outcome_none_becomes_empty(self):
        request = validate_model(FeedbackRequest, {"implemented": False, "outcome": None})
        assert request.outcome == {}


class TestSanitizeString:
    """Tests for sanitize_string."""

    def test_strips_and_truncates(self):
        assert sanitize_string("  hello  ") == "hello"
        assert sanitize_string("abcdef", max_length=3) == "abc"

    def test_blank_becomes_none(self):
        assert sanitize_string("   ") is None
        assert sanitize_string(None) is None
