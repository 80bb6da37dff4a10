"""
Schemas Module
==============

This module provides Pydantic models for request validation.
Schemas ensure data integrity and provide automatic validation.
"""

from app.schemas.recommendations import FeedbackRequest, RecommendationOptions

__all__ = [
    "FeedbackRequest",
    "RecommendationOptions",
]
