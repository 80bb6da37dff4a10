"""
Recommendation Schemas
======================

Pydantic models for recommendation generation options and feedback payloads.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator, model_validator

from app.enums.growth import Effectiveness

MAX_FEEDBACK_NOTES_LENGTH = 2000


class RecommendationOptions(BaseModel):
    """Options accepted by ``RecommendationEngine.generate``."""

    include_historical: bool = Field(default=False, description="Attach recent analytics rows to the result")
    confidence_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Recommendations below this confidence are dropped"
    )
    force_refresh: bool = Field(default=False, description="Bypass and clear the plant's cached results")

    model_config = ConfigDict(extra="forbid")

    def cache_fields(self) -> dict[str, Any]:
        """Fields that identify a cached result (``force_refresh`` is a control flag, not a key)."""
        return self.model_dump(exclude={"force_refresh"})


class FeedbackRequest(BaseModel):
    """User feedback on a surfaced recommendation."""

    implemented: StrictBool = Field(..., description="Whether the grower applied the recommendation")
    effectiveness: Optional[Effectiveness] = Field(
        default=None, description="Observed result; required when implemented"
    )
    notes: Optional[str] = Field(default=None, max_length=MAX_FEEDBACK_NOTES_LENGTH)
    outcome: dict[str, Any] = Field(default_factory=dict, description="Free-form measured outcome")

    @field_validator("effectiveness", mode="before")
    @classmethod
    def normalize_effectiveness(cls, v):
        if isinstance(v, str):
            return Effectiveness(v.strip().lower())
        return v

    @field_validator("outcome", mode="before")
    @classmethod
    def default_outcome(cls, v):
        return {} if v is None else v

    @model_validator(mode="after")
    def require_effectiveness(self):
        if self.implemented and self.effectiveness is None:
            raise ValueError("effectiveness is required when implemented is true")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "implemented": True,
                "effectiveness": "positive",
                "notes": "Raised humidity to 55%, leaves perked up within a day",
                "outcome": {"vpd_after": 1.1},
            }
        }
    )
