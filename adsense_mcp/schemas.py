"""Pydantic schemas for report queries and tool inputs."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DateRange = Literal[
    "CUSTOM",
    "TODAY",
    "YESTERDAY",
    "MONTH_TO_DATE",
    "YEAR_TO_DATE",
    "LAST_7_DAYS",
    "LAST_30_DAYS",
]


def validate_iso_date(value: str) -> str:
    """Accept only canonical YYYY-MM-DD strings."""
    try:
        parsed = date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Expected YYYY-MM-DD, got {value!r}") from e
    if parsed.isoformat() != value:
        raise ValueError(f"Expected YYYY-MM-DD, got {value!r}")
    return value


# ============================================================
# Report Schemas
# ============================================================

class ReportQuery(BaseModel):
    """Parameters for one AdSense report request.

    Field order matters: the dumped model is the cache fingerprint input,
    so two equal queries always serialize identically.
    """

    account_id: str | None = None
    start_date: str = Field(..., description="YYYY-MM-DD")
    end_date: str = Field(..., description="YYYY-MM-DD")
    dimensions: list[str] | None = None
    metrics: list[str] | None = None
    order_by: str | None = Field(
        default=None,
        description="Metric or dimension name; prefix with '-' for descending",
    )
    limit: int | None = Field(default=None, ge=1)
    date_range: DateRange = "CUSTOM"

    @field_validator("start_date", "end_date")
    @classmethod
    def check_iso_date(cls, value: str) -> str:
        return validate_iso_date(value)

    @model_validator(mode="after")
    def check_range(self) -> "ReportQuery":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    def cache_params(self, account_id: str) -> dict:
        """Query fields with the resolved account substituted in."""
        return self.model_dump(mode="json") | {"account_id": account_id}


class PeriodComparisonQuery(BaseModel):
    """Two date ranges to compare against each other."""

    period1_start: str
    period1_end: str
    period2_start: str
    period2_end: str
    dimensions: list[str] | None = None

    @field_validator("period1_start", "period1_end", "period2_start", "period2_end")
    @classmethod
    def check_iso_date(cls, value: str) -> str:
        return validate_iso_date(value)
