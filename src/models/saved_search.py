"""Saved search models."""

from enum import Enum
from typing import Any, Optional
from datetime import datetime, timedelta
from pydantic import BaseModel, ConfigDict, Field


class AlertFrequency(str, Enum):
    """How often a saved search should be re-run for alerts."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    NEVER = "never"


ALERT_INTERVALS = {
    AlertFrequency.DAILY: timedelta(days=1),
    AlertFrequency.WEEKLY: timedelta(days=7),
    AlertFrequency.MONTHLY: timedelta(days=30),
}


class SavedSearch(BaseModel):
    """A user's named, replayable filter-parameter set."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(..., description="Saved search ID (ULID)")
    user_id: str = Field(..., description="Owning user ID")
    name: str = Field(..., min_length=1, max_length=100)
    search_query: dict[str, Any] = Field(default_factory=dict, description="Raw filter parameters")
    alert_frequency: AlertFrequency = AlertFrequency.WEEKLY
    description: Optional[str] = Field(None, max_length=500)
    is_active: bool = True
    last_executed_at: Optional[datetime] = None
    last_alert_sent_at: Optional[datetime] = None
    result_count: int = Field(default=0, ge=0)
    has_new_results: bool = Field(default=False, description="Set on read when the live count grew")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_due(self, now: datetime) -> bool:
        """Whether this search should be re-run for an alert at ``now``."""
        if not self.is_active:
            return False
        interval = ALERT_INTERVALS.get(AlertFrequency(self.alert_frequency))
        if interval is None:
            return False
        if self.last_executed_at is None:
            return True
        return now - self.last_executed_at >= interval
