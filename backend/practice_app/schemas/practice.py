"""Practice 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel, Field, model_validator
from typing import Any, List, Literal, Optional
import datetime as dt

from practice_app.config import settings
from practice_app.services.recurrence_service import RecurrenceRuleError, validate_rule

PracticeType = Literal["water", "land", "gym", "meeting"]
RecurrencePattern = Literal["daily", "weekly", "biweekly", "monthly"]


class PracticeBase(BaseModel):
    title: str
    description: Optional[str] = None
    practice_type: PracticeType = "water"
    date: dt.date
    start_time: str
    end_time: Optional[str] = None
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    max_capacity: int = 22
    is_visible_to_members: bool = True
    rsvp_visibility_hours: Optional[int] = None
    rsvp_deadline: Optional[dt.datetime] = None
    food_location_name: Optional[str] = None
    food_location_address: Optional[str] = None
    created_by: Optional[int] = None


class PracticeCreate(PracticeBase):
    pass


class PracticeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    practice_type: Optional[PracticeType] = None
    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    max_capacity: Optional[int] = None
    is_visible_to_members: Optional[bool] = None
    rsvp_visibility_hours: Optional[int] = None
    rsvp_deadline: Optional[dt.datetime] = None
    food_location_name: Optional[str] = None
    food_location_address: Optional[str] = None
    status: Optional[Literal["scheduled", "cancelled", "completed"]] = None


class PracticeOut(PracticeBase):
    practice_id: int
    status: str
    parent_practice_id: Optional[int] = None
    is_recurring: bool = False
    is_exception: bool = False
    original_date: Optional[dt.date] = None
    recurrence_pattern: Optional[str] = None
    recurrence_days: Optional[List[int]] = None
    recurrence_end_date: Optional[dt.date] = None
    recurrence_count: Optional[int] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = {"from_attributes": True}


class RecurrenceOptions(BaseModel):
    pattern: RecurrencePattern
    days: List[int] = Field(default_factory=list)
    end_date: Optional[dt.date] = None
    count: Optional[int] = None

    @model_validator(mode="after")
    def check_rule_shape(self):
        try:
            validate_rule(self, max_count=settings.RECURRENCE_MAX_COUNT)
        except RecurrenceRuleError as exc:
            raise ValueError(str(exc)) from exc
        return self


class RecurringPracticeCreate(BaseModel):
    practice: PracticeCreate
    recurrence: RecurrenceOptions


class EditPlanOut(BaseModel):
    practice_id: int
    requires_choice: bool
    parent_practice_id: Optional[int] = None


class OperationResult(BaseModel):
    success: bool
    data: Optional[Any] = None
    instance_count: Optional[int] = None
    affected: Optional[int] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
