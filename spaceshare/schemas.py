"""Pydantic schemas shared across the services."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .clock import wall_clock
from .status import BookingStatus

DayOfWeek = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class Actor(BaseModel):
    user_id: int
    email: Optional[str] = None


class SpaceBase(BaseModel):
    name: str = Field(..., max_length=200)
    capacity: int = Field(..., gt=0)
    suggested_donation: Optional[str] = Field(None, max_length=50)
    is_active: bool = True


class SpaceCreate(SpaceBase):
    pass


class SpaceRead(SpaceBase):
    id: int
    owner_id: int

    model_config = {"from_attributes": True}


class TimeOfDayRange(BaseModel):
    # kept as authored; the slot resolver skips entries it cannot read
    start: Optional[str] = None
    end: Optional[str] = None


class AvailabilityRuleIn(BaseModel):
    is_available: bool = True
    time_ranges: List[TimeOfDayRange] = Field(default_factory=list)


class AvailabilityRuleRead(BaseModel):
    space_id: int
    day_of_week: DayOfWeek
    is_available: bool
    time_ranges: list

    model_config = {"from_attributes": True}


class SlotRead(BaseModel):
    start_time: datetime
    end_time: datetime
    label: str


class DaySlots(BaseModel):
    space_id: int
    date: date
    day_of_week: DayOfWeek
    slots: List[SlotRead]


class ContactInfo(BaseModel):
    phone: Optional[str] = Field(None, max_length=40)
    email: Optional[EmailStr] = None


class BookingNotes(BaseModel):
    """Free-form booking details. Scheduling never reads these."""

    event_title: Optional[str] = Field(None, max_length=200)
    event_description: Optional[str] = Field(None, max_length=2000)
    special_requests: Optional[str] = Field(None, max_length=2000)
    contact_info: Optional[ContactInfo] = None
    donation_amount: Optional[str] = Field(None, max_length=50)


class BookingCreate(BaseModel):
    # optional so the workflow can report exactly which field is missing
    space_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    attendee_count: Optional[int] = None
    notes: BookingNotes = Field(default_factory=BookingNotes)

    @field_validator("start_time", "end_time")
    @classmethod
    def _wall_clock(cls, value: Optional[datetime]) -> Optional[datetime]:
        return wall_clock(value) if value is not None else None


class BookingRead(BaseModel):
    id: int
    space_id: int
    user_id: int
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    attendee_count: int
    notes: BookingNotes
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingQuote(BaseModel):
    space_id: int
    start_time: datetime
    end_time: datetime
    duration_hours: float
    estimated_contribution: float


class CompletionSummary(BaseModel):
    completed: int


class NotificationRead(BaseModel):
    id: int
    type: str
    title: str
    content: str
    data: dict
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class EventCreate(BaseModel):
    title: str = Field(..., max_length=200)
    start_time: datetime
    status: str = "published"
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class EventRead(EventCreate):
    id: int

    model_config = {"from_attributes": True}


class LocationCreate(BaseModel):
    name: str = Field(..., max_length=120)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    visit_count: int = Field(0, ge=0)


class LocationRead(LocationCreate):
    id: int
    user_id: int
    last_visited: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PreferenceUpdate(BaseModel):
    class_suggestion_radius: Optional[float] = Field(None, gt=0)


class SuggestionRead(BaseModel):
    id: int
    event_id: int
    location_id: int
    distance: float
    relevance_score: float
    reason: str
    dismissed: bool
    event: EventRead

    model_config = {"from_attributes": True}
