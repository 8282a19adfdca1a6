"""SQLAlchemy models shared across all services."""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .slots import DAYS_OF_WEEK
from .status import BookingStatus


def _status_values(enum_cls: type[BookingStatus]) -> list[str]:
    return [member.value for member in enum_cls]


class Space(Base):
    __tablename__ = "spaces"
    __table_args__ = (CheckConstraint("capacity > 0", name="ck_spaces_capacity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(200))
    capacity: Mapped[int] = mapped_column(Integer)
    suggested_donation: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # bumped by every booking write so concurrent writers for one space serialize
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    availability: Mapped[List["AvailabilityRule"]] = relationship(back_populates="space", cascade="all, delete-orphan")
    bookings: Mapped[List["Booking"]] = relationship(back_populates="space")


class AvailabilityRule(Base):
    __tablename__ = "space_availability"
    __table_args__ = (UniqueConstraint("space_id", "day_of_week", name="uq_space_availability_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    space_id: Mapped[int] = mapped_column(ForeignKey("spaces.id", ondelete="CASCADE"), index=True)
    day_of_week: Mapped[str] = mapped_column(SqlEnum(*DAYS_OF_WEEK, name="day_of_week"))
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    # list of {"start": "HH:MM", "end": "HH:MM"} exactly as the owner entered them
    time_ranges: Mapped[Any] = mapped_column(JSON, default=list)

    space: Mapped[Space] = relationship(back_populates="availability")


class Booking(Base):
    __tablename__ = "space_bookings"
    __table_args__ = (
        CheckConstraint("attendee_count > 0", name="ck_space_bookings_attendees_positive"),
        CheckConstraint("end_time > start_time", name="ck_space_bookings_range"),
        Index("ix_space_bookings_space_window", "space_id", "start_time", "end_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    space_id: Mapped[int] = mapped_column(ForeignKey("spaces.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        SqlEnum(BookingStatus, name="booking_status", values_callable=_status_values),
        default=BookingStatus.PENDING,
        index=True,
    )
    attendee_count: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[dict] = mapped_column(JSON, default=dict)
    decided_by: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    space: Mapped[Space] = relationship(back_populates="bookings")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    type: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(200))
    content: Mapped[str] = mapped_column(Text, default="")
    data: Mapped[dict] = mapped_column(JSON, default=dict)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200))
    start_time: Mapped[datetime] = mapped_column(DateTime, index=True)
    status: Mapped[str] = mapped_column(String(30), default="published", index=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, default=None)
    longitude: Mapped[Optional[float]] = mapped_column(Float, default=None)


class UserLocation(Base):
    __tablename__ = "user_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(120))
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    visit_count: Mapped[int] = mapped_column(Integer, default=0)
    last_visited: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)


class LocationPreference(Base):
    __tablename__ = "user_location_preferences"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    class_suggestion_radius: Mapped[Optional[float]] = mapped_column(Float, default=None)


class SuggestedClass(Base):
    __tablename__ = "suggested_classes"
    __table_args__ = (UniqueConstraint("user_id", "event_id", "location_id", name="uq_suggested_class_triple"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"))
    location_id: Mapped[int] = mapped_column(ForeignKey("user_locations.id", ondelete="CASCADE"))
    distance: Mapped[float] = mapped_column(Float)
    relevance_score: Mapped[float] = mapped_column(Float, index=True)
    reason: Mapped[str] = mapped_column(String(255), default="")
    dismissed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    event: Mapped[Event] = relationship()
    location: Mapped[UserLocation] = relationship()
