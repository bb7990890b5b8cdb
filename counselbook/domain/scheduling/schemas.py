"""Scheduling domain schemas - Pydantic models for validation and the slot projection"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ...shared.validators import parse_time_of_day, validate_choice, validate_time_range
from ...models import BOOKING_STATUSES


class SlotView(BaseModel):
    """A counselor slot as seen by clients, with derived booking state"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    counselor_id: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    is_available: bool = True
    recurring_weekly: bool = False
    is_booked: bool = False
    booking_id: Optional[str] = None

    @property
    def sort_key(self) -> tuple[dt.date, dt.time]:
        return (self.date, self.start_time)


class BookingRef(BaseModel):
    """The booking columns the projection needs"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    counselor_id: str
    scheduled_at: dt.datetime
    status: str


class SlotCreate(BaseModel):
    """Schema for creating a new slot"""

    counselorId: str
    date: dt.date
    startTime: dt.time
    endTime: dt.time
    isAvailable: bool = True
    recurringWeekly: bool = False

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def parse_times(cls, v):
        return parse_time_of_day(v)

    @model_validator(mode="after")
    def check_range(self):
        validate_time_range(self.startTime, self.endTime)
        return self


class SlotUpdate(BaseModel):
    """Schema for updating an existing slot"""

    date: Optional[dt.date] = None
    startTime: Optional[dt.time] = None
    endTime: Optional[dt.time] = None
    isAvailable: Optional[bool] = None
    recurringWeekly: Optional[bool] = None

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def parse_times(cls, v):
        return parse_time_of_day(v)


class TimeRange(BaseModel):
    startTime: dt.time
    endTime: dt.time

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def parse_times(cls, v):
        return parse_time_of_day(v)

    @model_validator(mode="after")
    def check_range(self):
        validate_time_range(self.startTime, self.endTime)
        return self


class RecurringScheduleRequest(BaseModel):
    """Weekly pattern expanded into one slot per matching day and time range"""

    counselorId: str
    startDate: dt.date
    endDate: dt.date
    timeSlots: list[TimeRange]
    weekdays: list[int]  # 0=Sunday, 1=Monday, ... 6=Saturday

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v):
        if not v or any(day < 0 or day > 6 for day in v):
            raise ValueError("weekdays must be a non-empty list of values between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))

    @model_validator(mode="after")
    def check_dates(self):
        if self.endDate < self.startDate:
            raise ValueError("endDate must not be before startDate")
        return self


class RecurringScheduleResponse(BaseModel):
    created: int


class BookingCreate(BaseModel):
    """Schema for inserting a booking"""

    counselorId: str
    userId: str
    scheduledAt: dt.datetime
    serviceType: Optional[str] = None
    amount: Optional[float] = None
    status: str = "pending"

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, BOOKING_STATUSES, "booking status")


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    counselor_id: str
    user_id: str
    scheduled_at: dt.datetime
    status: str
    service_type: Optional[str] = None
    amount: Optional[float] = None
