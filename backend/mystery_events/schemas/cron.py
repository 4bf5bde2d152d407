# backend/mystery_events/schemas/cron.py
"""Responses of the scheduled-job endpoints."""

from typing import List

from ._strict_base import ORMResponseModel, StrictModel


class SweepResponse(ORMResponseModel):
    sent: int
    failed: int
    total: int


class LowInventoryEventResponse(ORMResponseModel):
    event_id: str
    title: str
    event_date: str
    capacity: int
    available_tickets: int
    booked_quantity: int
    occupancy: float


class ReminderSweepResponse(StrictModel):
    reminders: SweepResponse
    low_inventory: List[LowInventoryEventResponse]


class ReminderStatusResponse(StrictModel):
    pending_reminders: int
    upcoming_events: int
    reminder_date: str


class ReleaseAbandonedResponse(StrictModel):
    released: int
    checked: int
