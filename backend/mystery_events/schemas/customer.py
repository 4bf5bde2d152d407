# backend/mystery_events/schemas/customer.py
from datetime import datetime
from typing import List, Optional

from ._strict_base import ORMResponseModel
from .base import Money
from .booking import BookingResponse


class CustomerResponse(ORMResponseModel):
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    total_bookings: int
    total_spent: Money
    created_at: datetime


class CustomerListResponse(ORMResponseModel):
    customers: List[CustomerResponse]
    total: int
    page: int
    limit: int


class CustomerDetailResponse(ORMResponseModel):
    customer: CustomerResponse
    bookings: List[BookingResponse]
