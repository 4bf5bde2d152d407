# backend/mystery_events/schemas/dashboard.py
from ._strict_base import ORMResponseModel
from .base import Money


class DashboardStatsResponse(ORMResponseModel):
    total_revenue: Money
    total_bookings: int
    bookings_this_month: int
    upcoming_events: int
    active_vouchers: int
    active_voucher_balance: Money
