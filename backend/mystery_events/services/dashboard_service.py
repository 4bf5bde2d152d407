# backend/mystery_events/services/dashboard_service.py
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.timezone_utils import business_today, month_start_utc
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardStats:
    total_revenue: Decimal
    total_bookings: int
    bookings_this_month: int
    upcoming_events: int
    active_vouchers: int
    active_voucher_balance: Decimal


class DashboardService(BaseService):
    def __init__(self, db: Session, config: Optional[Settings] = None):
        super().__init__(db)
        self.config = config or default_settings
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.event_repository = RepositoryFactory.create_event_repository(db)
        self.voucher_repository = RepositoryFactory.create_voucher_repository(db)

    @BaseService.measure_operation("dashboard_stats")
    def get_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        """Revenue and counts over completed bookings; months follow the business timezone."""
        tz_name = self.config.business_timezone
        vouchers, balance, _ = self.voucher_repository.active_stats()
        return DashboardStats(
            total_revenue=self.booking_repository.total_revenue(),
            total_bookings=self.booking_repository.count_completed(),
            bookings_this_month=self.booking_repository.count_completed(since=month_start_utc(tz_name, now)),
            upcoming_events=self.event_repository.count_upcoming(business_today(tz_name, now)),
            active_vouchers=vouchers,
            active_voucher_balance=balance,
        )
