# backend/mystery_events/services/customer_service.py
from dataclasses import dataclass
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..models.booking import Booking
from ..models.customer import Customer
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerPage:
    customers: List[Customer]
    total: int
    page: int
    limit: int


@dataclass(frozen=True)
class CustomerDetail:
    customer: Customer
    bookings: List[Booking]


class CustomerService(BaseService):
    """Read-only admin view of customers; rows are written by the booking flow."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_customer_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("list_customers")
    def list_customers(self, search: Optional[str] = None, page: int = 1, limit: int = 20) -> CustomerPage:
        page = max(page, 1)
        rows, total = self.repository.search(search, offset=(page - 1) * limit, limit=limit)
        return CustomerPage(customers=rows, total=total, page=page, limit=limit)

    def get_customer(self, customer_id: str) -> CustomerDetail:
        customer = self.repository.get_by_id(customer_id, load_relationships=False)
        if customer is None:
            raise NotFoundException("Customer not found", code="CUSTOMER_NOT_FOUND")
        return CustomerDetail(customer=customer, bookings=self.booking_repository.list_for_customer(customer.id))
