# backend/mystery_events/repositories/customer_repository.py
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from ..models.customer import Customer
from .base_repository import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    def __init__(self, db: Session):
        super().__init__(db, Customer)

    def get_by_email(self, email: str) -> Optional[Customer]:
        return self.db.query(Customer).filter(func.lower(Customer.email) == email.strip().lower()).first()

    def upsert(self, *, email: str, name: str, phone: Optional[str] = None) -> Customer:
        """
        Create the customer, or patch name (and phone when given) on the existing row.

        Email is matched case-insensitively and stored lowercased.
        """
        normalized = email.strip().lower()
        customer = self.get_by_email(normalized)
        if customer is None:
            return self.create(email=normalized, name=name, phone=phone)
        customer.name = name
        if phone:
            customer.phone = phone
        self.db.flush()
        return customer

    def add_to_aggregates(self, customer_id: str, bookings: int, spent: Decimal) -> bool:
        """Adjust totals in SQL so concurrent confirmations do not lose updates."""
        stmt = (
            update(Customer)
            .where(Customer.id == customer_id)
            .values(
                total_bookings=Customer.total_bookings + bookings,
                total_spent=Customer.total_spent + spent,
            )
        )
        return self._execute_guarded(stmt, "update customer aggregates") == 1

    def search(self, term: Optional[str], offset: int, limit: int) -> Tuple[List[Customer], int]:
        query = self.db.query(Customer)
        if term:
            pattern = f"%{term.strip().lower()}%"
            query = query.filter(
                or_(func.lower(Customer.name).like(pattern), func.lower(Customer.email).like(pattern))
            )
        total = query.count()
        rows = query.order_by(Customer.created_at.desc()).offset(offset).limit(limit).all()
        return rows, total
