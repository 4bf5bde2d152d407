# backend/mystery_events/models/customer.py
from decimal import Decimal

from sqlalchemy import Column, Integer, Numeric, String
from sqlalchemy.orm import relationship
import ulid

from .types import Base, TimestampMixin


class Customer(TimestampMixin, Base):
    """A person who has booked at least once. Email is the natural key."""

    __tablename__ = "customers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    total_bookings = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    bookings = relationship("Booking", back_populates="customer", lazy="dynamic")

    def __repr__(self) -> str:
        return f"<Customer {self.email}>"
