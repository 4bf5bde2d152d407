# backend/mystery_events/services/inventory_service.py
"""
Inventory accounting for events.

``reserve`` and ``restore`` never commit: they run inside the caller's
transaction so the inventory change commits or rolls back together with the
booking that caused it.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.enums import EventStatus
from ..core.exceptions import (
    EventNotBookableException,
    EventNotFoundException,
    InsufficientInventoryException,
)
from ..models.event import Event
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class InventoryService(BaseService):
    def __init__(self, db: Session, config: Optional[Settings] = None):
        super().__init__(db)
        self.config = config or default_settings
        self.event_repository = RepositoryFactory.create_event_repository(db)

    @BaseService.measure_operation("reserve_inventory")
    def reserve(self, event_id: str, quantity: int) -> None:
        """
        Take ``quantity`` tickets from the event.

        Raises:
            EventNotFoundException: No such event
            EventNotBookableException: Event is not ``active``
            InsufficientInventoryException: Fewer than ``quantity`` tickets left
        """
        if self.event_repository.decrement_available(event_id, quantity):
            self.logger.info("Reserved %d tickets for event %s", quantity, event_id)
            return

        # The guarded UPDATE matched nothing; read the row to report why
        event = self.event_repository.get_by_id(event_id, load_relationships=False)
        if event is None:
            raise EventNotFoundException(event_id)
        self.event_repository.refresh(event)
        if event.status != EventStatus.ACTIVE.value:
            raise EventNotBookableException(event_id, event.status)
        raise InsufficientInventoryException(event_id, quantity, event.available_tickets)

    @BaseService.measure_operation("restore_inventory")
    def restore(self, event_id: str, quantity: int) -> bool:
        """
        Give ``quantity`` tickets back to the event.

        Returns False when the increment would push availability past capacity;
        nothing is changed in that case.
        """
        restored = self.event_repository.increment_available(event_id, quantity)
        if restored:
            self.logger.info("Restored %d tickets to event %s", quantity, event_id)
        else:
            self.logger.warning(
                "Inventory restore of %d tickets for event %s refused (capacity bound)", quantity, event_id
            )
        return restored

    def mark_soldout_if_exhausted(self, event_id: str) -> bool:
        return self.event_repository.mark_soldout_if_exhausted(event_id)

    @staticmethod
    def occupancy(event: Event, booked_quantity: Optional[int] = None) -> float:
        """Fraction of capacity sold; ``booked_quantity`` defaults to capacity minus availability."""
        if not event.capacity:
            return 0.0
        booked = event.sold_tickets if booked_quantity is None else booked_quantity
        return booked / event.capacity

    def is_low_inventory(self, event: Event, booked_quantity: Optional[int] = None) -> bool:
        return (
            self.occupancy(event, booked_quantity) >= self.config.low_inventory_occupancy
            or event.available_tickets <= self.config.low_inventory_remaining
        )
