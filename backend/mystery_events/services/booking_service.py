# backend/mystery_events/services/booking_service.py
"""
Booking Service for the Mystery Events platform

Creates bookings and drives them through their payment states:

    pending --(confirmation)--> completed
    pending --(payment failed, expired, abandoned)--> failed

Creation is one transaction: inventory reservation, customer upsert, booking,
tickets, form answers and (optionally) a voucher redemption commit together
or not at all. The Stripe Checkout session is opened after that commit; when
Stripe is unreachable the booking stays ``pending`` and the caller can retry
with ``retry_payment_session``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.codes import generate_booking_code, generate_ticket_code
from ..core.config import Settings, settings as default_settings
from ..core.constants import MIN_TICKETS_PER_BOOKING
from ..core.enums import PaymentMethod, PaymentStatus
from ..core.exceptions import (
    ConflictException,
    EventNotFoundException,
    NotFoundException,
    PaymentGatewayUnavailableException,
    ServiceException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..models.booking import Booking
from ..models.event import Event
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .confirmation_service import ConfirmationResult, ConfirmationService
from .inventory_service import InventoryService
from .stripe_service import LineItem, StripeService
from .voucher_service import RedemptionResult, VoucherService

logger = logging.getLogger(__name__)

BOOKING_CODE_MAX_ATTEMPTS = 5
ABANDONED_BATCH_SIZE = 200


@dataclass(frozen=True)
class CustomerDetails:
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class BookingCreated:
    booking_id: str
    booking_code: str
    payment_session_url: Optional[str]
    total_amount: Decimal
    voucher_amount: Decimal
    stripe_amount: Decimal
    payment_method: str
    confirmation: Optional[ConfirmationResult] = None


@dataclass(frozen=True)
class VoucherRedeemed:
    applied_amount: Decimal
    remaining_balance: Decimal
    redemption_id: str
    already_applied: bool
    stripe_amount: Decimal
    payment_status: str
    payment_session_url: Optional[str] = None
    confirmation: Optional[ConfirmationResult] = None


@dataclass(frozen=True)
class BookingPage:
    bookings: List[Booking]
    total: int
    page: int
    limit: int


class BookingService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        stripe_service: Optional[StripeService] = None,
        voucher_service: Optional[VoucherService] = None,
        confirmation_service: Optional[ConfirmationService] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.event_repository = RepositoryFactory.create_event_repository(db)
        self.customer_repository = RepositoryFactory.create_customer_repository(db)
        self.voucher_repository = RepositoryFactory.create_voucher_repository(db)
        self.inventory_service = InventoryService(db, self.config)
        self._stripe_service = stripe_service
        self._voucher_service = voucher_service
        self._confirmation_service = confirmation_service

    @property
    def stripe_service(self) -> StripeService:
        if self._stripe_service is None:
            self._stripe_service = StripeService(self.db, self.config)
        return self._stripe_service

    @property
    def voucher_service(self) -> VoucherService:
        if self._voucher_service is None:
            self._voucher_service = VoucherService(self.db, self.config, stripe_service=self._stripe_service)
        return self._voucher_service

    @property
    def confirmation_service(self) -> ConfirmationService:
        if self._confirmation_service is None:
            self._confirmation_service = ConfirmationService(
                self.db, self.config, stripe_service=self._stripe_service
            )
        return self._confirmation_service

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _validate_quantity(self, event: Event, quantity: int) -> None:
        upper = min(self.config.max_tickets_per_booking, event.max_tickets or self.config.max_tickets_per_booking)
        lower = max(MIN_TICKETS_PER_BOOKING, event.min_tickets or MIN_TICKETS_PER_BOOKING)
        if quantity < lower or quantity > upper:
            raise ValidationException(
                f"Quantity must be between {lower} and {upper}",
                code="INVALID_QUANTITY",
                details={"quantity": quantity, "min": lower, "max": upper},
            )

    def _generate_unique_code(self) -> str:
        for _ in range(BOOKING_CODE_MAX_ATTEMPTS):
            code = generate_booking_code()
            if not self.repository.code_exists(code):
                return code
        raise ServiceException("Could not generate a unique booking code")

    def _build_form_responses(self, event_id: str, answers: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Answers for the event's active fields; unknown keys are dropped.

        List answers (checkbox groups) are stored as JSON text.
        """
        answers = answers or {}
        responses: List[Dict[str, Any]] = []
        missing: List[str] = []
        for field in self.event_repository.get_form_fields(event_id, active_only=True):
            value = answers.get(field.field_name)
            if value is None or value == "" or value == []:
                if field.required:
                    missing.append(field.field_name)
                continue
            if isinstance(value, (list, dict)):
                stored = json.dumps(value, ensure_ascii=False)
            elif isinstance(value, bool):
                stored = "true" if value else "false"
            else:
                stored = str(value)
            responses.append({"field_id": field.id, "field_name": field.field_name, "value": stored})
        if missing:
            raise ValidationException(
                "Required form fields are missing", code="MISSING_FORM_FIELDS", details={"fields": missing}
            )
        return responses

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        event_id: str,
        customer: CustomerDetails,
        quantity: int,
        custom_form_data: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
        voucher_code: Optional[str] = None,
    ) -> BookingCreated:
        """
        Reserve tickets and start payment.

        Raises:
            EventNotFoundException: Unknown event
            EventNotBookableException: Event not active
            InsufficientInventoryException: Not enough tickets left
            ValidationException: Bad quantity or missing required form answers
            VoucherUnusableException: Voucher given but cannot be spent
            PaymentGatewayUnavailableException: Booking saved as pending, checkout not opened
        """
        with self.transaction():
            event = self.event_repository.get_by_id(event_id, load_relationships=False)
            if event is None:
                raise EventNotFoundException(event_id)
            self._validate_quantity(event, quantity)
            responses = self._build_form_responses(event.id, custom_form_data)

            self.inventory_service.reserve(event.id, quantity)
            db_customer = self.customer_repository.upsert(
                email=customer.email, name=customer.name, phone=customer.phone
            )

            booking_code = self._generate_unique_code()
            total = (Decimal(event.price) * quantity).quantize(Decimal("0.01"))
            booking = self.repository.create(
                booking_code=booking_code,
                event_id=event.id,
                customer_id=db_customer.id,
                customer_name=customer.name,
                customer_email=customer.email.strip().lower(),
                customer_phone=customer.phone,
                quantity=quantity,
                total_amount=total,
                voucher_amount=Decimal("0.00"),
                stripe_amount=total,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=PaymentMethod.CARD.value,
                notes=notes,
            )
            self.repository.add_tickets(
                booking, [generate_ticket_code(booking_code, ordinal) for ordinal in range(1, quantity + 1)]
            )
            self.repository.add_form_responses(booking, responses)

            if voucher_code:
                voucher = self.voucher_repository.get_by_code(voucher_code)
                if voucher is None:
                    raise NotFoundException(
                        "Voucher not found", code="VOUCHER_NOT_FOUND", details={"voucher_code": voucher_code}
                    )
                self.voucher_service.apply_to_booking(voucher, booking, booking.outstanding_amount)

        prometheus_metrics.inc_booking_created(booking.payment_method)
        self.log_operation(
            "booking_created",
            booking_id=booking.id,
            booking_code=booking.booking_code,
            event_id=event.id,
            quantity=quantity,
            payment_method=booking.payment_method,
        )

        if Decimal(booking.stripe_amount) <= 0:
            # Fully covered by a voucher (or a free event): nothing to charge
            confirmation = self.confirmation_service.confirm(booking.id)
            return self._created(booking, None, confirmation)

        url = self._open_payment_session(booking, event)
        return self._created(booking, url)

    @staticmethod
    def _created(
        booking: Booking, url: Optional[str], confirmation: Optional[ConfirmationResult] = None
    ) -> BookingCreated:
        return BookingCreated(
            booking_id=booking.id,
            booking_code=booking.booking_code,
            payment_session_url=url,
            total_amount=Decimal(booking.total_amount),
            voucher_amount=Decimal(booking.voucher_amount),
            stripe_amount=Decimal(booking.stripe_amount),
            payment_method=booking.payment_method,
            confirmation=confirmation,
        )

    def _open_payment_session(self, booking: Booking, event: Event) -> Optional[str]:
        if Decimal(booking.voucher_amount or 0) > 0:
            line_items = [
                LineItem(
                    name=f"{event.title} ({booking.quantity} tickets)",
                    unit_amount=Decimal(booking.stripe_amount),
                    description=f"Gift voucher applied: {booking.voucher_amount} EUR",
                )
            ]
        else:
            line_items = [
                LineItem(
                    name=event.title,
                    unit_amount=Decimal(event.price),
                    quantity=booking.quantity,
                    description=f"{event.event_date} {event.start_time} - {event.location}",
                )
            ]
        try:
            session = self.stripe_service.create_checkout_session(
                line_items=line_items,
                metadata={"event_id": event.id, "booking_id": booking.id, "booking_code": booking.booking_code},
                success_url=(
                    f"{self.config.frontend_url}/booking/success"
                    f"?session_id={{CHECKOUT_SESSION_ID}}&booking_id={booking.id}"
                ),
                cancel_url=f"{self.config.frontend_url}/booking/{event.id}?cancelled=true",
                customer_email=booking.customer_email,
            )
        except PaymentGatewayUnavailableException as e:
            self.logger.error("Booking %s left pending, checkout unavailable: %s", booking.booking_code, e.message)
            raise PaymentGatewayUnavailableException(
                e.message, booking_id=booking.id, booking_code=booking.booking_code
            ) from e

        with self.transaction():
            self.repository.set_payment_session(booking.id, session.id)
        booking.stripe_session_id = session.id
        return session.url

    @BaseService.measure_operation("retry_payment_session")
    def retry_payment_session(self, booking_id: str) -> BookingCreated:
        booking = self.get_booking(booking_id)
        if booking.payment_status != PaymentStatus.PENDING.value:
            raise ConflictException(
                "Booking is not awaiting payment",
                code="BOOKING_NOT_PENDING",
                details={"booking_id": booking.id, "payment_status": booking.payment_status},
            )
        self._retire_payment_session(booking)
        url = self._open_payment_session(booking, booking.event)
        return self._created(booking, url)

    def _retire_payment_session(self, booking: Booking) -> None:
        """
        Detach and expire the booking's open Checkout session.

        Webhooks for a session the booking no longer points at are ignored,
        so a detached session can never confirm or fail the booking.
        """
        stale_session_id = booking.stripe_session_id
        if not stale_session_id:
            return
        with self.transaction():
            self.repository.set_payment_session(booking.id, None)
        booking.stripe_session_id = None
        if not self.stripe_service.expire_checkout_session(stale_session_id):
            self.logger.warning(
                "Checkout session %s for booking %s could not be expired", stale_session_id, booking.booking_code
            )

    @BaseService.measure_operation("redeem_voucher_for_booking")
    def redeem_voucher(self, booking_id: str, code: str, amount_requested: Decimal) -> VoucherRedeemed:
        """
        Apply a voucher to a pending booking and bring its payment in line.

        Any Checkout session opened before the redemption charges the old
        amount, so it is replaced by one for the remainder. When the voucher
        now covers the whole total the booking is confirmed instead.

        Raises:
            Everything ``VoucherService.apply`` raises
            PaymentGatewayUnavailableException: Voucher applied, new checkout not opened
        """
        redemption = self.voucher_service.apply(code, amount_requested, booking_id)
        booking = self.get_booking(booking_id)
        self.repository.refresh(booking)
        if redemption.already_applied or booking.payment_status != PaymentStatus.PENDING.value:
            return self._redeemed(redemption, booking)

        self._retire_payment_session(booking)
        if Decimal(booking.stripe_amount) <= 0:
            confirmation = self.confirmation_service.confirm(booking.id)
            self.repository.refresh(booking)
            return self._redeemed(redemption, booking, confirmation=confirmation)

        url = self._open_payment_session(booking, booking.event)
        return self._redeemed(redemption, booking, url)

    @staticmethod
    def _redeemed(
        redemption: RedemptionResult,
        booking: Booking,
        url: Optional[str] = None,
        confirmation: Optional[ConfirmationResult] = None,
    ) -> VoucherRedeemed:
        return VoucherRedeemed(
            applied_amount=redemption.applied_amount,
            remaining_balance=redemption.remaining_balance,
            redemption_id=redemption.redemption_id,
            already_applied=redemption.already_applied,
            stripe_amount=Decimal(booking.stripe_amount),
            payment_status=booking.payment_status,
            payment_session_url=url,
            confirmation=confirmation,
        )

    # ------------------------------------------------------------------
    # Failure, cancellation, release
    # ------------------------------------------------------------------

    def _refund_vouchers(self, booking: Booking) -> None:
        for redemption in list(booking.redemptions):
            if self.voucher_repository.credit_balance(redemption.voucher_id, Decimal(redemption.amount_used)):
                self.voucher_repository.delete_redemption(redemption)
            else:
                self.logger.warning(
                    "Could not credit voucher %s back for booking %s", redemption.voucher_id, booking.booking_code
                )

    @BaseService.measure_operation("fail_booking")
    def fail_booking(self, booking_id: str, reason: str) -> bool:
        """
        ``pending -> failed``: cancel tickets, return inventory and voucher balance.

        Returns False (and changes nothing) for bookings that are not pending.
        """
        with self.transaction():
            booking = self.repository.get_by_id(booking_id, load_relationships=False)
            if booking is None:
                raise NotFoundException(
                    "Booking not found", code="BOOKING_NOT_FOUND", details={"booking_id": booking_id}
                )
            if not self.repository.mark_failed(booking.id, reason):
                return False
            self.repository.cancel_tickets(booking.id)
            self.inventory_service.restore(booking.event_id, booking.quantity)
            self._refund_vouchers(booking)

        self.log_operation("booking_failed", booking_id=booking_id, reason=reason)
        return True

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str) -> Booking:
        """
        Admin cancellation.

        A pending booking fails. A completed booking keeps its payment status,
        but its tickets are cancelled, the inventory goes back to the event and
        the customer's totals are reduced. Repeating the call changes nothing.
        """
        booking = self.get_booking(booking_id)
        if booking.payment_status == PaymentStatus.PENDING.value:
            self.fail_booking(booking.id, "cancelled_by_admin")
        elif booking.payment_status == PaymentStatus.COMPLETED.value:
            with self.transaction():
                if self.repository.cancel_tickets(booking.id) > 0:
                    self.inventory_service.restore(booking.event_id, booking.quantity)
                    self.customer_repository.add_to_aggregates(
                        booking.customer_id, -1, -Decimal(booking.total_amount)
                    )
                    booking.cancelled_at = utc_now()
                    self.log_operation("booking_cancelled", booking_id=booking.id)
        self.repository.refresh(booking)
        return booking

    @BaseService.measure_operation("release_abandoned_bookings")
    def release_abandoned_bookings(
        self, now: Optional[datetime] = None, older_than_minutes: Optional[int] = None
    ) -> Dict[str, int]:
        """Fail pending bookings whose checkout was never completed."""
        minutes = older_than_minutes or self.config.pending_booking_ttl_minutes
        cutoff = (now or utc_now()) - timedelta(minutes=minutes)
        stale = self.repository.find_stale_pending(cutoff, limit=ABANDONED_BATCH_SIZE)
        released = 0
        for booking in stale:
            try:
                if self.fail_booking(booking.id, "checkout_abandoned"):
                    released += 1
            except ServiceException as e:
                self.logger.error("Could not release booking %s: %s", booking.booking_code, e.message)
        if released:
            self.logger.info("Released %d abandoned bookings (cutoff %s)", released, cutoff.isoformat())
        return {"released": released, "checked": len(stale)}

    # ------------------------------------------------------------------
    # Reads and admin updates
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND", details={"booking_id": booking_id})
        return booking

    def get_by_code(self, booking_code: str) -> Booking:
        booking = self.repository.get_by_code(booking_code)
        if booking is None:
            raise NotFoundException(
                "Booking not found", code="BOOKING_NOT_FOUND", details={"booking_code": booking_code}
            )
        return booking

    def list_bookings(
        self,
        *,
        payment_status: Optional[str] = None,
        event_id: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> BookingPage:
        page = max(page, 1)
        rows, total = self.repository.list_bookings(
            payment_status=payment_status,
            event_id=event_id,
            search=search,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return BookingPage(bookings=rows, total=total, page=page, limit=limit)

    @BaseService.measure_operation("update_booking_admin")
    def update_booking_admin(
        self,
        booking_id: str,
        *,
        notes: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> Booking:
        """
        Admin edits: free-text notes and manual payment status.

        Marking a booking ``completed`` runs the confirmation workflow (payment
        taken outside Stripe); marking it ``failed`` cancels it.
        """
        booking = self.get_booking(booking_id)
        if notes is not None:
            with self.transaction():
                booking.notes = notes

        if payment_status and payment_status != booking.payment_status:
            if payment_status == PaymentStatus.COMPLETED.value:
                self.confirmation_service.confirm(booking.id)
            elif payment_status == PaymentStatus.FAILED.value:
                self.cancel_booking(booking.id)
            else:
                raise ValidationException(
                    "A booking cannot be moved back to pending", code="INVALID_STATUS_TRANSITION"
                )
        self.repository.refresh(booking)
        return booking
