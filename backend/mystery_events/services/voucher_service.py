# backend/mystery_events/services/voucher_service.py
"""
Gift Voucher Service for the Mystery Events platform

Covers the whole voucher life cycle:
- purchase through Stripe Checkout (the voucher stays unusable until paid)
- admin issuance of already-paid vouchers
- validation and redemption against bookings
- gift, purchase-confirmation and expiry emails, each sent at most once

Redemption is idempotent per (voucher, booking): applying the same pair twice
returns the recorded amount and leaves the balance alone. The balance debit is
a guarded UPDATE, so concurrent redemptions cannot overspend a voucher.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.codes import generate_voucher_code, normalize_voucher_code
from ..core.config import Settings, settings as default_settings
from ..core.constants import (
    TEMPLATE_VOUCHER_EXPIRATION_REMINDER,
    TEMPLATE_VOUCHER_GIFT,
    TEMPLATE_VOUCHER_PURCHASE_CONFIRMATION,
    VOUCHER_CODE_MAX_ATTEMPTS,
    VOUCHER_DEFAULT_AMOUNT,
    VOUCHER_DEFAULT_TICKET_QUANTITY,
)
from ..core.enums import (
    PaymentMethod,
    PaymentStatus,
    VoucherEmailTarget,
    VoucherStatus,
    VoucherType,
)
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    EventNotFoundException,
    NotFoundException,
    PaymentGatewayUnavailableException,
    ServiceException,
    ValidationException,
    VoucherUnusableException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.booking import Booking
from ..models.voucher import GiftVoucher
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .email import EmailService
from .stripe_service import LineItem, StripeService
from .template_service import TemplateService, format_currency, format_date

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

# Reasons reported by ``validate``
REASON_NOT_FOUND = "not_found"
REASON_PAYMENT_PENDING = "payment_pending"
REASON_NO_BALANCE = "no_balance"
REASON_INACTIVE = "inactive"
REASON_EXPIRED = "expired"
REASON_WRONG_EVENT = "wrong_event"


@dataclass(frozen=True)
class VoucherSnapshot:
    id: str
    code: str
    type: str
    balance: Decimal
    original_amount: Decimal
    expiry_date: datetime
    status: str
    event_id: Optional[str] = None


@dataclass(frozen=True)
class VoucherValidation:
    valid: bool
    reason: Optional[str] = None
    voucher: Optional[VoucherSnapshot] = None


@dataclass(frozen=True)
class RedemptionResult:
    applied_amount: Decimal
    remaining_balance: Decimal
    redemption_id: str
    already_applied: bool = False


@dataclass(frozen=True)
class VoucherPurchaseResult:
    voucher_id: str
    code: str
    amount: Decimal
    payment_session_url: Optional[str]


@dataclass(frozen=True)
class VoucherStats:
    total_active: int
    total_value_active: Decimal
    total_value_sold: Decimal


@dataclass(frozen=True)
class VoucherPage:
    vouchers: List[GiftVoucher]
    total: int
    page: int
    limit: int
    stats: VoucherStats


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES)


class VoucherService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        email_service: Optional[EmailService] = None,
        template_service: Optional[TemplateService] = None,
        stripe_service: Optional[StripeService] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.repository = RepositoryFactory.create_voucher_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.event_repository = RepositoryFactory.create_event_repository(db)
        self._email_service = email_service
        self._template_service = template_service
        self._stripe_service = stripe_service

    # Collaborators are built lazily so read-only callers never touch the providers

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = EmailService(self.db, self.config)
        return self._email_service

    @property
    def template_service(self) -> TemplateService:
        if self._template_service is None:
            self._template_service = TemplateService(self.db, self.config)
        return self._template_service

    @property
    def stripe_service(self) -> StripeService:
        if self._stripe_service is None:
            self._stripe_service = StripeService(self.db, self.config)
        return self._stripe_service

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def snapshot(voucher: GiftVoucher) -> VoucherSnapshot:
        return VoucherSnapshot(
            id=voucher.id,
            code=voucher.code,
            type=voucher.type,
            balance=_money(voucher.current_balance),
            original_amount=_money(voucher.original_amount),
            expiry_date=ensure_utc(voucher.expiry_date),
            status=voucher.status,
            event_id=voucher.event_id,
        )

    @staticmethod
    def unusable_reason(voucher: GiftVoucher, now: Optional[datetime] = None) -> Optional[str]:
        """First rule the voucher breaks, or ``None`` when it can be spent."""
        if voucher.payment_status != PaymentStatus.COMPLETED.value:
            return REASON_PAYMENT_PENDING
        if voucher.status == VoucherStatus.REDEEMED.value or Decimal(voucher.current_balance or 0) <= 0:
            return REASON_NO_BALANCE
        if voucher.status != VoucherStatus.ACTIVE.value:
            return REASON_INACTIVE
        if voucher.is_expired(now):
            return REASON_EXPIRED
        return None

    @staticmethod
    def effective_status(voucher: GiftVoucher, now: Optional[datetime] = None) -> str:
        """Stored status, except an active voucher past its expiry date reports ``expired``."""
        if voucher.status == VoucherStatus.ACTIVE.value and voucher.is_expired(now):
            return VoucherStatus.EXPIRED.value
        return voucher.status

    @BaseService.measure_operation("validate_voucher")
    def validate(self, code: str, now: Optional[datetime] = None) -> VoucherValidation:
        voucher = self.repository.get_by_code(code)
        if voucher is None:
            return VoucherValidation(valid=False, reason=REASON_NOT_FOUND)
        reason = self.unusable_reason(voucher, now)
        return VoucherValidation(valid=reason is None, reason=reason, voucher=self.snapshot(voucher))

    # ------------------------------------------------------------------
    # Redemption
    # ------------------------------------------------------------------

    @BaseService.measure_operation("apply_voucher")
    def apply(
        self,
        code: str,
        amount_requested: Decimal,
        booking_id: str,
        now: Optional[datetime] = None,
    ) -> RedemptionResult:
        """
        Apply ``min(amount_requested, balance)`` of the voucher to a pending booking.

        Raises:
            ValidationException: Non-positive amount or amount above what the booking still owes
            NotFoundException: Unknown voucher or booking
            ConflictException: Booking is no longer awaiting payment
            VoucherUnusableException: Voucher unpaid, inactive, empty, expired or for another event
        """
        with self.transaction():
            voucher = self.repository.get_by_code(code)
            if voucher is None:
                raise NotFoundException("Voucher not found", code="VOUCHER_NOT_FOUND", details={"voucher_code": code})
            booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
            if booking is None:
                raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND", details={"booking_id": booking_id})
            result = self.apply_to_booking(voucher, booking, amount_requested, now)
        return result

    def apply_to_booking(
        self,
        voucher: GiftVoucher,
        booking: Booking,
        amount_requested: Decimal,
        now: Optional[datetime] = None,
    ) -> RedemptionResult:
        """
        Redemption body without a transaction of its own.

        ``BookingService`` calls this inside the transaction that creates the
        booking; ``apply`` wraps it for the standalone redeem endpoint.
        """
        existing = self.repository.get_redemption(voucher.id, booking.id)
        if existing is not None:
            self.logger.info("Voucher %s already applied to booking %s", voucher.code, booking.booking_code)
            return RedemptionResult(
                applied_amount=_money(existing.amount_used),
                remaining_balance=_money(voucher.current_balance),
                redemption_id=existing.id,
                already_applied=True,
            )

        requested = _money(amount_requested)
        if requested <= 0:
            raise ValidationException("Amount to apply must be positive", code="INVALID_VOUCHER_AMOUNT")
        if booking.payment_status != PaymentStatus.PENDING.value:
            raise ConflictException(
                "Booking is not awaiting payment",
                code="BOOKING_NOT_PENDING",
                details={"booking_id": booking.id, "payment_status": booking.payment_status},
            )
        outstanding = _money(booking.outstanding_amount)
        if requested > outstanding:
            raise ValidationException(
                "Amount to apply exceeds the booking's outstanding total",
                code="VOUCHER_AMOUNT_EXCEEDS_TOTAL",
                details={"requested": str(requested), "outstanding": str(outstanding)},
            )

        current = now or utc_now()
        reason = self.unusable_reason(voucher, current)
        if reason is None and voucher.type == VoucherType.EVENT.value and voucher.event_id:
            if voucher.event_id != booking.event_id:
                reason = REASON_WRONG_EVENT
        if reason is not None:
            raise VoucherUnusableException(voucher.code, reason)

        applied = min(requested, _money(voucher.current_balance))
        if not self.repository.debit_balance(voucher.id, applied, current):
            # Lost a race with another redemption; report the state we now see
            self.repository.refresh(voucher)
            raise VoucherUnusableException(voucher.code, self.unusable_reason(voucher, current) or REASON_NO_BALANCE)

        redemption = self.repository.add_redemption(voucher.id, booking.id, applied)
        booking.voucher_amount = _money(Decimal(booking.voucher_amount or 0) + applied)
        booking.stripe_amount = max(_money(booking.total_amount) - booking.voucher_amount, Decimal("0.00"))
        booking.payment_method = (
            PaymentMethod.VOUCHER.value if booking.stripe_amount == 0 else PaymentMethod.MIXED.value
        )
        self.db.flush()
        self.repository.refresh(voucher)

        prometheus_metrics.inc_voucher_redemption()
        self.log_operation(
            "voucher_applied",
            voucher_code=voucher.code,
            booking_id=booking.id,
            applied=str(applied),
            remaining=str(voucher.current_balance),
        )
        return RedemptionResult(
            applied_amount=applied,
            remaining_balance=_money(voucher.current_balance),
            redemption_id=redemption.id,
        )

    @BaseService.measure_operation("cancel_voucher_redemption")
    def cancel_redemption(self, redemption_id: str) -> GiftVoucher:
        """Undo a redemption on a booking that has not been paid; the balance is credited back."""
        with self.transaction():
            redemption = self.repository.get_redemption_by_id(redemption_id)
            if redemption is None:
                raise NotFoundException("Redemption not found", code="REDEMPTION_NOT_FOUND")
            booking = redemption.booking
            if booking.payment_status == PaymentStatus.COMPLETED.value:
                raise BusinessRuleException(
                    "Cannot cancel a redemption on a completed booking",
                    code="REDEMPTION_LOCKED",
                    details={"booking_id": booking.id},
                )
            voucher_id = redemption.voucher_id
            amount = _money(redemption.amount_used)
            if not self.repository.credit_balance(voucher_id, amount):
                raise ConflictException("Voucher balance cannot be restored", code="VOUCHER_CREDIT_REFUSED")

            booking.voucher_amount = max(_money(booking.voucher_amount or 0) - amount, Decimal("0.00"))
            booking.stripe_amount = _money(booking.total_amount) - booking.voucher_amount
            booking.payment_method = (
                PaymentMethod.CARD.value if booking.voucher_amount == 0 else PaymentMethod.MIXED.value
            )
            self.repository.delete_redemption(redemption)
            voucher = self.repository.get_by_id(voucher_id)
            self.repository.refresh(voucher)

        self.log_operation("voucher_redemption_cancelled", redemption_id=redemption_id, amount=str(amount))
        return voucher

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def _generate_unique_code(self) -> str:
        for _ in range(VOUCHER_CODE_MAX_ATTEMPTS):
            code = generate_voucher_code()
            if not self.repository.code_exists(code):
                return code
        raise ServiceException("Could not generate a unique voucher code")

    def _resolve_amount(
        self,
        voucher_type: str,
        amount: Optional[Decimal],
        event_id: Optional[str],
        ticket_quantity: Optional[int],
    ) -> Decimal:
        if voucher_type == VoucherType.EVENT.value:
            if not event_id:
                raise ValidationException("Event vouchers need an event", code="VOUCHER_EVENT_REQUIRED")
            event = self.event_repository.get_by_id(event_id, load_relationships=False)
            if event is None:
                raise EventNotFoundException(event_id)
            return _money(Decimal(event.price) * (ticket_quantity or VOUCHER_DEFAULT_TICKET_QUANTITY))

        value = _money(amount if amount is not None else VOUCHER_DEFAULT_AMOUNT)
        low = _money(self.config.voucher_min_amount)
        high = _money(self.config.voucher_max_amount)
        if value < low or value > high:
            raise ValidationException(
                f"Voucher amount must be between {low} and {high}",
                code="INVALID_VOUCHER_AMOUNT",
                details={"min": str(low), "max": str(high)},
            )
        return value

    def _build_voucher(self, data: Dict[str, Any], *, paid: bool, now: datetime) -> GiftVoucher:
        voucher_type = data.get("type") or VoucherType.AMOUNT.value
        message = data.get("personal_message")
        if message and len(message) > self.config.voucher_message_max_length:
            raise ValidationException("Personal message is too long", code="VOUCHER_MESSAGE_TOO_LONG")
        amount = self._resolve_amount(
            voucher_type, data.get("amount"), data.get("event_id"), data.get("ticket_quantity")
        )
        fields: Dict[str, Any] = {
            "code": self._generate_unique_code(),
            "type": voucher_type,
            "original_amount": amount,
            "current_balance": amount,
            "event_id": data.get("event_id") if voucher_type == VoucherType.EVENT.value else None,
            "ticket_quantity": (data.get("ticket_quantity") or VOUCHER_DEFAULT_TICKET_QUANTITY)
            if voucher_type == VoucherType.EVENT.value
            else None,
            "purchaser_name": data["purchaser_name"],
            "purchaser_email": data["purchaser_email"].strip().lower(),
            "purchaser_phone": data.get("purchaser_phone"),
            "recipient_name": data.get("recipient_name"),
            "recipient_email": (data.get("recipient_email") or "").strip().lower() or None,
            "personal_message": message,
            "template_used": data.get("template"),
            "scheduled_delivery_at": ensure_utc(data["delivery_date"]) if data.get("delivery_date") else None,
            "status": VoucherStatus.ACTIVE.value,
            "expiry_date": now + timedelta(days=self.config.voucher_validity_days),
        }
        if paid:
            fields.update(payment_status=PaymentStatus.COMPLETED.value, paid_at=now, activated_at=now)
        else:
            fields["payment_status"] = PaymentStatus.PENDING.value
        return self.repository.create(**fields)

    @BaseService.measure_operation("purchase_voucher")
    def purchase(self, data: Dict[str, Any]) -> VoucherPurchaseResult:
        """
        Create a pending voucher and open a Checkout session for it.

        If the payment gateway is down the voucher is kept (pending, unusable)
        and ``PaymentGatewayUnavailableException`` is raised.
        """
        now = utc_now()
        with self.transaction():
            voucher = self._build_voucher(data, paid=False, now=now)

        line_item = LineItem(
            name=f"Gift voucher {voucher.code}",
            unit_amount=Decimal(voucher.original_amount),
            description=f"For {voucher.recipient_name}" if voucher.recipient_name else None,
        )
        try:
            session = self.stripe_service.create_checkout_session(
                line_items=[line_item],
                metadata={"voucher_id": voucher.id, "voucher_code": voucher.code, "type": "gift_voucher"},
                success_url=f"{self.config.frontend_url}/gift-vouchers/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.config.frontend_url}/gift-vouchers?cancelled=true",
                customer_email=voucher.purchaser_email,
            )
        except PaymentGatewayUnavailableException as e:
            self.logger.error("Voucher %s created but checkout is unavailable: %s", voucher.code, e.message)
            raise

        with self.transaction():
            self.repository.set_payment_session(voucher.id, session.id)

        self.log_operation("voucher_purchase_started", voucher_id=voucher.id, amount=str(voucher.original_amount))
        return VoucherPurchaseResult(
            voucher_id=voucher.id,
            code=voucher.code,
            amount=_money(voucher.original_amount),
            payment_session_url=session.url,
        )

    @BaseService.measure_operation("admin_create_voucher")
    def admin_create(self, data: Dict[str, Any], send_emails: bool = True) -> GiftVoucher:
        """Issue a voucher that is already paid (sold in person, courtesy, etc.)."""
        now = utc_now()
        with self.transaction():
            voucher = self._build_voucher(data, paid=True, now=now)
        self.log_operation("voucher_issued_by_admin", voucher_id=voucher.id, code=voucher.code)
        if send_emails:
            self.send_activation_emails(voucher, now)
        return voucher

    @BaseService.measure_operation("mark_voucher_paid")
    def mark_paid(self, voucher_id: str, payment_intent_id: Optional[str] = None) -> bool:
        """
        Activate a voucher after its checkout completes.

        Returns False when it was already paid (repeated webhook delivery).
        """
        with self.transaction():
            transitioned = self.repository.mark_paid(voucher_id, payment_intent_id)
        if not transitioned:
            self.logger.info("Voucher %s already settled; ignoring payment notification", voucher_id)
            return False
        voucher = self.repository.get_by_id(voucher_id)
        self.repository.refresh(voucher)
        self.send_activation_emails(voucher)
        return True

    def mark_payment_failed(self, voucher_id: str) -> bool:
        with self.transaction():
            changed = self.repository.mark_payment_failed(voucher_id)
        if changed:
            self.log_operation("voucher_payment_failed", voucher_id=voucher_id)
        return changed

    # ------------------------------------------------------------------
    # Emails
    # ------------------------------------------------------------------

    def build_email_context(self, voucher: GiftVoucher) -> Dict[str, Any]:
        return {
            "voucher_code": voucher.code,
            "recipient_name": voucher.recipient_name or "",
            "purchaser_name": voucher.purchaser_name,
            "amount": format_currency(voucher.original_amount),
            "balance": format_currency(voucher.current_balance),
            "personal_message": voucher.personal_message or "",
            "expiry_date": format_date(voucher.expiry_date),
            "delivery_date": format_date(voucher.scheduled_delivery_at) if voucher.scheduled_delivery_at else "",
            "event_title": voucher.event.title if voucher.event else "",
            "frontend_url": self.config.frontend_url,
        }

    def _send_gated(
        self,
        voucher: GiftVoucher,
        flag: str,
        template_name: str,
        to_email: str,
        now: Optional[datetime] = None,
    ) -> Optional[bool]:
        """
        Claim ``flag``, send, and release the claim if the send fails.

        True sent, False failed, None when the flag was already claimed.
        """
        with self.transaction():
            claimed = self.repository.claim_flag(voucher.id, flag, now)
        if not claimed:
            self.logger.info("Voucher %s: %s already claimed, skipping", voucher.code, flag)
            return None

        event_template_id = voucher.event.voucher_template_id if voucher.event else None
        try:
            rendered = self.template_service.render_voucher(
                template_name, self.build_email_context(voucher), event_template_id
            )
            self.email_service.send_email(to_email, rendered.subject, rendered.html, rendered.text)
        except ServiceException as e:
            self.logger.error("Voucher %s: %s email to %s failed: %s", voucher.code, flag, to_email, e.message)
            with self.transaction():
                self.repository.release_flag(voucher.id, flag)
            prometheus_metrics.record_notification(template_name, False)
            return False

        if flag == "recipient_email_sent":
            with self.transaction():
                self.repository.update(voucher.id, template_used=rendered.template_name)
        prometheus_metrics.record_notification(template_name, True)
        return True

    def send_recipient_email(self, voucher: GiftVoucher, now: Optional[datetime] = None) -> Optional[bool]:
        if not voucher.recipient_email:
            return False
        return self._send_gated(voucher, "recipient_email_sent", TEMPLATE_VOUCHER_GIFT, voucher.recipient_email, now)

    def send_purchaser_email(self, voucher: GiftVoucher, now: Optional[datetime] = None) -> Optional[bool]:
        return self._send_gated(
            voucher,
            "purchaser_email_sent",
            TEMPLATE_VOUCHER_PURCHASE_CONFIRMATION,
            voucher.purchaser_email,
            now,
        )

    def send_expiration_reminder(self, voucher: GiftVoucher, now: Optional[datetime] = None) -> Optional[bool]:
        to_email = voucher.recipient_email or voucher.purchaser_email
        return self._send_gated(
            voucher, "expiration_reminder_sent", TEMPLATE_VOUCHER_EXPIRATION_REMINDER, to_email, now
        )

    def send_activation_emails(self, voucher: GiftVoucher, now: Optional[datetime] = None) -> Dict[str, bool]:
        """
        Purchaser confirmation always; the gift email right away unless a
        delivery date in the future was chosen (the scheduled sweep sends it).
        """
        current = now or utc_now()
        results = {"purchaser_email_sent": self.send_purchaser_email(voucher, current) is True}
        scheduled = voucher.scheduled_delivery_at
        if scheduled is None or ensure_utc(scheduled) <= current:
            results["recipient_email_sent"] = self.send_recipient_email(voucher, current) is True
        else:
            results["recipient_email_sent"] = False
        return results

    @BaseService.measure_operation("resend_voucher_email")
    def resend_email(
        self,
        voucher_id: str,
        target: VoucherEmailTarget = VoucherEmailTarget.RECIPIENT,
        new_email: Optional[str] = None,
    ) -> bool:
        """
        Send the gift (or purchase confirmation) email again.

        ``new_email`` replaces the stored address for that target first.
        """
        voucher = self.repository.get_by_id(voucher_id)
        if voucher is None:
            raise NotFoundException("Voucher not found", code="VOUCHER_NOT_FOUND", details={"voucher_id": voucher_id})
        if voucher.payment_status != PaymentStatus.COMPLETED.value:
            raise BusinessRuleException("Voucher has not been paid", code="VOUCHER_NOT_PAID")

        flag = "recipient_email_sent" if target == VoucherEmailTarget.RECIPIENT else "purchaser_email_sent"
        address_field = "recipient_email" if target == VoucherEmailTarget.RECIPIENT else "purchaser_email"
        with self.transaction():
            if new_email:
                setattr(voucher, address_field, new_email.strip().lower())
            if not getattr(voucher, address_field):
                raise ValidationException("Voucher has no email address for that target", code="VOUCHER_NO_EMAIL")
            self.repository.reset_flag(voucher.id, flag)

        if target == VoucherEmailTarget.RECIPIENT:
            return self.send_recipient_email(voucher) is True
        return self.send_purchaser_email(voucher) is True

    # ------------------------------------------------------------------
    # Admin listing
    # ------------------------------------------------------------------

    def get_voucher(self, voucher_id: str) -> GiftVoucher:
        voucher = self.repository.get_by_id(voucher_id)
        if voucher is None:
            raise NotFoundException("Voucher not found", code="VOUCHER_NOT_FOUND", details={"voucher_id": voucher_id})
        return voucher

    def get_stats(self) -> VoucherStats:
        count, balance, original = self.repository.active_stats()
        return VoucherStats(
            total_active=count,
            total_value_active=_money(balance),
            total_value_sold=_money(original),
        )

    @BaseService.measure_operation("list_vouchers")
    def list_vouchers(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> VoucherPage:
        page = max(page, 1)
        rows, total = self.repository.list_vouchers(
            status=status if status and status != "all" else None,
            search=normalize_voucher_code(search) if search and search.upper().startswith("GIFT") else search,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return VoucherPage(vouchers=rows, total=total, page=page, limit=limit, stats=self.get_stats())
