import json
from decimal import Decimal, ROUND_HALF_UP

import stripe
from flask import current_app

from app.errors import AppError
from app.models import Booking


def to_cents(amount):
    """Decimal/float currency amount -> integer minor units."""
    value = Decimal(str(amount or 0)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def application_fee(amount_cents, fee_percent):
    fee = Decimal(amount_cents) * Decimal(str(fee_percent)) / 100
    return int(fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentService:
    def __init__(self, secret_key, currency="eur", fee_percent=5, webhook_secret=None):
        self.secret_key = secret_key
        self.currency = currency
        self.fee_percent = fee_percent
        self.webhook_secret = webhook_secret

    @classmethod
    def from_config(cls, config):
        return cls(
            secret_key=config.get("STRIPE_SECRET_KEY"),
            currency=config.get("PAYMENT_CURRENCY", "eur"),
            fee_percent=config.get("PLATFORM_FEE_PERCENT", 5),
            webhook_secret=config.get("STRIPE_WEBHOOK_SECRET"),
        )

    def create_booking_intent(self, booking, salon):
        """
        PaymentIntent for a booking, charged on the platform and transferred
        to the salon's connected account minus the platform fee.
        """
        if not self.secret_key:
            current_app.logger.warning("Stripe secret key not configured")
            raise AppError(
                "Payments are not currently available", 503, "PAYMENTS_UNAVAILABLE"
            )
        if not salon.stripe_account_id:
            raise AppError(
                "This salon does not accept online payments",
                400,
                "SALON_PAYMENTS_NOT_ENABLED",
            )
        if booking.payment_status == "paid":
            raise AppError("Booking is already paid", 409, "ALREADY_PAID")

        amount = to_cents(booking.total_price)
        if amount <= 0:
            raise AppError("Booking has no payable amount", 400, "INVALID_AMOUNT")

        stripe.api_key = self.secret_key
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=self.currency,
                application_fee_amount=application_fee(amount, self.fee_percent),
                transfer_data={"destination": salon.stripe_account_id},
                metadata={
                    "booking_id": str(booking.id),
                    "salon_id": str(salon.id),
                    "client_id": str(booking.client_id),
                },
            )
        except stripe.StripeError as exc:
            current_app.logger.exception(
                "Stripe API error while creating payment intent", exc_info=exc
            )
            raise AppError(
                "An error occurred while processing the payment",
                502,
                "PAYMENT_PROVIDER_ERROR",
            )
        return intent

    def construct_event(self, payload, sig_header):
        """
        Verify the Stripe signature and return the event as plain JSON.
        ValueError and SignatureVerificationError propagate.
        """
        stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        return json.loads(payload)


def apply_payment_event(session, event):
    """
    Update the booking a payment_intent event refers to. Returns the booking
    touched, or None for events that carry nothing for us.
    """
    evt_type = event.get("type")
    if evt_type not in ("payment_intent.succeeded", "payment_intent.payment_failed"):
        return None

    data = event.get("data", {}).get("object", {}) or {}
    payment_intent_id = data.get("id")
    metadata = data.get("metadata", {}) or {}

    booking = None
    if payment_intent_id:
        booking = (
            session.query(Booking)
            .filter(Booking.payment_intent_id == payment_intent_id)
            .first()
        )
    if booking is None and metadata.get("booking_id"):
        try:
            booking = session.get(Booking, int(metadata["booking_id"]))
        except (TypeError, ValueError):
            booking = None
    if booking is None:
        current_app.logger.warning(
            f"Webhook {evt_type} for unknown payment_intent {payment_intent_id}"
        )
        return None

    if evt_type == "payment_intent.succeeded":
        booking.payment_status = "paid"
        booking.payment_method = "card"
    elif booking.payment_status != "paid":
        booking.payment_status = "failed"
    booking.payment_intent_id = payment_intent_id or booking.payment_intent_id
    session.commit()
    return booking
