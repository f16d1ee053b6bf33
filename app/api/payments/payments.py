import stripe
from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from app.auth import token_required
from app.errors import AppError
from app.extensions import db
from app.models import Booking
from app.services.payment_service import PaymentService, apply_payment_event

payments_bp = Blueprint("payments", __name__)


@payments_bp.route("/api/bookings/<int:booking_id>/create-payment-intent", methods=["POST"])
@token_required
def create_payment_intent(booking_id):
    """
    Start a card payment for a booking
    ---
    tags:
      - Payments
    parameters:
      - in: path
        name: booking_id
        type: integer
        required: true
    responses:
      200:
        description: Client secret for the PaymentIntent
        schema:
          type: object
          properties:
            data:
              type: object
              properties:
                client_secret:
                  type: string
                payment_intent_id:
                  type: string
                amount:
                  type: integer
                currency:
                  type: string
      400:
        description: Salon does not accept online payments
      403:
        description: Not the booking's client
      404:
        description: Booking not found
      409:
        description: Booking already paid
      502:
        description: Stripe rejected the request
      503:
        description: Payments not configured
    """
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise AppError("Booking not found", 404, "BOOKING_NOT_FOUND")
    if booking.client_id != g.current_user.id:
        raise AppError(
            "You are not authorized to pay for this booking", 403, "FORBIDDEN"
        )
    if booking.status == "cancelled":
        raise AppError(
            "Cancelled bookings cannot be paid", 400, "INVALID_BOOKING_STATE"
        )

    service = PaymentService.from_config(current_app.config)
    intent = service.create_booking_intent(booking, booking.salon)

    try:
        booking.payment_intent_id = intent.id
        booking.payment_method = "card"
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(
            f"Failed to store payment intent {intent.id} on booking {booking_id}: {e}"
        )
        raise AppError("Failed to update booking", 500, "BOOKING_UPDATE_FAILED")

    return jsonify(
        {
            "success": True,
            "data": {
                "client_secret": intent.client_secret,
                "payment_intent_id": intent.id,
                "amount": intent.amount,
                "currency": intent.currency,
            },
        }
    )


@payments_bp.route("/webhook/stripe", methods=["POST"])
def stripe_webhook():
    """
    Stripe webhook receiver
    ---
    tags:
      - Payments
    parameters:
      - name: Stripe-Signature
        in: header
        required: true
        type: string
    responses:
      200:
        description: Event received
      400:
        description: Invalid payload or signature
    """
    service = PaymentService.from_config(current_app.config)
    if not service.webhook_secret:
        current_app.logger.error(
            "Stripe webhook secret not configured - webhooks will not be processed"
        )
        # 200 so Stripe does not keep retrying a config problem
        return jsonify({"received": True}), 200

    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature")
    try:
        event = service.construct_event(payload, sig_header)
    except ValueError:
        current_app.logger.warning("Invalid webhook payload")
        raise AppError("Invalid payload", 400, "INVALID_PAYLOAD")
    except stripe.SignatureVerificationError:
        current_app.logger.warning("Invalid signature for webhook")
        raise AppError("Invalid signature", 400, "INVALID_SIGNATURE")

    try:
        booking = apply_payment_event(db.session, event)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to apply webhook {event.get('type')}: {e}")
        raise AppError("Failed to process webhook", 500, "WEBHOOK_FAILED")

    if booking is not None:
        current_app.logger.info(
            f"Booking {booking.id} payment_status -> {booking.payment_status}"
        )
    return jsonify({"received": True}), 200
