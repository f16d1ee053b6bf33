from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from app.auth import roles_required, token_required
from app.errors import AppError
from app.extensions import db
from app.models import BOOKING_STATUSES, Booking, Salon, Service
from app.services import tracking
from app.services.booking_service import (
    available_slots,
    end_time_for,
    overlapping_bookings,
    parse_date,
    parse_time,
    transition_booking,
)
from app.services.ownership import get_owned_salon
from app.utils.request_args import parse_int

bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")

REQUIRED_BOOKING_FIELDS = ("salon_id", "service_id", "appointment_date", "start_time")


def _booking_dict(booking):
    data = booking.to_dict()
    data["salon"] = (
        {"id": booking.salon.id, "business_name": booking.salon.business_name}
        if booking.salon
        else None
    )
    data["service"] = (
        {
            "id": booking.service.id,
            "name": booking.service.name,
            "duration": booking.service.duration,
        }
        if booking.service
        else None
    )
    return data


def _status_filter(value):
    if not value:
        return None
    if value not in BOOKING_STATUSES:
        raise AppError(f"Invalid status: {value}", 400, "INVALID_STATUS")
    return value


def _get_booking(booking_id):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise AppError("Booking not found", 404, "BOOKING_NOT_FOUND")
    return booking


def _is_salon_side(user, booking):
    if user.role == "admin":
        return True
    return user.role == "salon_owner" and booking.salon.owner_id == user.id


@bookings_bp.route("", methods=["POST"])
@token_required
@roles_required("client", "admin")
def create_booking():
    """
    Book a service
    ---
    tags:
      - Bookings
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [salon_id, service_id, appointment_date, start_time]
          properties:
            salon_id:
              type: integer
            service_id:
              type: integer
            staff_id:
              type: integer
            appointment_date:
              type: string
              example: "2026-10-20"
            start_time:
              type: string
              example: "10:00"
            notes:
              type: string
    responses:
      201:
        description: Booking created (pending)
        schema:
          $ref: '#/definitions/Booking'
      400:
        description: Missing or invalid fields
      404:
        description: Service not found at this salon
      409:
        description: Staff member already booked for that time
    """
    payload = request.get_json(silent=True) or {}

    missing = [f for f in REQUIRED_BOOKING_FIELDS if payload.get(f) in (None, "")]
    if missing:
        raise AppError(
            f"Missing required fields: {', '.join(missing)}",
            400,
            "MISSING_REQUIRED_FIELDS",
        )

    salon_id = parse_int(payload.get("salon_id"))
    service_id = parse_int(payload.get("service_id"))
    staff_id = parse_int(payload.get("staff_id"))
    appointment_date = parse_date(payload.get("appointment_date"))
    start_time = parse_time(payload.get("start_time"))

    salon = db.session.get(Salon, salon_id) if salon_id is not None else None
    service = db.session.get(Service, service_id) if service_id is not None else None
    if (
        not salon
        or not salon.is_active
        or not service
        or not service.is_active
        or service.salon_id != salon.id
    ):
        raise AppError("Service not found", 404, "SERVICE_NOT_FOUND")

    end_time = end_time_for(start_time, service.duration)

    if staff_id is not None and overlapping_bookings(
        db.session, salon.id, appointment_date, start_time, end_time, staff_id=staff_id
    ):
        raise AppError(
            "This time slot is no longer available", 409, "TIME_SLOT_UNAVAILABLE"
        )

    try:
        booking = Booking(
            client_id=g.current_user.id,
            salon_id=salon.id,
            service_id=service.id,
            staff_id=staff_id,
            appointment_date=appointment_date,
            start_time=start_time,
            end_time=end_time,
            status="pending",
            notes=payload.get("notes"),
            total_price=service.price,
            payment_status="unpaid",
        )
        db.session.add(booking)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create booking: {e}")
        raise AppError("Failed to create booking", 500, "BOOKING_CREATE_FAILED")

    tracking.increment_booking_count(db.session, salon.id)
    current_app.logger.info(
        f"Booking {booking.id} created for salon {salon.id} by user {g.current_user.id}"
    )

    return (
        jsonify(
            {
                "success": True,
                "message": "Booking created successfully",
                "data": _booking_dict(booking),
            }
        ),
        201,
    )


@bookings_bp.route("", methods=["GET"])
@bookings_bp.route("/my-bookings", methods=["GET"])
@token_required
def get_my_bookings():
    """
    The current user's bookings, most recent first
    ---
    tags:
      - Bookings
    parameters:
      - in: query
        name: status
        type: string
        enum: [pending, confirmed, completed, cancelled, no_show]
    responses:
      200:
        description: Bookings list
    """
    status = _status_filter(request.args.get("status"))

    query = db.session.query(Booking).filter(Booking.client_id == g.current_user.id)
    if status:
        query = query.filter(Booking.status == status)
    bookings = query.order_by(
        Booking.appointment_date.desc(), Booking.start_time.desc(), Booking.id.desc()
    ).all()

    return jsonify({"success": True, "data": [_booking_dict(b) for b in bookings]})


@bookings_bp.route("/salon", methods=["GET"])
@token_required
@roles_required("salon_owner", "admin")
def get_salon_bookings():
    """
    Bookings at the current owner's salon
    ---
    tags:
      - Bookings
    parameters:
      - in: query
        name: status
        type: string
      - in: query
        name: date
        type: string
        description: YYYY-MM-DD
    responses:
      200:
        description: Bookings list ordered by date and start time
      404:
        description: Owner has no salon
    """
    salon = get_owned_salon(g.current_user)
    status = _status_filter(request.args.get("status"))

    query = db.session.query(Booking).filter(Booking.salon_id == salon.id)
    if status:
        query = query.filter(Booking.status == status)
    if request.args.get("date"):
        query = query.filter(
            Booking.appointment_date == parse_date(request.args.get("date"))
        )
    bookings = query.order_by(
        Booking.appointment_date.asc(), Booking.start_time.asc(), Booking.id.asc()
    ).all()

    return jsonify({"success": True, "data": [_booking_dict(b) for b in bookings]})


@bookings_bp.route("/available-slots", methods=["GET"])
@token_required
def get_available_slots():
    """
    Free start times for a service on a date
    ---
    tags:
      - Bookings
    parameters:
      - in: query
        name: salon_id
        type: integer
        required: true
      - in: query
        name: service_id
        type: integer
        required: true
      - in: query
        name: date
        type: string
        required: true
      - in: query
        name: staff_id
        type: integer
    responses:
      200:
        description: Slots on a 30 minute grid
        schema:
          type: object
          properties:
            data:
              type: object
              properties:
                slots:
                  type: array
                  items:
                    type: string
                    example: "09:30"
      400:
        description: Missing parameters
      404:
        description: Salon or service not found
    """
    salon_id = parse_int(request.args.get("salon_id"))
    service_id = parse_int(request.args.get("service_id"))
    date_arg = request.args.get("date")
    if salon_id is None or service_id is None or not date_arg:
        raise AppError(
            "salon_id, service_id and date are required",
            400,
            "MISSING_REQUIRED_FIELDS",
        )
    date = parse_date(date_arg)

    salon = db.session.get(Salon, salon_id)
    if not salon or not salon.is_active:
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")
    service = db.session.get(Service, service_id)
    if not service or service.salon_id != salon.id or not service.is_active:
        raise AppError("Service not found", 404, "SERVICE_NOT_FOUND")

    slots = available_slots(
        db.session, salon, service, date, staff_id=parse_int(request.args.get("staff_id"))
    )
    return jsonify(
        {
            "success": True,
            "data": {"date": date.isoformat(), "slots": slots},
        }
    )


@bookings_bp.route("/<int:booking_id>/status", methods=["PATCH"])
@token_required
def update_booking_status(booking_id):
    """
    Move a booking through its lifecycle
    ---
    tags:
      - Bookings
    parameters:
      - in: path
        name: booking_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [status]
          properties:
            status:
              type: string
              enum: [confirmed, completed, cancelled, no_show]
    responses:
      200:
        description: Status updated
      400:
        description: Invalid status or transition
      403:
        description: Not allowed to change this booking
      404:
        description: Booking not found
    """
    booking = _get_booking(booking_id)
    payload = request.get_json(silent=True) or {}
    new_status = payload.get("status")
    if not new_status:
        raise AppError("Status is required", 400, "MISSING_REQUIRED_FIELDS")

    user = g.current_user
    if not _is_salon_side(user, booking):
        if booking.client_id != user.id:
            raise AppError("You cannot modify this booking", 403, "FORBIDDEN")
        if new_status != "cancelled":
            raise AppError("Clients may only cancel bookings", 403, "FORBIDDEN")

    transition_booking(booking, new_status)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update booking {booking_id}: {e}")
        raise AppError("Failed to update booking", 500, "BOOKING_UPDATE_FAILED")

    return jsonify(
        {
            "success": True,
            "message": f"Booking {new_status}",
            "data": _booking_dict(booking),
        }
    )


@bookings_bp.route("/<int:booking_id>/mark-paid-cash", methods=["POST"])
@token_required
@roles_required("salon_owner", "admin")
def mark_paid_cash(booking_id):
    """
    Record an in-salon cash payment
    ---
    tags:
      - Bookings
    parameters:
      - in: path
        name: booking_id
        type: integer
        required: true
    responses:
      200:
        description: Booking marked as paid
      400:
        description: Booking was cancelled
      403:
        description: Not this salon's owner
      409:
        description: Already paid
    """
    booking = _get_booking(booking_id)
    if not _is_salon_side(g.current_user, booking):
        raise AppError("You cannot modify this booking", 403, "FORBIDDEN")
    if booking.payment_status == "paid":
        raise AppError("Booking is already paid", 409, "ALREADY_PAID")
    if booking.status == "cancelled":
        raise AppError(
            "Cancelled bookings cannot be paid", 400, "INVALID_BOOKING_STATE"
        )

    try:
        booking.payment_status = "paid"
        booking.payment_method = "cash"
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to mark booking {booking_id} paid: {e}")
        raise AppError("Failed to update booking", 500, "BOOKING_UPDATE_FAILED")

    return jsonify(
        {
            "success": True,
            "message": "Booking marked as paid",
            "data": _booking_dict(booking),
        }
    )
