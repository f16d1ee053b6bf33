import datetime

from app.errors import AppError
from app.models import BOOKING_STATUSES, Booking
from app.utils.business_hours import WEEKDAYS, day_hours

# Terminal statuses have no outgoing edges
BOOKING_TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("completed", "cancelled", "no_show"),
    "completed": (),
    "cancelled": (),
    "no_show": (),
}

ACTIVE_STATUSES = ("pending", "confirmed")
SLOT_INTERVAL_MINUTES = 30


def can_transition(current, new):
    return new in BOOKING_TRANSITIONS.get(current, ())


def transition_booking(booking, new_status):
    if new_status not in BOOKING_STATUSES:
        raise AppError(f"Invalid status: {new_status}", 400, "INVALID_STATUS")
    if not can_transition(booking.status, new_status):
        raise AppError(
            f"Cannot change booking from {booking.status} to {new_status}",
            400,
            "INVALID_STATUS_TRANSITION",
        )
    booking.status = new_status
    return booking


def parse_date(value):
    try:
        return datetime.date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise AppError("Invalid date. Use YYYY-MM-DD", 400, "INVALID_DATE")


def parse_time(value):
    try:
        return datetime.datetime.strptime(str(value).strip(), "%H:%M").time()
    except (TypeError, ValueError):
        raise AppError("Invalid time. Use HH:MM", 400, "INVALID_TIME")


def _minutes(t):
    return t.hour * 60 + t.minute


def _time(minutes):
    return datetime.time(minutes // 60, minutes % 60)


def end_time_for(start_time, duration_minutes):
    end = _minutes(start_time) + int(duration_minutes)
    if end >= 24 * 60:
        raise AppError("Appointment must end on the same day", 400, "INVALID_TIME")
    return _time(end)


def overlapping_bookings(
    session, salon_id, date, start_time, end_time, staff_id=None, exclude_id=None
):
    """Active bookings on the same day whose time range intersects [start, end)."""
    query = session.query(Booking).filter(
        Booking.salon_id == salon_id,
        Booking.appointment_date == date,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_time < end_time,
        Booking.end_time > start_time,
    )
    if staff_id is not None:
        query = query.filter(Booking.staff_id == staff_id)
    if exclude_id is not None:
        query = query.filter(Booking.id != exclude_id)
    return query.all()


def available_slots(session, salon, service, date, staff_id=None):
    """
    Start times ("HH:MM") on a 30-minute grid inside the day's opening
    hours where the whole service fits and nothing active overlaps.
    Without a staff member every active salon booking blocks its range.
    """
    hours = day_hours(salon.business_hours, WEEKDAYS[date.weekday()])
    if hours is None:
        return []
    opens, closes = hours

    busy_query = session.query(Booking.start_time, Booking.end_time).filter(
        Booking.salon_id == salon.id,
        Booking.appointment_date == date,
        Booking.status.in_(ACTIVE_STATUSES),
    )
    if staff_id is not None:
        busy_query = busy_query.filter(Booking.staff_id == staff_id)
    busy = [(_minutes(s), _minutes(e)) for s, e in busy_query.all()]

    duration = int(service.duration or SLOT_INTERVAL_MINUTES)
    slots = []
    start = opens
    while start + duration <= closes:
        end = start + duration
        clash = any(start < b_end and end > b_start for b_start, b_end in busy)
        if not clash:
            slots.append(f"{start // 60:02d}:{start % 60:02d}")
        start += SLOT_INTERVAL_MINUTES
    return slots
