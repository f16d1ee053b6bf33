"""
Salon activity counters and the trending score.

Counter bumps run after the request's own write has been committed, so a
failure here only loses a count; it is logged and swallowed.
"""

from datetime import timedelta

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from app.models import Booking, Favorite, Salon, SalonView, utcnow

TRENDING_WINDOW_DAYS = 7
VIEW_WEIGHT = 1.0
BOOKING_WEIGHT = 10.0
FAVORITE_WEIGHT = 5.0


def _bump(session, salon_id, values, label):
    try:
        session.query(Salon).filter(Salon.id == salon_id).update(
            values, synchronize_session=False
        )
        session.commit()
        return True
    except SQLAlchemyError as e:
        session.rollback()
        current_app.logger.warning(f"Failed to {label} for salon {salon_id}: {e}")
        return False


def record_view(session, salon_id, user_id=None):
    try:
        session.add(SalonView(salon_id=salon_id, user_id=user_id))
        session.flush()
    except SQLAlchemyError as e:
        session.rollback()
        current_app.logger.warning(f"Failed to record view for salon {salon_id}: {e}")
        return False
    return _bump(
        session,
        salon_id,
        {Salon.view_count: func.coalesce(Salon.view_count, 0) + 1},
        "increment view count",
    )


def increment_booking_count(session, salon_id):
    return _bump(
        session,
        salon_id,
        {
            Salon.booking_count: func.coalesce(Salon.booking_count, 0) + 1,
            Salon.last_booking_at: utcnow(),
        },
        "increment booking count",
    )


def increment_favorite_count(session, salon_id):
    return _bump(
        session,
        salon_id,
        {Salon.favorite_count: func.coalesce(Salon.favorite_count, 0) + 1},
        "increment favorite count",
    )


def decrement_favorite_count(session, salon_id):
    return _bump(
        session,
        salon_id,
        {
            Salon.favorite_count: case(
                (Salon.favorite_count > 0, Salon.favorite_count - 1), else_=0
            )
        },
        "decrement favorite count",
    )


def trending_score(views, bookings, favorites):
    return views * VIEW_WEIGHT + bookings * BOOKING_WEIGHT + favorites * FAVORITE_WEIGHT


def _recent_counts(session, model, column, since):
    rows = (
        session.query(model.salon_id, func.count(model.id))
        .filter(column >= since)
        .group_by(model.salon_id)
        .all()
    )
    return {salon_id: count for salon_id, count in rows}


def recompute_trending_scores(session, now=None):
    """Recompute trending_score for every active salon; returns how many were updated."""
    now = now or utcnow()
    since = now - timedelta(days=TRENDING_WINDOW_DAYS)

    views = _recent_counts(session, SalonView, SalonView.viewed_at, since)
    bookings = _recent_counts(session, Booking, Booking.created_at, since)
    favorites = _recent_counts(session, Favorite, Favorite.created_at, since)

    salons = session.query(Salon).filter(Salon.is_active.is_(True)).all()
    for salon in salons:
        salon.trending_score = trending_score(
            views.get(salon.id, 0),
            bookings.get(salon.id, 0),
            favorites.get(salon.id, 0),
        )
    session.commit()
    return len(salons)
