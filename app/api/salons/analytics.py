from datetime import timedelta

from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from app.auth import roles_required, token_required
from app.errors import AppError
from app.extensions import db
from app.models import (
    BOOKING_STATUSES,
    Booking,
    Favorite,
    Review,
    SalonView,
    Service,
    utcnow,
)
from app.services.ownership import get_owned_salon
from app.utils.request_args import parse_int

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")

DEFAULT_PERIOD_DAYS = 30
MAX_PERIOD_DAYS = 365
TOP_SERVICES = 5


def _booking_metrics(salon_id, since):
    rows = (
        db.session.query(Booking.status, func.count(Booking.id))
        .filter(Booking.salon_id == salon_id, Booking.created_at >= since)
        .group_by(Booking.status)
        .all()
    )
    by_status = {status: 0 for status in BOOKING_STATUSES}
    for status, count in rows:
        by_status[status] = count
    return {"total": sum(by_status.values()), "byStatus": by_status}


def _revenue_metrics(salon_id, since):
    count, total = (
        db.session.query(
            func.count(Booking.id), func.coalesce(func.sum(Booking.total_price), 0)
        )
        .filter(
            Booking.salon_id == salon_id,
            Booking.payment_status == "paid",
            Booking.created_at >= since,
        )
        .one()
    )
    return {
        "total": round(float(total or 0), 2),
        "count": count,
        "currency": current_app.config.get("PAYMENT_CURRENCY", "eur").upper(),
    }


def _view_metrics(salon_id, since):
    total, unique = (
        db.session.query(
            func.count(SalonView.id), func.count(func.distinct(SalonView.user_id))
        )
        .filter(SalonView.salon_id == salon_id, SalonView.viewed_at >= since)
        .one()
    )
    return {"total": total, "unique": unique}


def _favorite_metrics(salon_id, since):
    total = db.session.query(func.count(Favorite.id)).filter(
        Favorite.salon_id == salon_id
    ).scalar()
    recent = db.session.query(func.count(Favorite.id)).filter(
        Favorite.salon_id == salon_id, Favorite.created_at >= since
    ).scalar()
    return {"total": total or 0, "recent": recent or 0}


def _review_metrics(salon_id, since):
    count, average = (
        db.session.query(func.count(Review.id), func.avg(Review.rating))
        .filter(
            Review.salon_id == salon_id,
            Review.is_visible.is_(True),
            Review.created_at >= since,
        )
        .one()
    )
    return {
        "total": count,
        "average_rating": round(float(average), 2) if count else 0,
    }


def _service_popularity(salon_id, since):
    rows = (
        db.session.query(
            Service.id,
            Service.name,
            func.count(Booking.id).label("bookings"),
            func.coalesce(func.sum(Booking.total_price), 0).label("revenue"),
        )
        .join(Booking, Booking.service_id == Service.id)
        .filter(Booking.salon_id == salon_id, Booking.created_at >= since)
        .group_by(Service.id, Service.name)
        .order_by(func.count(Booking.id).desc(), Service.id.asc())
        .limit(TOP_SERVICES)
        .all()
    )
    return [
        {
            "service_id": row.id,
            "name": row.name,
            "bookings": row.bookings,
            "revenue": round(float(row.revenue or 0), 2),
        }
        for row in rows
    ]


@analytics_bp.route("/salon", methods=["GET"])
@token_required
@roles_required("salon_owner", "admin")
def get_salon_analytics():
    """
    Activity summary for the current owner's salon
    ---
    tags:
      - Analytics
    parameters:
      - in: query
        name: period
        type: integer
        default: 30
        description: Look-back window in days (1-365)
    responses:
      200:
        description: Bookings, revenue, views, favorites, reviews and lifetime counters
      404:
        description: Owner has no salon
    """
    salon = get_owned_salon(g.current_user)

    period = parse_int(request.args.get("period")) or DEFAULT_PERIOD_DAYS
    period = max(1, min(period, MAX_PERIOD_DAYS))
    end = utcnow()
    since = end - timedelta(days=period)

    try:
        data = {
            "bookings": _booking_metrics(salon.id, since),
            "revenue": _revenue_metrics(salon.id, since),
            "views": _view_metrics(salon.id, since),
            "favorites": _favorite_metrics(salon.id, since),
            "reviews": _review_metrics(salon.id, since),
            "servicePopularity": _service_popularity(salon.id, since),
            "metrics": {
                "view_count": salon.view_count or 0,
                "booking_count": salon.booking_count or 0,
                "favorite_count": salon.favorite_count or 0,
                "rating_average": round(float(salon.rating_average or 0), 2),
                "rating_count": salon.rating_count or 0,
                "trending_score": float(salon.trending_score or 0),
            },
            "period": {
                "days": period,
                "start": since.isoformat(),
                "end": end.isoformat(),
            },
        }
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Analytics failed for salon {salon.id}: {e}")
        raise AppError("Failed to fetch analytics", 500, "ANALYTICS_ERROR")

    return jsonify({"success": True, "data": data})
