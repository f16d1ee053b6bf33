# Reviews, owner replies, salon rating upkeep

import datetime

from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.auth import roles_required, token_required
from app.errors import AppError
from app.extensions import db
from app.models import Booking, Review, Salon, utcnow
from app.services.ownership import require_salon_owner
from app.utils.pagination import clamp_limit
from app.utils.request_args import parse_float, parse_int

reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")

REVIEWS_DEFAULT_LIMIT = 20


def _now():
    return datetime.datetime.now()


def _parse_rating(value):
    if isinstance(value, bool):
        return None
    number = parse_float(value)
    if number is None or number != int(number):
        return None
    rating = int(number)
    return rating if 1 <= rating <= 5 else None


def _booking_is_past(booking):
    if booking.status == "completed":
        return True
    starts_at = datetime.datetime.combine(booking.appointment_date, booking.start_time)
    return starts_at < _now()


def _review_dict(review):
    data = review.to_dict()
    client = review.client
    data["client"] = (
        {"id": client.id, "name": client.full_name, "avatar_url": client.avatar_url}
        if client
        else None
    )
    return data


def update_salon_rating(session, salon_id):
    """Recompute rating_average/rating_count from visible reviews."""
    count, average = (
        session.query(func.count(Review.id), func.avg(Review.rating))
        .filter(Review.salon_id == salon_id, Review.is_visible.is_(True))
        .one()
    )
    salon = session.get(Salon, salon_id)
    if salon is None:
        return None
    salon.rating_count = int(count or 0)
    salon.rating_average = round(float(average), 2) if count else 0.0
    session.commit()
    return salon


def _get_own_review(review_id):
    review = db.session.get(Review, review_id)
    if not review or not review.is_visible or review.client_id != g.current_user.id:
        raise AppError(
            "Review not found or you do not have permission to change it",
            404,
            "REVIEW_NOT_FOUND",
        )
    return review


@reviews_bp.route("/salon/<int:salon_id>", methods=["GET"])
def get_salon_reviews(salon_id):
    """
    Visible reviews for a salon with rating stats
    ---
    tags:
      - Reviews
    parameters:
      - in: path
        name: salon_id
        type: integer
        required: true
      - in: query
        name: limit
        type: integer
        default: 20
      - in: query
        name: offset
        type: integer
        default: 0
    responses:
      200:
        description: Reviews and stats
        schema:
          type: object
          properties:
            data:
              type: object
              properties:
                reviews:
                  type: array
                  items:
                    $ref: '#/definitions/Review'
                stats:
                  type: object
                  properties:
                    average_rating:
                      type: number
                    total_reviews:
                      type: integer
      404:
        description: Salon not found
    """
    if not db.session.get(Salon, salon_id):
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")

    limit = clamp_limit(parse_int(request.args.get("limit")), default=REVIEWS_DEFAULT_LIMIT)
    offset = max(0, parse_int(request.args.get("offset")) or 0)

    try:
        visible = db.session.query(Review).filter(
            Review.salon_id == salon_id, Review.is_visible.is_(True)
        )
        reviews = (
            visible.order_by(Review.created_at.desc(), Review.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        count, average = (
            db.session.query(func.count(Review.id), func.avg(Review.rating))
            .filter(Review.salon_id == salon_id, Review.is_visible.is_(True))
            .one()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to fetch reviews for salon {salon_id}: {e}")
        raise AppError("Failed to fetch reviews", 500, "REVIEWS_FETCH_FAILED")

    return jsonify(
        {
            "success": True,
            "data": {
                "reviews": [_review_dict(r) for r in reviews],
                "stats": {
                    "average_rating": round(float(average), 2) if count else 0,
                    "total_reviews": int(count or 0),
                },
            },
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total": int(count or 0),
                "hasMore": offset + limit < int(count or 0),
            },
        }
    )


@reviews_bp.route("", methods=["POST"])
@token_required
def create_review():
    """
    Review a salon
    ---
    tags:
      - Reviews
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [salon_id, rating]
          properties:
            salon_id:
              type: integer
            booking_id:
              type: integer
            rating:
              type: integer
              minimum: 1
              maximum: 5
            comment:
              type: string
    responses:
      201:
        description: Review created
      400:
        description: Invalid rating or booking not eligible
      404:
        description: Booking not found
      409:
        description: Booking already reviewed
    """
    payload = request.get_json(silent=True) or {}
    salon_id = parse_int(payload.get("salon_id"))
    if salon_id is None or payload.get("rating") is None:
        raise AppError(
            "Salon ID and rating are required", 400, "MISSING_REQUIRED_FIELDS"
        )
    rating = _parse_rating(payload.get("rating"))
    if rating is None:
        raise AppError("Rating must be between 1 and 5", 400, "INVALID_RATING")

    salon = db.session.get(Salon, salon_id)
    if not salon:
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")

    user = g.current_user
    booking_id = parse_int(payload.get("booking_id"))
    if booking_id is not None:
        booking = db.session.get(Booking, booking_id)
        if not booking or booking.client_id != user.id:
            raise AppError(
                "Booking not found or does not belong to you",
                404,
                "BOOKING_NOT_FOUND",
            )
        if booking.salon_id != salon_id:
            raise AppError(
                "Booking does not belong to this salon", 400, "INVALID_SALON"
            )
        if not _booking_is_past(booking):
            raise AppError(
                "You can only review completed or past bookings",
                400,
                "BOOKING_NOT_COMPLETED",
            )
        existing = (
            db.session.query(Review.id).filter(Review.booking_id == booking_id).first()
        )
        if existing:
            raise AppError(
                "Review already exists for this booking", 409, "REVIEW_ALREADY_EXISTS"
            )
    else:
        completed = (
            db.session.query(Booking.id)
            .filter(
                Booking.client_id == user.id,
                Booking.salon_id == salon_id,
                Booking.status == "completed",
            )
            .first()
        )
        if not completed:
            raise AppError(
                "You can only review salons you have completed bookings with",
                400,
                "NO_COMPLETED_BOOKINGS",
            )

    comment = payload.get("comment")
    try:
        review = Review(
            client_id=user.id,
            salon_id=salon_id,
            booking_id=booking_id,
            rating=rating,
            comment=comment.strip() if isinstance(comment, str) else None,
            is_visible=True,
        )
        db.session.add(review)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise AppError(
            "Review already exists for this booking", 409, "REVIEW_ALREADY_EXISTS"
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create review: {e}")
        raise AppError("Failed to create review", 500, "REVIEW_CREATION_FAILED")

    update_salon_rating(db.session, salon_id)
    return (
        jsonify(
            {
                "success": True,
                "message": "Review created successfully",
                "data": _review_dict(review),
            }
        ),
        201,
    )


@reviews_bp.route("/<int:review_id>", methods=["PUT"])
@token_required
def update_review(review_id):
    """
    Edit one of your reviews
    ---
    tags:
      - Reviews
    parameters:
      - in: path
        name: review_id
        type: integer
        required: true
    responses:
      200:
        description: Review updated
      400:
        description: Invalid rating
      404:
        description: Not your review
    """
    review = _get_own_review(review_id)
    payload = request.get_json(silent=True) or {}

    if "rating" in payload:
        rating = _parse_rating(payload.get("rating"))
        if rating is None:
            raise AppError("Rating must be between 1 and 5", 400, "INVALID_RATING")
        review.rating = rating
    if "comment" in payload:
        comment = payload.get("comment")
        review.comment = comment.strip() if isinstance(comment, str) else None

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update review {review_id}: {e}")
        raise AppError("Failed to update review", 500, "REVIEW_UPDATE_FAILED")

    update_salon_rating(db.session, review.salon_id)
    return jsonify(
        {
            "success": True,
            "message": "Review updated successfully",
            "data": _review_dict(review),
        }
    )


@reviews_bp.route("/<int:review_id>", methods=["DELETE"])
@token_required
def delete_review(review_id):
    """
    Hide one of your reviews
    ---
    tags:
      - Reviews
    parameters:
      - in: path
        name: review_id
        type: integer
        required: true
    responses:
      200:
        description: Review removed
      404:
        description: Not your review
    """
    review = _get_own_review(review_id)
    salon_id = review.salon_id
    try:
        review.is_visible = False
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete review {review_id}: {e}")
        raise AppError("Failed to delete review", 500, "REVIEW_DELETE_FAILED")

    update_salon_rating(db.session, salon_id)
    return jsonify({"success": True, "message": "Review deleted successfully"})


@reviews_bp.route("/my", methods=["GET"])
@token_required
def get_my_reviews():
    """
    Reviews written by the current user
    ---
    tags:
      - Reviews
    responses:
      200:
        description: Visible reviews, newest first
    """
    reviews = (
        db.session.query(Review)
        .filter(Review.client_id == g.current_user.id, Review.is_visible.is_(True))
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    data = []
    for review in reviews:
        item = _review_dict(review)
        item["salon"] = (
            {"id": review.salon.id, "business_name": review.salon.business_name}
            if review.salon
            else None
        )
        data.append(item)
    return jsonify({"success": True, "data": data})


@reviews_bp.route("/booking/<int:booking_id>/can-review", methods=["GET"])
@token_required
def can_review_booking(booking_id):
    """
    Whether a booking can still be reviewed
    ---
    tags:
      - Reviews
    parameters:
      - in: path
        name: booking_id
        type: integer
        required: true
    responses:
      200:
        description: "{can_review, has_review, is_past, booking_status}"
      404:
        description: Not your booking
    """
    booking = db.session.get(Booking, booking_id)
    if not booking or booking.client_id != g.current_user.id:
        raise AppError("Booking not found", 404, "BOOKING_NOT_FOUND")

    is_past = _booking_is_past(booking)
    has_review = (
        db.session.query(Review.id).filter(Review.booking_id == booking_id).first()
        is not None
    )
    return jsonify(
        {
            "success": True,
            "data": {
                "can_review": is_past and not has_review,
                "has_review": has_review,
                "is_past": is_past,
                "booking_status": booking.status,
            },
        }
    )


@reviews_bp.route("/<int:review_id>/reply", methods=["POST"])
@token_required
@roles_required("salon_owner", "admin")
def reply_to_review(review_id):
    """
    Salon owner reply to a review (replaces any earlier reply)
    ---
    tags:
      - Reviews
    parameters:
      - in: path
        name: review_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [reply]
          properties:
            reply:
              type: string
    responses:
      200:
        description: Reply saved
      400:
        description: Empty reply
      403:
        description: Not this salon's owner
      404:
        description: Review not found
    """
    payload = request.get_json(silent=True) or {}
    reply = payload.get("reply")
    if not isinstance(reply, str) or not reply.strip():
        raise AppError("Reply text is required", 400, "MISSING_REPLY")

    review = db.session.get(Review, review_id)
    if not review or not review.is_visible:
        raise AppError("Review not found", 404, "REVIEW_NOT_FOUND")
    require_salon_owner(g.current_user, review.salon)

    try:
        review.owner_reply = reply.strip()
        review.owner_reply_at = utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create review reply: {e}")
        raise AppError("Failed to save reply", 500, "REVIEW_REPLY_FAILED")

    return jsonify(
        {
            "success": True,
            "message": "Reply saved successfully",
            "data": _review_dict(review),
        }
    )
