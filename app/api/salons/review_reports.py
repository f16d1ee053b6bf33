# Reports against reviews, queued for moderation

from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.auth import token_required
from app.errors import AppError
from app.extensions import db
from app.models import REPORT_REASONS, Review, ReviewReport

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

REPORT_EXISTS_MESSAGE = "You have already reported this review"


@reports_bp.route("/review/<int:review_id>", methods=["POST"])
@token_required
def submit_review_report(review_id):
    """
    Report a review
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
          required: [reason]
          properties:
            reason:
              type: string
              enum: [spam, harassment, inappropriate, fake, hateful, suicidal, other]
            description:
              type: string
    responses:
      201:
        description: Report submitted with status pending
      400:
        description: Missing or invalid reason, or own review
      404:
        description: Review not found
      409:
        description: Already reported by this user
    """
    payload = request.get_json(silent=True) or {}
    reason = payload.get("reason")
    if not reason:
        raise AppError("Report reason is required", 400, "MISSING_REASON")
    if reason not in REPORT_REASONS:
        raise AppError("Invalid report reason", 400, "INVALID_REASON")

    review = db.session.get(Review, review_id)
    if not review:
        raise AppError("Review not found", 404, "REVIEW_NOT_FOUND")

    user = g.current_user
    if review.client_id == user.id:
        raise AppError(
            "You cannot report your own review", 400, "CANNOT_REPORT_SELF"
        )

    existing = (
        db.session.query(ReviewReport.id)
        .filter(
            ReviewReport.review_id == review_id, ReviewReport.reporter_id == user.id
        )
        .first()
    )
    if existing:
        raise AppError(REPORT_EXISTS_MESSAGE, 409, "REPORT_ALREADY_EXISTS")

    description = payload.get("description")
    if isinstance(description, str):
        description = description.strip() or None
    else:
        description = None

    try:
        report = ReviewReport(
            review_id=review_id,
            reporter_id=user.id,
            reportee_id=review.client_id,
            reason=reason,
            description=description,
            status="pending",
        )
        db.session.add(report)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise AppError(REPORT_EXISTS_MESSAGE, 409, "REPORT_ALREADY_EXISTS")
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create report for review {review_id}: {e}")
        raise AppError("Failed to submit report", 500, "REPORT_CREATION_FAILED")

    current_app.logger.info(
        f"Review {review_id} reported by user {user.id} for {reason}"
    )
    return jsonify({"success": True, "data": {"report": report.to_dict()}}), 201
