from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from app.auth import roles_required, token_required
from app.errors import AppError
from app.extensions import db
from app.models import Salon
from app.services.ownership import require_salon_owner
from app.utils.business_hours import normalize_business_hours, validate_business_hours

business_hours_bp = Blueprint("business_hours", __name__, url_prefix="/api/salon")


@business_hours_bp.route("/<int:salon_id>/business-hours", methods=["GET"])
def get_business_hours(salon_id):
    """
    Opening hours of a salon
    ---
    tags:
      - Business Hours
    parameters:
      - in: path
        name: salon_id
        type: integer
        required: true
    responses:
      200:
        description: Weekday -> {open, close} or {closed}
        schema:
          type: object
          properties:
            data:
              type: object
              properties:
                business_hours:
                  $ref: '#/definitions/BusinessHours'
      404:
        description: Salon not found
    """
    salon = db.session.get(Salon, salon_id)
    if not salon:
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")
    return jsonify(
        {"success": True, "data": {"business_hours": salon.business_hours or {}}}
    )


@business_hours_bp.route("/<int:salon_id>/business-hours", methods=["PUT"])
@token_required
@roles_required("salon_owner", "admin")
def update_business_hours(salon_id):
    """
    Replace a salon's opening hours
    ---
    tags:
      - Business Hours
    parameters:
      - in: path
        name: salon_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            business_hours:
              $ref: '#/definitions/BusinessHours'
    responses:
      200:
        description: Hours saved
      400:
        description: Invalid day, time format or range
      403:
        description: Not this salon's owner
      404:
        description: Salon not found
    """
    salon = db.session.get(Salon, salon_id)
    if not salon:
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")
    require_salon_owner(g.current_user, salon)

    payload = request.get_json(silent=True) or {}
    hours = payload.get("business_hours")
    errors = validate_business_hours(hours)
    if errors:
        raise AppError(errors[0], 400, "INVALID_BUSINESS_HOURS")

    try:
        salon.business_hours = normalize_business_hours(hours)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update business hours for {salon_id}: {e}")
        raise AppError(
            "Failed to update business hours", 500, "BUSINESS_HOURS_UPDATE_FAILED"
        )

    return jsonify(
        {
            "success": True,
            "message": "Business hours updated successfully",
            "data": {"business_hours": salon.business_hours},
        }
    )
