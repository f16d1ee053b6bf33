from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.auth import token_required
from app.errors import AppError
from app.extensions import db
from app.models import Favorite, Salon
from app.services import tracking
from app.utils.request_args import parse_int

favorites_bp = Blueprint("favorites", __name__, url_prefix="/api/favorites")


def _find_favorite(user_id, salon_id):
    return (
        db.session.query(Favorite)
        .filter(Favorite.user_id == user_id, Favorite.salon_id == salon_id)
        .first()
    )


@favorites_bp.route("", methods=["GET"])
@token_required
def get_favorites():
    """
    The current user's favorite salons, newest first
    ---
    tags:
      - Favorites
    responses:
      200:
        description: Favorite salons
        schema:
          type: object
          properties:
            data:
              type: array
              items:
                $ref: '#/definitions/Salon'
    """
    rows = (
        db.session.query(Favorite, Salon)
        .join(Salon, Salon.id == Favorite.salon_id)
        .filter(Favorite.user_id == g.current_user.id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        .all()
    )

    data = []
    for favorite, salon in rows:
        item = salon.to_dict()
        item["favorited_at"] = (
            favorite.created_at.isoformat() if favorite.created_at else None
        )
        data.append(item)
    return jsonify({"success": True, "data": data})


@favorites_bp.route("", methods=["POST"])
@token_required
def add_favorite():
    """
    Favorite a salon
    ---
    tags:
      - Favorites
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            salon_id:
              type: integer
              description: Also accepted as salonId
    responses:
      201:
        description: Added
      400:
        description: salon_id missing
      404:
        description: Salon not found
      409:
        description: Already a favorite
    """
    payload = request.get_json(silent=True) or {}
    raw_id = payload.get("salon_id")
    if raw_id is None:
        raw_id = payload.get("salonId")
    salon_id = parse_int(raw_id)
    if salon_id is None:
        raise AppError("Salon ID is required", 400, "MISSING_SALON_ID")

    if not db.session.get(Salon, salon_id):
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")
    if _find_favorite(g.current_user.id, salon_id):
        raise AppError("Salon is already in favorites", 409, "ALREADY_FAVORITE")

    try:
        favorite = Favorite(user_id=g.current_user.id, salon_id=salon_id)
        db.session.add(favorite)
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent add of the same pair
        db.session.rollback()
        raise AppError("Salon is already in favorites", 409, "ALREADY_FAVORITE")
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to add favorite: {e}")
        raise AppError("Failed to add favorite", 500, "FAVORITE_ADD_FAILED")

    tracking.increment_favorite_count(db.session, salon_id)
    return (
        jsonify(
            {
                "success": True,
                "message": "Salon added to favorites",
                "data": {"id": favorite.id, "salon_id": salon_id},
            }
        ),
        201,
    )


@favorites_bp.route("/<int:salon_id>", methods=["DELETE"])
@token_required
def remove_favorite(salon_id):
    """
    Unfavorite a salon
    ---
    tags:
      - Favorites
    parameters:
      - in: path
        name: salon_id
        type: integer
        required: true
    responses:
      200:
        description: Removed
      404:
        description: Not a favorite
    """
    favorite = _find_favorite(g.current_user.id, salon_id)
    if not favorite:
        raise AppError("Favorite not found", 404, "FAVORITE_NOT_FOUND")

    try:
        db.session.delete(favorite)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to remove favorite: {e}")
        raise AppError("Failed to remove favorite", 500, "FAVORITE_REMOVE_FAILED")

    tracking.decrement_favorite_count(db.session, salon_id)
    return jsonify({"success": True, "message": "Salon removed from favorites"})


@favorites_bp.route("/check/<int:salon_id>", methods=["GET"])
@token_required
def check_favorite(salon_id):
    """
    Whether a salon is one of the user's favorites
    ---
    tags:
      - Favorites
    parameters:
      - in: path
        name: salon_id
        type: integer
        required: true
    responses:
      200:
        description: "{is_favorite: bool}"
    """
    is_favorite = _find_favorite(g.current_user.id, salon_id) is not None
    return jsonify({"success": True, "data": {"is_favorite": is_favorite}})
