from datetime import datetime

from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from app.auth import optional_token, roles_required, token_required
from app.errors import AppError
from app.extensions import db
from app.models import Salon, Service
from app.services import tracking
from app.services.ownership import get_owned_salon
from app.services.recommendations import RecommendationService
from app.services.salon_search import SalonSearchService, SearchParams
from app.utils.business_hours import normalize_business_hours, validate_business_hours
from app.utils.geo import bounding_box, distance_from
from app.utils.pagination import clamp_limit
from app.utils.request_args import first_arg, parse_float, parse_int

salons_bp = Blueprint("salons", __name__, url_prefix="/api/salons")

NEARBY_DEFAULT_RADIUS_KM = 10
NEARBY_MAX_RESULTS = 20
POPULAR_MAX_RESULTS = 10
RECOMMENDATIONS_DEFAULT_LIMIT = 20

REQUIRED_SALON_FIELDS = ("business_name", "city", "state", "zip_code")
EDITABLE_SALON_FIELDS = (
    "business_name",
    "description",
    "address",
    "city",
    "state",
    "zip_code",
    "country",
    "phone",
    "email",
    "website",
)


def _now():
    """Local wall-clock time used for the open-now filter."""
    return datetime.now()


def _salon_payload(data):
    """Accept `name` as an alias of `business_name`."""
    payload = dict(data or {})
    if "business_name" not in payload and "name" in payload:
        payload["business_name"] = payload.pop("name")
    return payload


def _coordinates(payload):
    """(lat, lng) from a payload, both or neither; 400 otherwise."""
    has_lat = payload.get("latitude") is not None
    has_lng = payload.get("longitude") is not None
    if not has_lat and not has_lng:
        return None
    lat, lng = parse_float(payload.get("latitude")), parse_float(payload.get("longitude"))
    if lat is None or lng is None or not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise AppError(
            "latitude and longitude must be given together as valid coordinates",
            400,
            "INVALID_COORDINATES",
        )
    return lat, lng


def _validated_hours(payload):
    hours = payload.get("business_hours")
    if hours is None:
        return None
    errors = validate_business_hours(hours)
    if errors:
        raise AppError(errors[0], 400, "INVALID_BUSINESS_HOURS")
    return normalize_business_hours(hours)


# -----------------------------------------------------------------------------
# SALON SEARCH
# -----------------------------------------------------------------------------
@salons_bp.route("/search", methods=["GET"])
def search_salons():
    """
    Search salons by text, city, rating, distance, services, price and flags
    ---
    tags:
      - Salons
    parameters:
      - in: query
        name: q
        type: string
        description: Text matched against name, description, city, address and service names (alias search)
      - in: query
        name: city
        type: string
        description: City substring (alias location)
      - in: query
        name: lat
        type: number
        description: Search center latitude (alias latitude)
      - in: query
        name: lng
        type: number
        description: Search center longitude (aliases lon, longitude)
      - in: query
        name: max_distance
        type: number
        description: Maximum distance in km (aliases maxDistance, distance)
      - in: query
        name: min_distance
        type: number
        description: Minimum distance in km (alias minDistance)
      - in: query
        name: min_rating
        type: number
        description: Minimum rating average (aliases minRating, rating)
      - in: query
        name: services
        type: string
        description: Comma separated service or category names (aliases service, category)
      - in: query
        name: min_price
        type: number
      - in: query
        name: max_price
        type: number
      - in: query
        name: sort
        type: string
        enum: [distance, rating, name, created_at, newest]
      - in: query
        name: featured
        type: boolean
      - in: query
        name: trending
        type: boolean
      - in: query
        name: new_only
        type: boolean
      - in: query
        name: popular_only
        type: boolean
      - in: query
        name: open_now
        type: boolean
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 50
    responses:
      200:
        description: One page of matching salons
        schema:
          type: object
          properties:
            success:
              type: boolean
            data:
              type: array
              items:
                $ref: '#/definitions/Salon'
            pagination:
              $ref: '#/definitions/Pagination'
      500:
        description: Search failed
        schema:
          $ref: '#/definitions/Error'
    """
    params = SearchParams.from_args(request.args)
    service = SalonSearchService(
        db.session,
        clock=_now,
        max_candidates=current_app.config.get("SEARCH_MAX_CANDIDATES", 1000),
    )
    data, pagination = service.search(params)
    current_app.logger.info(
        f"Salon search returned {len(data)} of {pagination['total']} "
        f"(page {pagination['page']})"
    )
    return jsonify({"success": True, "data": data, "pagination": pagination})


# -----------------------------------------------------------------------------
# DISCOVERY
# -----------------------------------------------------------------------------
@salons_bp.route("/nearby", methods=["GET"])
def get_nearby_salons():
    """
    Salons within a radius of a point, nearest first
    ---
    tags:
      - Salons
    parameters:
      - in: query
        name: latitude
        type: number
        required: true
      - in: query
        name: longitude
        type: number
        required: true
      - in: query
        name: radius
        type: number
        default: 10
        description: Radius in km
    responses:
      200:
        description: Up to 20 salons sorted by distance
      400:
        description: Coordinates missing
        schema:
          $ref: '#/definitions/Error'
    """
    lat = parse_float(first_arg(request.args, "latitude", "lat"))
    lng = parse_float(first_arg(request.args, "longitude", "lng", "lon"))
    if lat is None or lng is None:
        raise AppError("Latitude and longitude are required", 400, "MISSING_COORDINATES")

    radius = parse_float(request.args.get("radius"))
    if radius is None or radius <= 0:
        radius = NEARBY_DEFAULT_RADIUS_KM

    box = bounding_box(lat, lng, radius)
    try:
        candidates = (
            db.session.query(Salon)
            .filter(
                Salon.is_active.is_(True),
                Salon.latitude.isnot(None),
                Salon.longitude.isnot(None),
                Salon.latitude.between(box.min_lat, box.max_lat),
                Salon.longitude.between(box.min_lng, box.max_lng),
            )
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Nearby salon lookup failed: {e}")
        raise AppError("Failed to fetch nearby salons", 500, "NEARBY_SALONS_FAILED")

    nearby = []
    for salon in candidates:
        distance = distance_from(lat, lng, salon)
        if distance is not None and distance <= radius:
            nearby.append((distance, salon.id, salon))
    nearby.sort(key=lambda item: (item[0], item[1]))

    data = []
    for distance, _, salon in nearby[:NEARBY_MAX_RESULTS]:
        item = salon.to_dict()
        item["distance"] = round(distance, 2)
        data.append(item)

    return jsonify({"success": True, "data": data})


@salons_bp.route("/popular", methods=["GET"])
def get_popular_salons():
    """
    Top rated active salons
    ---
    tags:
      - Salons
    responses:
      200:
        description: Up to 10 salons by rating average, then rating count
    """
    try:
        salons = (
            db.session.query(Salon)
            .filter(Salon.is_active.is_(True))
            .order_by(
                Salon.rating_average.desc(), Salon.rating_count.desc(), Salon.id.asc()
            )
            .limit(POPULAR_MAX_RESULTS)
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Popular salon lookup failed: {e}")
        raise AppError("Failed to fetch popular salons", 500, "POPULAR_SALONS_FAILED")

    return jsonify({"success": True, "data": [s.to_dict() for s in salons]})


@salons_bp.route("/recommendations/personalized", methods=["GET"])
@token_required
def get_personalized_recommendations():
    """
    Salons recommended from the caller's favorites and bookings
    ---
    tags:
      - Salons
    parameters:
      - in: query
        name: latitude
        type: number
        description: Optional center (alias lat)
      - in: query
        name: longitude
        type: number
        description: Optional center (aliases lng, lon)
      - in: query
        name: radius
        type: number
        default: 50
        description: Radius in km, used with a center
      - in: query
        name: limit
        type: integer
        default: 20
    responses:
      200:
        description: Recommended salons; personalized is false when popular salons were returned instead
      401:
        description: Authentication required
    """
    lat = parse_float(first_arg(request.args, "latitude", "lat"))
    lng = parse_float(first_arg(request.args, "longitude", "lng", "lon"))
    if lat is None or lng is None:
        lat = lng = None
    radius = parse_float(request.args.get("radius"))
    if radius is not None and radius <= 0:
        radius = None
    limit = clamp_limit(
        parse_int(request.args.get("limit")), default=RECOMMENDATIONS_DEFAULT_LIMIT
    )

    try:
        rows, personalized = RecommendationService(db.session).recommend(
            g.current_user.id, limit, lat, lng, radius
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Recommendations failed: {e}")
        raise AppError(
            "Failed to fetch recommendations", 500, "RECOMMENDATIONS_FAILED"
        )

    data = []
    for salon, distance, score in rows:
        item = salon.to_dict()
        item["distance"] = round(distance, 2) if distance is not None else None
        item["recommendation_score"] = score
        data.append(item)

    return jsonify({"success": True, "data": data, "personalized": personalized})


# -----------------------------------------------------------------------------
# OWNER'S SALON
# -----------------------------------------------------------------------------
@salons_bp.route("", methods=["POST"])
@token_required
@roles_required("salon_owner", "admin")
def create_salon():
    """
    Create the current owner's salon
    ---
    tags:
      - Salons
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [business_name, city, state, zip_code]
          properties:
            business_name:
              type: string
            description:
              type: string
            address:
              type: string
            city:
              type: string
            state:
              type: string
            zip_code:
              type: string
            latitude:
              type: number
            longitude:
              type: number
            business_hours:
              $ref: '#/definitions/BusinessHours'
    responses:
      201:
        description: Salon created
      400:
        description: Missing or invalid fields
      409:
        description: Owner already has a salon
    """
    payload = _salon_payload(request.get_json(silent=True))

    for field in REQUIRED_SALON_FIELDS:
        value = payload.get(field)
        if value is None or not str(value).strip():
            label = "name" if field == "business_name" else field
            raise AppError(
                f"Salon {label} is required", 400, f"MISSING_{label.upper()}"
            )

    if get_owned_salon(g.current_user, required=False):
        raise AppError("You already have a salon", 409, "SALON_ALREADY_EXISTS")

    coords = _coordinates(payload)
    hours = _validated_hours(payload)

    try:
        salon = Salon(owner_id=g.current_user.id)
        for field in EDITABLE_SALON_FIELDS:
            if payload.get(field) is not None:
                setattr(salon, field, str(payload[field]).strip())
        if coords:
            salon.latitude, salon.longitude = coords
        if hours is not None:
            salon.business_hours = hours

        db.session.add(salon)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create salon: {e}")
        raise AppError("Failed to create salon", 500, "SALON_CREATE_FAILED")

    current_app.logger.info(f"Salon {salon.id} created by user {g.current_user.id}")
    return (
        jsonify(
            {
                "success": True,
                "message": "Salon created successfully",
                "data": salon.to_dict(),
            }
        ),
        201,
    )


@salons_bp.route("/my/salon", methods=["GET"])
@token_required
def get_my_salon():
    """
    The current owner's salon
    ---
    tags:
      - Salons
    responses:
      200:
        description: Salon profile
      404:
        description: No salon yet
    """
    salon = get_owned_salon(g.current_user)
    return jsonify({"success": True, "data": salon.to_dict()})


@salons_bp.route("/my/salon", methods=["PUT"])
@token_required
def update_my_salon():
    """
    Partially update the current owner's salon
    ---
    tags:
      - Salons
    responses:
      200:
        description: Updated salon
      400:
        description: Invalid coordinates or hours
      404:
        description: No salon yet
    """
    salon = get_owned_salon(g.current_user)
    payload = _salon_payload(request.get_json(silent=True))

    for field in REQUIRED_SALON_FIELDS:
        if field in payload and not str(payload[field] or "").strip():
            label = "name" if field == "business_name" else field
            raise AppError(
                f"Salon {label} cannot be empty", 400, f"MISSING_{label.upper()}"
            )

    coords = _coordinates(payload)
    hours = _validated_hours(payload)

    try:
        for field in EDITABLE_SALON_FIELDS:
            if field in payload:
                value = payload[field]
                setattr(salon, field, str(value).strip() if value is not None else None)
        if coords:
            salon.latitude, salon.longitude = coords
        if hours is not None:
            salon.business_hours = hours
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update salon {salon.id}: {e}")
        raise AppError("Failed to update salon", 500, "SALON_UPDATE_FAILED")

    return jsonify(
        {
            "success": True,
            "message": "Salon updated successfully",
            "data": salon.to_dict(),
        }
    )


@salons_bp.route("/my/salon", methods=["DELETE"])
@token_required
def deactivate_my_salon():
    """
    Deactivate the current owner's salon (kept, hidden from search)
    ---
    tags:
      - Salons
    responses:
      200:
        description: Salon deactivated
      404:
        description: No salon yet
    """
    salon = get_owned_salon(g.current_user)
    try:
        salon.is_active = False
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to deactivate salon {salon.id}: {e}")
        raise AppError("Failed to deactivate salon", 500, "SALON_UPDATE_FAILED")

    return jsonify({"success": True, "message": "Salon deactivated successfully"})


# -----------------------------------------------------------------------------
# SALON DETAILS
# -----------------------------------------------------------------------------
@salons_bp.route("/<int:salon_id>", methods=["GET"])
def get_salon(salon_id):
    """
    Get an active salon by id
    ---
    tags:
      - Salons
    parameters:
      - in: path
        name: salon_id
        type: integer
        required: true
    responses:
      200:
        description: Salon details
        schema:
          $ref: '#/definitions/Salon'
      404:
        description: Salon not found
        schema:
          $ref: '#/definitions/Error'
    """
    salon = db.session.get(Salon, salon_id)
    if not salon or not salon.is_active:
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")
    return jsonify({"success": True, "data": salon.to_dict()})


@salons_bp.route("/<int:salon_id>/services", methods=["GET"])
def get_salon_services(salon_id):
    """
    Active services offered by a salon
    ---
    tags:
      - Salons
    parameters:
      - in: path
        name: salon_id
        type: integer
        required: true
    responses:
      200:
        description: Services list
        schema:
          type: object
          properties:
            data:
              type: array
              items:
                $ref: '#/definitions/Service'
      403:
        description: Salon is not active
      404:
        description: Salon not found
    """
    salon = db.session.get(Salon, salon_id)
    if not salon:
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")
    if not salon.is_active:
        raise AppError("Salon is not active", 403, "SALON_NOT_ACTIVE")

    services = (
        db.session.query(Service)
        .filter(Service.salon_id == salon_id, Service.is_active.is_(True))
        .order_by(Service.name.asc(), Service.id.asc())
        .all()
    )
    return jsonify({"success": True, "data": [s.to_dict() for s in services]})


@salons_bp.route("/<int:salon_id>/track-view", methods=["POST"])
@optional_token
def track_salon_view(salon_id):
    """
    Record a profile view
    ---
    tags:
      - Salons
    parameters:
      - in: path
        name: salon_id
        type: integer
        required: true
    responses:
      200:
        description: View recorded (best effort)
      404:
        description: Salon not found
    """
    salon = db.session.get(Salon, salon_id)
    if not salon:
        raise AppError("Salon not found", 404, "SALON_NOT_FOUND")

    user = g.current_user
    tracking.record_view(db.session, salon_id, user.id if user else None)
    return jsonify({"success": True, "message": "View tracked"})
