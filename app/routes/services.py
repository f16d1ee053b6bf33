from decimal import Decimal, InvalidOperation

from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from app.auth import roles_required, token_required
from app.errors import AppError
from app.extensions import db
from app.models import Service, ServiceCategory
from app.services.ownership import get_owned_salon
from app.utils.pagination import clamp_limit, clamp_page, offset_pagination
from app.utils.request_args import parse_int

services_bp = Blueprint("services", __name__, url_prefix="/api/services")

SERVICES_DEFAULT_LIMIT = 20


def _parse_price(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price < 0:
        return None
    return price.quantize(Decimal("0.01"))


def _parse_duration(value):
    if isinstance(value, bool):
        return None
    duration = parse_int(value)
    if duration is None or duration <= 0:
        return None
    return duration


def _category_id(payload):
    if payload.get("category_id") is None:
        return None
    category_id = parse_int(payload.get("category_id"))
    if category_id is None or not db.session.get(ServiceCategory, category_id):
        raise AppError("Unknown service category", 400, "VALIDATION_ERROR")
    return category_id


def _owned_service(service_id):
    salon = get_owned_salon(g.current_user)
    service = db.session.get(Service, service_id)
    if not service or service.salon_id != salon.id:
        raise AppError("Service not found", 404, "SERVICE_NOT_FOUND")
    return service


@services_bp.route("", methods=["GET"])
@token_required
@roles_required("salon_owner", "admin")
def get_services():
    """
    Services of the current owner's salon, newest first
    ---
    tags:
      - Services
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 20
    responses:
      200:
        description: Paginated services
      404:
        description: Owner has no salon
    """
    salon = get_owned_salon(g.current_user)
    page = clamp_page(parse_int(request.args.get("page")))
    limit = clamp_limit(parse_int(request.args.get("limit")), default=SERVICES_DEFAULT_LIMIT)

    try:
        query = db.session.query(Service).filter(Service.salon_id == salon.id)
        total = query.count()
        services = (
            query.order_by(Service.created_at.desc(), Service.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to fetch services for salon {salon.id}: {e}")
        raise AppError("Failed to fetch services", 500, "FETCH_FAILED")

    return jsonify(
        {
            "success": True,
            "data": [s.to_dict() for s in services],
            "pagination": offset_pagination(page, limit, total),
        }
    )


@services_bp.route("", methods=["POST"])
@token_required
@roles_required("salon_owner", "admin")
def create_service():
    """
    Add a service to the current owner's salon
    ---
    tags:
      - Services
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, price, duration]
          properties:
            name:
              type: string
            description:
              type: string
            price:
              type: number
            duration:
              type: integer
              description: Minutes, positive
            category_id:
              type: integer
    responses:
      201:
        description: Service created
        schema:
          $ref: '#/definitions/Service'
      400:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}

    name = (payload.get("name") or "").strip()
    if not name:
        raise AppError("Service name is required", 400, "VALIDATION_ERROR")
    price = _parse_price(payload.get("price"))
    if price is None:
        raise AppError("Valid price is required", 400, "VALIDATION_ERROR")
    duration = _parse_duration(payload.get("duration"))
    if duration is None:
        raise AppError("Valid duration is required", 400, "VALIDATION_ERROR")

    salon = get_owned_salon(g.current_user)
    category_id = _category_id(payload)

    try:
        service = Service(
            salon_id=salon.id,
            category_id=category_id,
            name=name,
            description=payload.get("description"),
            price=price,
            duration=duration,
            is_active=bool(payload.get("is_active", True)),
        )
        db.session.add(service)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create service: {e}")
        raise AppError("Failed to create service", 500, "CREATE_FAILED")

    return (
        jsonify(
            {
                "success": True,
                "message": "Service created successfully",
                "data": service.to_dict(),
            }
        ),
        201,
    )


@services_bp.route("/<int:service_id>", methods=["PUT"])
@token_required
@roles_required("salon_owner", "admin")
def update_service(service_id):
    """
    Update one of the owner's services
    ---
    tags:
      - Services
    parameters:
      - in: path
        name: service_id
        type: integer
        required: true
    responses:
      200:
        description: Updated service
      400:
        description: Validation error
      404:
        description: Not one of the owner's services
    """
    service = _owned_service(service_id)
    payload = request.get_json(silent=True) or {}

    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            raise AppError("Service name is required", 400, "VALIDATION_ERROR")
        service.name = name
    if "price" in payload:
        price = _parse_price(payload.get("price"))
        if price is None:
            raise AppError("Valid price is required", 400, "VALIDATION_ERROR")
        service.price = price
    if "duration" in payload:
        duration = _parse_duration(payload.get("duration"))
        if duration is None:
            raise AppError("Valid duration is required", 400, "VALIDATION_ERROR")
        service.duration = duration
    if "description" in payload:
        service.description = payload.get("description")
    if "category_id" in payload:
        service.category_id = _category_id(payload)
    if "is_active" in payload:
        service.is_active = bool(payload.get("is_active"))

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update service {service_id}: {e}")
        raise AppError("Failed to update service", 500, "UPDATE_FAILED")

    return jsonify(
        {
            "success": True,
            "message": "Service updated successfully",
            "data": service.to_dict(),
        }
    )


@services_bp.route("/<int:service_id>", methods=["DELETE"])
@token_required
@roles_required("salon_owner", "admin")
def delete_service(service_id):
    """
    Remove one of the owner's services (deactivated so past bookings keep it)
    ---
    tags:
      - Services
    parameters:
      - in: path
        name: service_id
        type: integer
        required: true
    responses:
      200:
        description: Service removed
      404:
        description: Not one of the owner's services
    """
    service = _owned_service(service_id)
    try:
        service.is_active = False
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete service {service_id}: {e}")
        raise AppError("Failed to delete service", 500, "DELETE_FAILED")

    return jsonify({"success": True, "message": "Service deleted successfully"})


@services_bp.route("/categories", methods=["GET"])
def get_service_categories():
    """
    Active service categories
    ---
    tags:
      - Services
    responses:
      200:
        description: Categories ordered by name
    """
    try:
        categories = (
            db.session.query(ServiceCategory)
            .filter(ServiceCategory.is_active.is_(True))
            .order_by(ServiceCategory.name.asc())
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to fetch categories: {e}")
        raise AppError("Failed to fetch categories", 500, "FETCH_FAILED")

    return jsonify({"success": True, "data": [c.to_dict() for c in categories]})
