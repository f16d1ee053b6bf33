"""
Swagger/OpenAPI configuration for the SalonTime API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "SalonTime API",
        "description": "REST API for the SalonTime booking platform: salon search, services, bookings, payments, favorites, reviews and analytics",
        "contact": {"email": "support@salontime.app"},
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Salons", "description": "Salon search, profiles and discovery"},
        {"name": "Services", "description": "Service management"},
        {"name": "Business Hours", "description": "Salon opening hours"},
        {"name": "Bookings", "description": "Booking lifecycle and availability"},
        {"name": "Payments", "description": "Stripe payment intents and webhooks"},
        {"name": "Favorites", "description": "Favorite salons"},
        {"name": "Reviews", "description": "Review management"},
        {"name": "Analytics", "description": "Salon owner analytics"},
        {"name": "Utility", "description": "Health and status"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "success": {"type": "boolean", "example": False},
                "error": {"type": "string"},
                "code": {"type": "string", "example": "SALON_NOT_FOUND"},
            },
        },
        "Pagination": {
            "type": "object",
            "properties": {
                "page": {"type": "integer", "example": 1},
                "limit": {"type": "integer", "example": 50},
                "total": {"type": "integer", "example": 15},
                "hasMore": {"type": "boolean", "example": False},
            },
        },
        "Salon": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "business_name": {"type": "string"},
                "description": {"type": "string"},
                "address": {"type": "string"},
                "city": {"type": "string"},
                "zip_code": {"type": "string"},
                "latitude": {"type": "number", "format": "float"},
                "longitude": {"type": "number", "format": "float"},
                "business_hours": {"type": "object"},
                "rating_average": {"type": "number", "format": "float"},
                "rating_count": {"type": "integer"},
                "is_featured": {"type": "boolean"},
                "trending_score": {"type": "number", "format": "float"},
                "distance": {
                    "type": "number",
                    "format": "float",
                    "description": "Kilometres from the search center, when one was given",
                },
            },
        },
        "Service": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "salon_id": {"type": "integer"},
                "category_id": {"type": "integer"},
                "name": {"type": "string"},
                "price": {"type": "number", "format": "float"},
                "duration": {"type": "integer"},
                "is_active": {"type": "boolean"},
            },
        },
        "Booking": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "client_id": {"type": "integer"},
                "salon_id": {"type": "integer"},
                "service_id": {"type": "integer"},
                "staff_id": {"type": "integer"},
                "appointment_date": {"type": "string", "format": "date"},
                "start_time": {"type": "string", "example": "10:00"},
                "end_time": {"type": "string", "example": "10:45"},
                "status": {
                    "type": "string",
                    "enum": ["pending", "confirmed", "completed", "cancelled", "no_show"],
                },
                "total_price": {"type": "number", "format": "float"},
                "payment_status": {"type": "string", "enum": ["unpaid", "paid", "failed"]},
            },
        },
        "Review": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "salon_id": {"type": "integer"},
                "booking_id": {"type": "integer"},
                "rating": {"type": "integer", "minimum": 1, "maximum": 5},
                "comment": {"type": "string"},
                "owner_reply": {"type": "string"},
                "created_at": {"type": "string", "format": "date-time"},
            },
        },
        "BusinessHours": {
            "type": "object",
            "example": {
                "monday": {"open": "09:00", "close": "18:00"},
                "sunday": {"closed": True},
            },
        },
    },
}
