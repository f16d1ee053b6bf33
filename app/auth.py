import datetime
from functools import wraps

import jwt
from flask import current_app, g, request

from app.errors import AppError
from app.extensions import db
from app.models import UserProfile


def create_access_token(user, expires_hours=None):
    """Mint an HS256 bearer token for a UserProfile."""
    hours = expires_hours or current_app.config.get("JWT_EXPIRES_HOURS", 24)
    payload = {
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(hours=hours),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def _bearer_token():
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


def _load_user(token):
    try:
        payload = jwt.decode(
            token, current_app.config["SECRET_KEY"], algorithms=["HS256"]
        )
    except jwt.ExpiredSignatureError:
        raise AppError("Token has expired", 401, "TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AppError("Invalid token", 401, "INVALID_TOKEN")

    user_id = payload.get("user_id")
    if user_id is None:
        raise AppError("Invalid token", 401, "INVALID_TOKEN")

    user = db.session.get(UserProfile, user_id)
    if not user:
        raise AppError("User not found", 401, "USER_NOT_FOUND")
    return user


def token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise AppError("Access token required", 401, "MISSING_TOKEN")
        g.current_user = _load_user(token)
        return f(*args, **kwargs)

    return decorated


def optional_token(f):
    """Attach g.current_user when a valid token is sent, else None."""

    @wraps(f)
    def decorated(*args, **kwargs):
        g.current_user = None
        token = _bearer_token()
        if token:
            try:
                g.current_user = _load_user(token)
            except AppError:
                g.current_user = None
        return f(*args, **kwargs)

    return decorated


def roles_required(*roles):
    """Must be stacked under token_required."""

    def wrapper(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None or user.role not in roles:
                raise AppError("Insufficient permissions", 403, "FORBIDDEN")
            return f(*args, **kwargs)

        return decorated

    return wrapper
