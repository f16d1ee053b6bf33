from app.errors import AppError
from app.extensions import db
from app.models import Salon


def get_owned_salon(user, required=True):
    """The salon owned by user (one per owner); 404 SALON_NOT_FOUND when required."""
    salon = db.session.query(Salon).filter(Salon.owner_id == user.id).first()
    if salon is None and required:
        raise AppError(
            "Salon not found. Create a salon profile first.", 404, "SALON_NOT_FOUND"
        )
    return salon


def require_salon_owner(user, salon):
    """Owners may only manage their own salon; admins may manage any."""
    if user.role == "admin":
        return
    if salon.owner_id != user.id:
        raise AppError("You do not manage this salon", 403, "FORBIDDEN")
