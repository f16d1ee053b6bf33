from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKeyConstraint,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled", "no_show")
PAYMENT_STATUSES = ("unpaid", "paid", "failed")
USER_ROLES = ("client", "salon_owner", "admin")
REPORT_REASONS = (
    "spam",
    "harassment",
    "inappropriate",
    "fake",
    "hateful",
    "suicidal",
    "other",
)


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserProfile(Base):
    __tablename__ = "user_profiles"
    __table_args__ = (Index("uq_user_profiles_email", "email", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    email = mapped_column(String(255), nullable=False)
    role = mapped_column(String(20), nullable=False, default="client")
    first_name = mapped_column(String(100))
    last_name = mapped_column(String(100))
    phone = mapped_column(String(30))
    avatar_url = mapped_column(Text)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    salon: Mapped[List["Salon"]] = relationship(
        "Salon", uselist=True, back_populates="owner"
    )
    bookings: Mapped[List["Booking"]] = relationship(
        "Booking", uselist=True, back_populates="client"
    )
    favorites: Mapped[List["Favorite"]] = relationship(
        "Favorite", uselist=True, back_populates="user"
    )
    reviews: Mapped[List["Review"]] = relationship(
        "Review", uselist=True, back_populates="client"
    )

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "avatar_url": self.avatar_url,
        }


class Salon(Base):
    __tablename__ = "salons"
    __table_args__ = (
        ForeignKeyConstraint(
            ["owner_id"],
            ["user_profiles.id"],
            ondelete="RESTRICT",
            name="fk_salon_owner",
        ),
        Index("uq_salon_owner", "owner_id", unique=True),
        Index("idx_salon_city", "city"),
        Index("idx_salon_coords", "latitude", "longitude"),
        Index("idx_salon_active_rating", "is_active", "rating_average"),
    )

    id = mapped_column(Integer, primary_key=True)
    owner_id = mapped_column(Integer, nullable=False)
    business_name = mapped_column(String(150), nullable=False)
    description = mapped_column(Text)
    address = mapped_column(String(255))
    city = mapped_column(String(100))
    state = mapped_column(String(100))
    zip_code = mapped_column(String(20))
    country = mapped_column(String(2), nullable=False, default="US")
    phone = mapped_column(String(30))
    email = mapped_column(String(255))
    website = mapped_column(String(255))
    # Geocoding is best effort: both set or both null
    latitude = mapped_column(Float)
    longitude = mapped_column(Float)
    business_hours = mapped_column(JSON)
    rating_average = mapped_column(Float, nullable=False, default=0.0)
    rating_count = mapped_column(Integer, nullable=False, default=0)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    is_featured = mapped_column(Boolean, nullable=False, default=False)
    featured_until = mapped_column(DateTime)
    trending_score = mapped_column(Float, nullable=False, default=0.0)
    view_count = mapped_column(Integer, nullable=False, default=0)
    booking_count = mapped_column(Integer, nullable=False, default=0)
    favorite_count = mapped_column(Integer, nullable=False, default=0)
    last_booking_at = mapped_column(DateTime)
    stripe_account_id = mapped_column(String(64))
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner: Mapped["UserProfile"] = relationship("UserProfile", back_populates="salon")
    service: Mapped[List["Service"]] = relationship(
        "Service", uselist=True, back_populates="salon"
    )
    bookings: Mapped[List["Booking"]] = relationship(
        "Booking", uselist=True, back_populates="salon"
    )
    favorites: Mapped[List["Favorite"]] = relationship(
        "Favorite", uselist=True, back_populates="salon"
    )
    reviews: Mapped[List["Review"]] = relationship(
        "Review", uselist=True, back_populates="salon"
    )
    views: Mapped[List["SalonView"]] = relationship(
        "SalonView", uselist=True, back_populates="salon"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "business_name": self.business_name,
            "description": self.description,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "business_hours": self.business_hours or {},
            "rating_average": round(float(self.rating_average or 0), 2),
            "rating_count": self.rating_count or 0,
            "is_active": bool(self.is_active),
            "is_featured": bool(self.is_featured),
            "featured_until": (
                self.featured_until.isoformat() if self.featured_until else None
            ),
            "trending_score": float(self.trending_score or 0),
            "view_count": self.view_count or 0,
            "booking_count": self.booking_count or 0,
            "favorite_count": self.favorite_count or 0,
            "stripe_account_id": self.stripe_account_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ServiceCategory(Base):
    __tablename__ = "service_categories"
    __table_args__ = (Index("uq_service_categories_slug", "slug", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False)
    slug = mapped_column(String(100))
    description = mapped_column(String(255))
    icon = mapped_column(String(50))
    color = mapped_column(String(10))
    is_active = mapped_column(Boolean, nullable=False, default=True)

    services: Mapped[List["Service"]] = relationship(
        "Service", uselist=True, back_populates="category"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "is_active": bool(self.is_active),
        }


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="CASCADE", name="fk_service_salon"
        ),
        ForeignKeyConstraint(
            ["category_id"],
            ["service_categories.id"],
            ondelete="SET NULL",
            name="fk_service_category",
        ),
        Index("idx_service_salon", "salon_id"),
        Index("idx_service_category", "category_id"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    salon_id = mapped_column(Integer, nullable=False)
    category_id = mapped_column(Integer)
    name = mapped_column(String(100), nullable=False)
    description = mapped_column(Text)
    price = mapped_column(Numeric(10, 2), nullable=False, default=0)
    duration = mapped_column(Integer, nullable=False, default=30)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    salon: Mapped["Salon"] = relationship("Salon", back_populates="service")
    category: Mapped[Optional["ServiceCategory"]] = relationship(
        "ServiceCategory", back_populates="services"
    )
    bookings: Mapped[List["Booking"]] = relationship(
        "Booking", uselist=True, back_populates="service"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "salon_id": self.salon_id,
            "category_id": self.category_id,
            "category": self.category.to_dict() if self.category else None,
            "name": self.name,
            "description": self.description,
            "price": float(self.price) if self.price is not None else None,
            "duration": self.duration,
            "is_active": bool(self.is_active),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        ForeignKeyConstraint(
            ["client_id"],
            ["user_profiles.id"],
            ondelete="CASCADE",
            name="fk_booking_client",
        ),
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="CASCADE", name="fk_booking_salon"
        ),
        ForeignKeyConstraint(
            ["service_id"],
            ["services.id"],
            ondelete="RESTRICT",
            name="fk_booking_service",
        ),
        Index("idx_booking_client", "client_id"),
        Index("idx_booking_salon_date", "salon_id", "appointment_date"),
        Index("idx_booking_payment_intent", "payment_intent_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    client_id = mapped_column(Integer, nullable=False)
    salon_id = mapped_column(Integer, nullable=False)
    service_id = mapped_column(Integer, nullable=False)
    staff_id = mapped_column(Integer)
    appointment_date = mapped_column(Date, nullable=False)
    start_time = mapped_column(Time, nullable=False)
    end_time = mapped_column(Time, nullable=False)
    status = mapped_column(String(20), nullable=False, default="pending")
    notes = mapped_column(Text)
    total_price = mapped_column(Numeric(10, 2))
    payment_status = mapped_column(String(20), nullable=False, default="unpaid")
    payment_method = mapped_column(String(20))
    payment_intent_id = mapped_column(String(64))
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    client: Mapped["UserProfile"] = relationship("UserProfile", back_populates="bookings")
    salon: Mapped["Salon"] = relationship("Salon", back_populates="bookings")
    service: Mapped["Service"] = relationship("Service", back_populates="bookings")
    review: Mapped[List["Review"]] = relationship(
        "Review", uselist=True, back_populates="booking"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "salon_id": self.salon_id,
            "service_id": self.service_id,
            "staff_id": self.staff_id,
            "appointment_date": (
                self.appointment_date.isoformat() if self.appointment_date else None
            ),
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "status": self.status,
            "notes": self.notes,
            "total_price": (
                float(self.total_price) if self.total_price is not None else None
            ),
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Favorite(Base):
    __tablename__ = "user_favorites"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["user_profiles.id"], ondelete="CASCADE", name="fk_fav_user"
        ),
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="CASCADE", name="fk_fav_salon"
        ),
        Index("uq_user_salon_favorite", "user_id", "salon_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    salon_id = mapped_column(Integer, nullable=False)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)

    user: Mapped["UserProfile"] = relationship("UserProfile", back_populates="favorites")
    salon: Mapped["Salon"] = relationship("Salon", back_populates="favorites")


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        ForeignKeyConstraint(
            ["client_id"], ["user_profiles.id"], ondelete="CASCADE", name="fk_rv_client"
        ),
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="CASCADE", name="fk_rv_salon"
        ),
        ForeignKeyConstraint(
            ["booking_id"], ["bookings.id"], ondelete="SET NULL", name="fk_rv_booking"
        ),
        Index("idx_review_salon_created", "salon_id", "created_at"),
        Index("uq_review_booking", "booking_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    client_id = mapped_column(Integer, nullable=False)
    salon_id = mapped_column(Integer, nullable=False)
    booking_id = mapped_column(Integer)
    rating = mapped_column(Integer, nullable=False)
    comment = mapped_column(String(1000))
    is_visible = mapped_column(Boolean, nullable=False, default=True)
    owner_reply = mapped_column(String(1000))
    owner_reply_at = mapped_column(DateTime)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    client: Mapped["UserProfile"] = relationship("UserProfile", back_populates="reviews")
    salon: Mapped["Salon"] = relationship("Salon", back_populates="reviews")
    booking: Mapped[Optional["Booking"]] = relationship("Booking", back_populates="review")
    reports: Mapped[List["ReviewReport"]] = relationship(
        "ReviewReport", uselist=True, back_populates="review"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "salon_id": self.salon_id,
            "booking_id": self.booking_id,
            "rating": self.rating,
            "comment": self.comment,
            "owner_reply": self.owner_reply,
            "owner_reply_at": (
                self.owner_reply_at.isoformat() if self.owner_reply_at else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ReviewReport(Base):
    __tablename__ = "review_reports"
    __table_args__ = (
        ForeignKeyConstraint(
            ["review_id"], ["reviews.id"], ondelete="CASCADE", name="fk_rr_review"
        ),
        ForeignKeyConstraint(
            ["reporter_id"],
            ["user_profiles.id"],
            ondelete="CASCADE",
            name="fk_rr_reporter",
        ),
        ForeignKeyConstraint(
            ["reportee_id"],
            ["user_profiles.id"],
            ondelete="SET NULL",
            name="fk_rr_reportee",
        ),
        Index("uq_review_report_reporter", "review_id", "reporter_id", unique=True),
        Index("idx_review_reports_status", "status"),
    )

    id = mapped_column(Integer, primary_key=True)
    review_id = mapped_column(Integer, nullable=False)
    reporter_id = mapped_column(Integer, nullable=False)
    # author of the reported review
    reportee_id = mapped_column(Integer)
    reason = mapped_column(String(50), nullable=False)
    description = mapped_column(Text)
    status = mapped_column(String(20), nullable=False, default="pending")
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    review: Mapped["Review"] = relationship("Review", back_populates="reports")

    def to_dict(self):
        return {
            "id": self.id,
            "review_id": self.review_id,
            "reporter_id": self.reporter_id,
            "reportee_id": self.reportee_id,
            "reason": self.reason,
            "description": self.description,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SalonView(Base):
    __tablename__ = "salon_views"
    __table_args__ = (
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="CASCADE", name="fk_sv_salon"
        ),
        Index("idx_salon_views_salon_time", "salon_id", "viewed_at"),
    )

    id = mapped_column(Integer, primary_key=True)
    salon_id = mapped_column(Integer, nullable=False)
    user_id = mapped_column(Integer)
    viewed_at = mapped_column(DateTime, nullable=False, default=utcnow)

    salon: Mapped["Salon"] = relationship("Salon", back_populates="views")
