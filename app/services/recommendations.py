"""
Personalized salon recommendations.

A user's taste is read from their favorites and non-cancelled bookings:
the service categories they booked and the cities their salons are in.
Every other active salon is scored against that taste, then by rating.
Users without history get the popular list instead.
"""

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.models import Booking, Favorite, Salon, Service
from app.utils.geo import bounding_box, distance_from

CATEGORY_WEIGHT = 3.0
CITY_WEIGHT = 2.0
RATING_WEIGHT = 1.0

DEFAULT_RADIUS_KM = 50
FALLBACK_MIN_RATING = 4.0
FALLBACK_MIN_REVIEWS = 5


class RecommendationService:
    def __init__(self, session):
        self.session = session

    def taste_profile(self, user_id):
        """(known salon ids, preferred category ids, preferred cities)."""
        favorite_ids = {
            row[0]
            for row in self.session.query(Favorite.salon_id)
            .filter(Favorite.user_id == user_id)
            .all()
        }
        booked = (
            self.session.query(Booking.salon_id, Service.category_id)
            .join(Service, Service.id == Booking.service_id)
            .filter(Booking.client_id == user_id, Booking.status != "cancelled")
            .all()
        )
        known_ids = favorite_ids | {salon_id for salon_id, _ in booked}
        category_ids = {category_id for _, category_id in booked if category_id}

        # Favorited salons count toward categories through what they offer
        if favorite_ids:
            category_ids |= {
                row[0]
                for row in self.session.query(Service.category_id)
                .filter(
                    Service.salon_id.in_(favorite_ids),
                    Service.is_active.is_(True),
                    Service.category_id.isnot(None),
                )
                .distinct()
                .all()
            }

        cities = set()
        if known_ids:
            cities = {
                row[0].strip().lower()
                for row in self.session.query(Salon.city)
                .filter(Salon.id.in_(known_ids), Salon.city.isnot(None))
                .all()
                if row[0] and row[0].strip()
            }
        return known_ids, category_ids, cities

    def _candidates(self, latitude, longitude, radius):
        query = self.session.query(Salon).filter(Salon.is_active.is_(True))
        if latitude is not None and longitude is not None:
            box = bounding_box(latitude, longitude, radius)
            query = query.filter(
                Salon.latitude.between(box.min_lat, box.max_lat),
                Salon.longitude.between(box.min_lng, box.max_lng),
            )
        return query.all()

    def _within(self, salons, latitude, longitude, radius):
        """[(salon, distance)] inside the radius, or every salon without a center."""
        if latitude is None or longitude is None:
            return [(salon, None) for salon in salons]
        results = []
        for salon in salons:
            distance = distance_from(latitude, longitude, salon)
            if distance is not None and distance <= radius:
                results.append((salon, distance))
        return results

    def _categories_by_salon(self, salon_ids):
        offered = {}
        if not salon_ids:
            return offered
        rows = (
            self.session.query(Service.salon_id, Service.category_id)
            .filter(
                Service.salon_id.in_(salon_ids),
                Service.is_active.is_(True),
                Service.category_id.isnot(None),
            )
            .distinct()
            .all()
        )
        for salon_id, category_id in rows:
            offered.setdefault(salon_id, set()).add(category_id)
        return offered

    def personalized(self, user_id, limit, latitude=None, longitude=None, radius=None):
        """
        Salons ranked for a user, nearest-radius aware. Returns an empty list
        when the user has no history or nothing matches their taste.
        """
        radius = radius or DEFAULT_RADIUS_KM
        known_ids, category_ids, cities = self.taste_profile(user_id)
        if not known_ids:
            return []

        candidates = [
            pair
            for pair in self._within(
                self._candidates(latitude, longitude, radius), latitude, longitude, radius
            )
            if pair[0].id not in known_ids
        ]
        offered = self._categories_by_salon([salon.id for salon, _ in candidates])

        scored = []
        for salon, distance in candidates:
            shared = len(offered.get(salon.id, set()) & category_ids)
            same_city = bool(salon.city) and salon.city.strip().lower() in cities
            if not shared and not same_city:
                continue
            score = (
                CATEGORY_WEIGHT * shared
                + (CITY_WEIGHT if same_city else 0.0)
                + RATING_WEIGHT * float(salon.rating_average or 0)
            )
            scored.append((score, salon, distance))

        scored.sort(
            key=lambda item: (-item[0], -(item[1].rating_count or 0), item[1].id)
        )
        return [
            (salon, distance, round(score, 2))
            for score, salon, distance in scored[:limit]
        ]

    def popular(self, limit, latitude=None, longitude=None, radius=None):
        """Well-reviewed salons, used when nothing personal can be said."""
        radius = radius or DEFAULT_RADIUS_KM
        salons = [
            salon
            for salon in self._candidates(latitude, longitude, radius)
            if (salon.rating_average or 0) >= FALLBACK_MIN_RATING
            and (salon.rating_count or 0) >= FALLBACK_MIN_REVIEWS
        ]
        salons.sort(key=lambda s: (-(s.rating_average or 0), -(s.rating_count or 0), s.id))
        within = self._within(salons, latitude, longitude, radius)
        return [(salon, distance, None) for salon, distance in within[:limit]]

    def recommend(self, user_id, limit, latitude=None, longitude=None, radius=None):
        """(rows, personalized flag); rows are (salon, distance, score)."""
        try:
            rows = self.personalized(user_id, limit, latitude, longitude, radius)
            if rows:
                return rows, True
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.warning(
                f"Personalized recommendations failed for user {user_id}: {e}"
            )
        return self.popular(limit, latitude, longitude, radius), False
