"""
Salon search: SQL pre-filtering, in-memory refinement and pagination.

The store narrows candidates with everything it can answer cheaply
(text, city, rating, flags, a bounding box around the user). Exact
Haversine distance, the distance range, distance ordering and the
open-now check run on the fetched rows.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from app.errors import AppError
from app.models import Salon, utcnow
from app.services.service_resolver import ServiceResolver
from app.utils.business_hours import is_open_at
from app.utils.geo import bounding_box, distance_from
from app.utils.pagination import clamp_limit, clamp_page, paginate
from app.utils.request_args import (
    escape_like,
    first_arg,
    parse_bool,
    parse_float,
    parse_int,
    split_terms,
)

SORT_OPTIONS = ("distance", "rating", "name", "created_at", "newest")
NEW_SALON_DAYS = 30
POPULAR_MIN_RATING = 4.5
POPULAR_MIN_COUNT = 10
DEFAULT_MAX_CANDIDATES = 1000


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass
class SearchParams:
    query: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    min_rating: Optional[float] = None
    max_distance: Optional[float] = None
    min_distance: Optional[float] = None
    services: List[str] = field(default_factory=list)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    sort: Optional[str] = None
    featured: bool = False
    trending: bool = False
    new_only: bool = False
    popular_only: bool = False
    open_now: bool = False
    page: int = 1
    limit: int = 50

    @classmethod
    def from_args(cls, args):
        """Build from request.args (or any mapping), resolving every alias once."""
        services = split_terms(args.get("services"))
        if not services:
            services = split_terms(first_arg(args, "service", "category"))

        sort = first_arg(args, "sort", "sortBy")
        sort = sort.strip().lower() if sort else None

        return cls(
            query=_clean(first_arg(args, "q", "search")),
            city=_clean(first_arg(args, "city", "location")),
            latitude=parse_float(first_arg(args, "lat", "latitude")),
            longitude=parse_float(first_arg(args, "lng", "lon", "longitude")),
            min_rating=parse_float(first_arg(args, "min_rating", "minRating", "rating")),
            max_distance=parse_float(
                first_arg(args, "max_distance", "maxDistance", "distance")
            ),
            min_distance=parse_float(first_arg(args, "min_distance", "minDistance")),
            services=services,
            min_price=parse_float(first_arg(args, "min_price", "minPrice")),
            max_price=parse_float(first_arg(args, "max_price", "maxPrice")),
            sort=sort if sort in SORT_OPTIONS else None,
            featured=parse_bool(args.get("featured")),
            trending=parse_bool(args.get("trending")),
            new_only=parse_bool(first_arg(args, "new_only", "newOnly")),
            popular_only=parse_bool(first_arg(args, "popular_only", "popularOnly")),
            open_now=parse_bool(first_arg(args, "open_now", "openNow")),
            page=clamp_page(parse_int(args.get("page"))),
            limit=clamp_limit(parse_int(args.get("limit"))),
        )

    @property
    def has_center(self):
        return self.latitude is not None and self.longitude is not None

    @property
    def has_distance_range(self):
        return self.has_center and (
            self.max_distance is not None or self.min_distance is not None
        )

    @property
    def effective_sort(self):
        if self.sort:
            return self.sort
        return "distance" if self.has_center else "rating"

    def describe(self):
        """Non-default filters, for log lines."""
        return {
            k: v
            for k, v in self.__dict__.items()
            if v not in (None, False, [], "")
        }


class SalonSearchService:
    def __init__(
        self,
        session,
        clock=datetime.now,
        utc_clock=utcnow,
        max_candidates=DEFAULT_MAX_CANDIDATES,
        resolver=None,
    ):
        self.session = session
        self.clock = clock
        self.utc_clock = utc_clock
        self.max_candidates = max_candidates
        self.resolver = resolver or ServiceResolver(session)

    # -------------------------------------------------------------------------
    # Filter builder
    # -------------------------------------------------------------------------
    def build_query(self, params: SearchParams):
        """
        Query over active salons with every store-level filter applied, or
        None when a relational filter already proves the result is empty.
        """
        query = self.session.query(Salon).filter(Salon.is_active.is_(True))

        if params.query:
            pattern = f"%{escape_like(params.query)}%"
            text_match = [
                Salon.business_name.ilike(pattern, escape="\\"),
                Salon.description.ilike(pattern, escape="\\"),
                Salon.city.ilike(pattern, escape="\\"),
                Salon.address.ilike(pattern, escape="\\"),
            ]
            service_salons = self.resolver.salon_ids_for_terms([params.query])
            if service_salons:
                text_match.append(Salon.id.in_(service_salons))
            query = query.filter(or_(*text_match))

        if params.city:
            query = query.filter(
                Salon.city.ilike(f"%{escape_like(params.city)}%", escape="\\")
            )

        if params.min_rating is not None:
            query = query.filter(Salon.rating_average >= params.min_rating)

        if params.has_center and params.max_distance is not None:
            box = bounding_box(params.latitude, params.longitude, params.max_distance)
            query = query.filter(
                Salon.latitude.isnot(None),
                Salon.longitude.isnot(None),
                Salon.latitude.between(box.min_lat, box.max_lat),
                Salon.longitude.between(box.min_lng, box.max_lng),
            )

        if params.featured:
            now = self.utc_clock()
            query = query.filter(
                Salon.is_featured.is_(True),
                or_(Salon.featured_until.is_(None), Salon.featured_until >= now),
            )

        if params.trending:
            query = query.filter(Salon.trending_score > 0)

        if params.new_only:
            cutoff = self.utc_clock() - timedelta(days=NEW_SALON_DAYS)
            query = query.filter(Salon.created_at >= cutoff)

        if params.popular_only:
            query = query.filter(
                Salon.rating_average >= POPULAR_MIN_RATING,
                Salon.rating_count >= POPULAR_MIN_COUNT,
            )

        candidate_ids = None
        if params.services:
            candidate_ids = self.resolver.salon_ids_for_terms(params.services)
            if not candidate_ids:
                return None

        if params.min_price is not None or params.max_price is not None:
            candidate_ids = self.resolver.salon_ids_in_price_range(
                params.min_price, params.max_price, candidate_ids
            )
            if not candidate_ids:
                return None

        if candidate_ids is not None:
            query = query.filter(Salon.id.in_(candidate_ids))

        return query.order_by(*self._order_by(params))

    def _order_by(self, params):
        sort = params.effective_sort
        if sort == "name":
            return [Salon.business_name.asc(), Salon.id.asc()]
        if sort in ("created_at", "newest"):
            return [Salon.created_at.desc(), Salon.id.asc()]
        # rating, and distance (re-sorted in memory once distances are known)
        return [
            Salon.rating_average.desc(),
            Salon.rating_count.desc(),
            Salon.id.asc(),
        ]

    # -------------------------------------------------------------------------
    # Refinement
    # -------------------------------------------------------------------------
    def refine(self, salons, params: SearchParams):
        """Attach distances, apply the exact distance range, distance sort and open-now."""
        results = []
        for salon in salons:
            distance = None
            if params.has_center:
                distance = distance_from(params.latitude, params.longitude, salon)
            results.append((salon, distance))

        if params.has_distance_range:
            low = params.min_distance if params.min_distance is not None else 0.0
            high = params.max_distance if params.max_distance is not None else math.inf
            results = [
                (salon, d) for salon, d in results if d is not None and low <= d <= high
            ]

        if params.has_center and params.effective_sort == "distance":
            results.sort(key=lambda pair: math.inf if pair[1] is None else pair[1])

        if params.open_now:
            moment = self.clock()
            results = [
                (salon, d)
                for salon, d in results
                if is_open_at(salon.business_hours, moment)
            ]

        return results

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------
    def search(self, params: SearchParams):
        """Returns (salon dicts for the page, pagination dict)."""
        query = self.build_query(params)
        if query is None:
            return paginate([], params.page, params.limit)

        try:
            rows = query.limit(self.max_candidates + 1).all()
        except SQLAlchemyError as e:
            try:
                self.session.rollback()
            except SQLAlchemyError:
                pass
            current_app.logger.error(
                f"Salon search failed with filters {params.describe()}: {e}"
            )
            raise AppError("Failed to search salons", 500, "SALON_SEARCH_FAILED")

        truncated = len(rows) > self.max_candidates
        if truncated:
            rows = rows[: self.max_candidates]

        refined = self.refine(rows, params)
        page_items, pagination = paginate(
            refined, params.page, params.limit, truncated=truncated
        )

        data = []
        for salon, distance in page_items:
            item = salon.to_dict()
            item["distance"] = round(distance, 2) if distance is not None else None
            data.append(item)
        return data, pagination
