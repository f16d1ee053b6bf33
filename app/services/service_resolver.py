from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from app.models import Service, ServiceCategory
from app.utils.request_args import escape_like


class ServiceResolver:
    """
    Turns service/category search terms and price ranges into salon id sets.

    Store failures are logged and read as "no matches" so that a broken
    lookup narrows a search instead of failing it.
    """

    def __init__(self, session):
        self.session = session

    def _rollback(self):
        try:
            self.session.rollback()
        except SQLAlchemyError:
            pass

    def category_ids(self, terms):
        """Active categories whose name or slug contains any of the terms."""
        if not terms:
            return set()
        conditions = []
        for term in terms:
            pattern = f"%{escape_like(term)}%"
            conditions.append(ServiceCategory.name.ilike(pattern, escape="\\"))
            conditions.append(ServiceCategory.slug.ilike(pattern, escape="\\"))

        rows = (
            self.session.query(ServiceCategory.id)
            .filter(ServiceCategory.is_active.is_(True))
            .filter(or_(*conditions))
            .all()
        )
        return {row[0] for row in rows}

    def salon_ids_for_terms(self, terms):
        terms = [t for t in (terms or []) if t and t.strip()]
        if not terms:
            return set()

        try:
            category_ids = self.category_ids(terms)

            conditions = []
            for term in terms:
                pattern = f"%{escape_like(term.strip())}%"
                conditions.append(Service.name.ilike(pattern, escape="\\"))
                # the service's own category counts even when it is inactive
                conditions.append(ServiceCategory.name.ilike(pattern, escape="\\"))
                conditions.append(ServiceCategory.slug.ilike(pattern, escape="\\"))
            if category_ids:
                conditions.append(Service.category_id.in_(category_ids))

            rows = (
                self.session.query(Service.salon_id)
                .outerjoin(ServiceCategory, Service.category_id == ServiceCategory.id)
                .filter(Service.is_active.is_(True))
                .filter(or_(*conditions))
                .distinct()
                .all()
            )
            return {row[0] for row in rows}

        except SQLAlchemyError as e:
            self._rollback()
            current_app.logger.warning(f"Service lookup failed for {terms}: {e}")
            return set()

    def salon_ids_in_price_range(self, min_price=None, max_price=None, candidate_ids=None):
        """
        Salons whose active-service price range overlaps [min_price, max_price].
        A missing bound is open-ended.
        """
        if candidate_ids is not None and not candidate_ids:
            return set()

        try:
            low = func.min(Service.price)
            high = func.max(Service.price)
            query = (
                self.session.query(Service.salon_id)
                .filter(Service.is_active.is_(True))
                .group_by(Service.salon_id)
            )
            if candidate_ids is not None:
                query = query.filter(Service.salon_id.in_(candidate_ids))
            if max_price is not None:
                query = query.having(low <= max_price)
            if min_price is not None:
                query = query.having(high >= min_price)

            return {row[0] for row in query.all()}

        except SQLAlchemyError as e:
            self._rollback()
            current_app.logger.warning(
                f"Price lookup failed for range {min_price}-{max_price}: {e}"
            )
            return set()
