import datetime

import pytest
import json

from app.models import Favorite, Salon, SalonView, utcnow
from app.scheduler import refresh_trending
from app.services.tracking import recompute_trending_scores, trending_score


@pytest.mark.analytics
class TestSalonAnalytics:
    """Test suite for GET /api/analytics/salon."""

    def test_summary(
        self,
        client,
        db_session,
        owner_headers,
        owner_salon,
        owner_service,
        make_service,
        client_user,
        other_client,
        make_booking,
    ):
        colour = make_service(owner_salon, name="Colour", price=90.0, duration=60)
        make_booking(client_user, owner_service, status="completed", payment_status="paid")
        make_booking(client_user, owner_service, status="pending")
        make_booking(other_client, colour, status="cancelled")
        db_session.add_all(
            [
                SalonView(salon_id=owner_salon.id, user_id=client_user.id),
                SalonView(salon_id=owner_salon.id, user_id=client_user.id),
                SalonView(salon_id=owner_salon.id, user_id=None),
                Favorite(user_id=client_user.id, salon_id=owner_salon.id),
            ]
        )
        db_session.commit()

        response = client.get("/api/analytics/salon", headers=owner_headers)

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["bookings"]["total"] == 3
        assert data["bookings"]["byStatus"]["completed"] == 1
        assert data["bookings"]["byStatus"]["no_show"] == 0
        assert data["revenue"] == {"total": 40.0, "count": 1, "currency": "EUR"}
        assert data["views"] == {"total": 3, "unique": 1}
        assert data["favorites"] == {"total": 1, "recent": 1}
        assert data["servicePopularity"][0]["name"] == "Haircut"
        assert data["servicePopularity"][0]["bookings"] == 2
        assert data["period"]["days"] == 30

    def test_period_is_clamped(self, client, owner_headers, owner_salon):
        data = json.loads(
            client.get("/api/analytics/salon?period=9999", headers=owner_headers).data
        )
        assert data["data"]["period"]["days"] == 365

    def test_owner_without_salon(self, client, other_owner_headers):
        response = client.get("/api/analytics/salon", headers=other_owner_headers)
        assert response.status_code == 404

    def test_clients_are_forbidden(self, client, client_headers):
        response = client.get("/api/analytics/salon", headers=client_headers)
        assert response.status_code == 403


@pytest.mark.analytics
class TestTrending:
    def test_score_weights(self):
        assert trending_score(views=3, bookings=2, favorites=1) == 3 + 20 + 5

    def test_recompute_uses_recent_activity(
        self, db_session, make_salon, client_user, owner_salon, owner_service, make_booking
    ):
        quiet = make_salon("Quiet")
        busy = owner_salon
        old = utcnow() - datetime.timedelta(days=30)
        make_booking(client_user, owner_service)
        db_session.add_all(
            [
                SalonView(salon_id=busy.id),
                SalonView(salon_id=busy.id, viewed_at=old),
                Favorite(user_id=client_user.id, salon_id=busy.id),
                SalonView(salon_id=quiet.id, viewed_at=old),
            ]
        )
        db_session.commit()

        assert recompute_trending_scores(db_session) == 2

        db_session.expire_all()
        assert db_session.get(Salon, busy.id).trending_score == 1 + 10 + 5
        assert db_session.get(Salon, quiet.id).trending_score == 0

    def test_scheduler_job_runs_in_app_context(self, app, db, make_salon):
        make_salon("Anywhere")

        assert refresh_trending(app) == 1
