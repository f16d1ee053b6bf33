from datetime import datetime

import pytest
import json

import app.routes.salons as salons_routes
from app.models import Salon, SalonView
from tests.conftest import AMSTERDAM, HAARLEM, ROTTERDAM, UTRECHT, WEEKDAY_HOURS


@pytest.mark.salon
class TestSalonSearchEndpoint:
    """Test suite for GET /api/salons/search."""

    def test_search_empty_store(self, client):
        response = client.get("/api/salons/search")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["success"] is True
        assert data["data"] == []
        assert data["pagination"] == {
            "page": 1,
            "limit": 50,
            "total": 0,
            "hasMore": False,
        }

    def test_search_by_min_rating(self, client, make_salon):
        make_salon("Five Stars", rating_average=4.9, rating_count=30)
        make_salon("Three Stars", rating_average=3.0, rating_count=30)

        response = client.get("/api/salons/search?min_rating=4.5")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [s["business_name"] for s in data["data"]] == ["Five Stars"]

    def test_search_text(self, client, make_salon, make_service):
        salon = make_salon("Studio Hair Design")
        make_service(salon, name="Haircut")

        data = json.loads(client.get("/api/salons/search?q=hair").data)
        assert len(data["data"]) == 1

        data = json.loads(client.get("/api/salons/search?q=zzz_no_match").data)
        assert data["data"] == []

    def test_search_nearby_kapper(self, client, make_salon):
        make_salon("Kapper Amsterdam", *AMSTERDAM)
        make_salon("Kapper Haarlem", *HAARLEM)
        make_salon("Kapper Rotterdam", *ROTTERDAM)

        response = client.get(
            f"/api/salons/search?q=kapper&lat={AMSTERDAM[0]}&lng={AMSTERDAM[1]}"
            "&maxDistance=50"
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        names = [s["business_name"] for s in data["data"]]
        assert names == ["Kapper Amsterdam", "Kapper Haarlem"]
        assert data["data"][1]["distance"] == pytest.approx(17.6, abs=1.0)

    def test_search_open_now_uses_clock(self, client, make_salon, monkeypatch):
        make_salon("Weekday Salon", business_hours=dict(WEEKDAY_HOURS))
        make_salon("Weekend Salon", business_hours={"saturday": {"open": "10:00", "close": "16:00"}})
        make_salon("No Hours Salon")

        # Tuesday 10:00
        monkeypatch.setattr(salons_routes, "_now", lambda: datetime(2024, 1, 2, 10, 0))
        data = json.loads(client.get("/api/salons/search?open_now=true").data)
        assert [s["business_name"] for s in data["data"]] == ["Weekday Salon"]

        # Saturday 11:00
        monkeypatch.setattr(salons_routes, "_now", lambda: datetime(2024, 1, 6, 11, 0))
        data = json.loads(client.get("/api/salons/search?openNow=1").data)
        assert [s["business_name"] for s in data["data"]] == ["Weekend Salon"]

    def test_search_nearby_open_well_rated(self, client, make_salon, monkeypatch):
        make_salon(
            "Hair Studio Amsterdam",
            52.37,
            4.90,
            rating_average=4.8,
            rating_count=30,
            business_hours=dict(WEEKDAY_HOURS),
        )
        make_salon(
            "Far Away",
            *UTRECHT,
            rating_average=4.9,
            rating_count=30,
            business_hours=dict(WEEKDAY_HOURS),
        )
        make_salon(
            "Low Rated",
            52.372,
            4.901,
            rating_average=3.5,
            rating_count=30,
            business_hours=dict(WEEKDAY_HOURS),
        )
        make_salon(
            "Closed Today",
            52.371,
            4.902,
            rating_average=4.6,
            rating_count=12,
            business_hours={"tuesday": {"closed": True}},
        )
        make_salon(
            "Second Closest",
            52.38,
            4.91,
            rating_average=4.1,
            rating_count=8,
            business_hours=dict(WEEKDAY_HOURS),
        )

        # Tuesday 10:00
        monkeypatch.setattr(salons_routes, "_now", lambda: datetime(2024, 1, 2, 10, 0))
        response = client.get(
            "/api/salons/search?lat=52.37&lng=4.90&max_distance=5&min_rating=4"
            "&sort=distance&open_now=true"
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        names = [s["business_name"] for s in data["data"]]
        assert names == ["Hair Studio Amsterdam", "Second Closest"]
        assert data["data"][0]["distance"] == pytest.approx(0, abs=0.01)
        assert data["pagination"]["total"] == 2

    def test_search_second_page(self, client, make_salon):
        for i in range(15):
            make_salon(f"Salon {i:02d}")

        response = client.get("/api/salons/search?sort=name&page=2&limit=10")

        data = json.loads(response.data)
        assert len(data["data"]) == 5
        assert data["pagination"]["total"] == 15
        assert data["pagination"]["hasMore"] is False

    def test_search_candidate_cap(self, app, client, make_salon, monkeypatch):
        for i in range(4):
            make_salon(f"Salon {i}")
        monkeypatch.setitem(app.config, "SEARCH_MAX_CANDIDATES", 2)

        data = json.loads(client.get("/api/salons/search?limit=2").data)

        assert len(data["data"]) == 2
        assert data["pagination"]["hasMore"] is True

    def test_search_ignores_bad_numbers(self, client, make_salon):
        make_salon("Anything")

        response = client.get("/api/salons/search?lat=north&lng=&min_rating=abc&sort=bogus")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert len(data["data"]) == 1
        assert data["data"][0]["distance"] is None


@pytest.mark.salon
class TestSalonDiscovery:
    def test_nearby_requires_coordinates(self, client):
        response = client.get("/api/salons/nearby?latitude=52.3")

        assert response.status_code == 400
        data = json.loads(response.data)
        assert data["success"] is False
        assert data["code"] == "MISSING_COORDINATES"

    def test_nearby_default_radius(self, client, make_salon):
        make_salon("Close By", AMSTERDAM[0] + 0.01, AMSTERDAM[1])
        make_salon("Utrecht", *UTRECHT)

        response = client.get(
            f"/api/salons/nearby?latitude={AMSTERDAM[0]}&longitude={AMSTERDAM[1]}"
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [s["business_name"] for s in data["data"]] == ["Close By"]
        assert data["data"][0]["distance"] == pytest.approx(1.11, abs=0.05)

    def test_nearby_custom_radius_sorted(self, client, make_salon):
        make_salon("Utrecht", *UTRECHT)
        make_salon("Haarlem", *HAARLEM)

        response = client.get(
            f"/api/salons/nearby?latitude={AMSTERDAM[0]}&longitude={AMSTERDAM[1]}&radius=40"
        )

        data = json.loads(response.data)
        assert [s["business_name"] for s in data["data"]] == ["Haarlem", "Utrecht"]

    def test_popular(self, client, make_salon):
        make_salon("Good", rating_average=4.0, rating_count=5)
        make_salon("Best", rating_average=4.9, rating_count=5)
        make_salon("Best But Fewer", rating_average=4.9, rating_count=2)
        make_salon("Hidden", rating_average=5.0, rating_count=50, is_active=False)

        data = json.loads(client.get("/api/salons/popular").data)

        assert [s["business_name"] for s in data["data"]] == [
            "Best",
            "Best But Fewer",
            "Good",
        ]


@pytest.mark.salon
class TestSalonProfile:
    def test_get_salon(self, client, owner_salon):
        response = client.get(f"/api/salons/{owner_salon.id}")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["data"]["business_name"] == "Studio Centraal"
        assert data["data"]["business_hours"]["monday"] == {
            "open": "09:00",
            "close": "17:00",
        }

    def test_get_missing_salon(self, client):
        response = client.get("/api/salons/99999")

        assert response.status_code == 404
        assert json.loads(response.data)["code"] == "SALON_NOT_FOUND"

    def test_get_inactive_salon(self, client, make_salon):
        salon = make_salon("Gone", is_active=False)

        response = client.get(f"/api/salons/{salon.id}")
        assert response.status_code == 404

    def test_salon_services(self, client, owner_salon, make_service):
        make_service(owner_salon, name="Colour", price=80)
        make_service(owner_salon, name="Retired", is_active=False)

        response = client.get(f"/api/salons/{owner_salon.id}/services")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [s["name"] for s in data["data"]] == ["Colour"]
        assert data["data"][0]["price"] == 80.0

    def test_services_of_inactive_salon(self, client, make_salon):
        salon = make_salon("Paused", is_active=False)

        response = client.get(f"/api/salons/{salon.id}/services")

        assert response.status_code == 403
        assert json.loads(response.data)["code"] == "SALON_NOT_ACTIVE"

    def test_track_view_anonymous_and_signed_in(
        self, client, db_session, owner_salon, client_user, client_headers
    ):
        assert client.post(f"/api/salons/{owner_salon.id}/track-view").status_code == 200
        response = client.post(
            f"/api/salons/{owner_salon.id}/track-view", headers=client_headers
        )
        assert response.status_code == 200

        db_session.expire_all()
        salon = db_session.get(Salon, owner_salon.id)
        assert salon.view_count == 2
        user_ids = {v.user_id for v in db_session.query(SalonView).all()}
        assert user_ids == {None, client_user.id}

    def test_track_view_missing_salon(self, client):
        assert client.post("/api/salons/424242/track-view").status_code == 404


@pytest.mark.salon
class TestOwnerSalon:
    def test_create_salon(self, client, owner_headers):
        payload = {
            "name": "New Salon",
            "city": "Amsterdam",
            "state": "NH",
            "zip_code": "1012AB",
            "latitude": 52.37,
            "longitude": 4.89,
            "business_hours": {"Monday": {"opening": "09:00", "closing": "18:00"}},
        }

        response = client.post("/api/salons", json=payload, headers=owner_headers)

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["data"]["business_name"] == "New Salon"
        assert data["data"]["business_hours"] == {
            "monday": {"open": "09:00", "close": "18:00"}
        }

    def test_create_salon_requires_owner_role(self, client, client_headers):
        response = client.post(
            "/api/salons",
            json={"name": "X", "city": "A", "state": "B", "zip_code": "1"},
            headers=client_headers,
        )

        assert response.status_code == 403
        assert json.loads(response.data)["code"] == "FORBIDDEN"

    def test_create_salon_requires_token(self, client):
        response = client.post("/api/salons", json={"name": "X"})

        assert response.status_code == 401
        assert json.loads(response.data)["code"] == "MISSING_TOKEN"

    @pytest.mark.parametrize(
        "missing,code",
        [
            ("name", "MISSING_NAME"),
            ("city", "MISSING_CITY"),
            ("state", "MISSING_STATE"),
            ("zip_code", "MISSING_ZIP_CODE"),
        ],
    )
    def test_create_salon_missing_field(self, client, owner_headers, missing, code):
        payload = {"name": "X", "city": "A", "state": "B", "zip_code": "1"}
        payload.pop(missing)

        response = client.post("/api/salons", json=payload, headers=owner_headers)

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == code

    def test_create_second_salon_conflicts(self, client, owner_headers, owner_salon):
        response = client.post(
            "/api/salons",
            json={"name": "Another", "city": "A", "state": "B", "zip_code": "1"},
            headers=owner_headers,
        )

        assert response.status_code == 409
        assert json.loads(response.data)["code"] == "SALON_ALREADY_EXISTS"

    def test_create_salon_half_coordinates(self, client, owner_headers):
        response = client.post(
            "/api/salons",
            json={"name": "X", "city": "A", "state": "B", "zip_code": "1", "latitude": 52.0},
            headers=owner_headers,
        )

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "INVALID_COORDINATES"

    def test_create_salon_bad_hours(self, client, owner_headers):
        response = client.post(
            "/api/salons",
            json={
                "name": "X",
                "city": "A",
                "state": "B",
                "zip_code": "1",
                "business_hours": {"monday": {"open": "18:00", "close": "09:00"}},
            },
            headers=owner_headers,
        )

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "INVALID_BUSINESS_HOURS"

    def test_get_my_salon(self, client, owner_headers, owner_salon):
        response = client.get("/api/salons/my/salon", headers=owner_headers)

        assert response.status_code == 200
        assert json.loads(response.data)["data"]["id"] == owner_salon.id

    def test_get_my_salon_without_one(self, client, other_owner_headers):
        response = client.get("/api/salons/my/salon", headers=other_owner_headers)

        assert response.status_code == 404
        assert json.loads(response.data)["code"] == "SALON_NOT_FOUND"

    def test_update_my_salon(self, client, owner_headers, owner_salon):
        response = client.put(
            "/api/salons/my/salon",
            json={"description": "Fresh look", "phone": "+31 20 123 4567"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["description"] == "Fresh look"
        assert data["business_name"] == "Studio Centraal"

    def test_update_my_salon_blank_name(self, client, owner_headers, owner_salon):
        response = client.put(
            "/api/salons/my/salon", json={"business_name": "  "}, headers=owner_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "MISSING_NAME"

    def test_deactivate_my_salon(self, client, owner_headers, owner_salon):
        response = client.delete("/api/salons/my/salon", headers=owner_headers)
        assert response.status_code == 200

        assert client.get(f"/api/salons/{owner_salon.id}").status_code == 404
        search = json.loads(client.get("/api/salons/search").data)
        assert search["data"] == []


@pytest.mark.salon
class TestUtilityEndpoints:
    def test_home(self, client):
        data = json.loads(client.get("/").data)
        assert data["success"] is True
        assert data["docs_url"] == "/api/docs"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert json.loads(response.data)["status"] == "OK"

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert json.loads(response.data) == {
            "success": False,
            "error": "Resource not found",
            "code": "NOT_FOUND",
        }

    def test_invalid_token(self, client):
        response = client.get(
            "/api/salons/my/salon", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert json.loads(response.data)["code"] == "INVALID_TOKEN"
