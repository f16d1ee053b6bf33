import datetime

import pytest
import json

from app.models import Salon

FAR_FUTURE = datetime.date(2099, 1, 1)
LONG_AGO = datetime.date(2020, 1, 7)


def _rating(db_session, salon_id):
    db_session.expire_all()
    salon = db_session.get(Salon, salon_id)
    return salon.rating_average, salon.rating_count


@pytest.fixture
def completed_booking(make_booking, client_user, owner_service):
    return make_booking(client_user, owner_service, day=LONG_AGO, status="completed")


@pytest.mark.reviews
class TestCreateReview:
    """Test suite for POST /api/reviews."""

    def test_review_completed_booking(
        self, client, db_session, client_headers, owner_salon, completed_booking
    ):
        response = client.post(
            "/api/reviews",
            json={
                "salon_id": owner_salon.id,
                "booking_id": completed_booking.id,
                "rating": 4,
                "comment": "  Lovely cut ",
            },
            headers=client_headers,
        )

        assert response.status_code == 201
        data = json.loads(response.data)["data"]
        assert data["rating"] == 4
        assert data["comment"] == "Lovely cut"
        assert data["client"]["name"] == "Casey Client"
        assert _rating(db_session, owner_salon.id) == (4.0, 1)

    def test_review_without_booking_needs_completed_visit(
        self, client, client_headers, owner_salon
    ):
        response = client.post(
            "/api/reviews",
            json={"salon_id": owner_salon.id, "rating": 5},
            headers=client_headers,
        )

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "NO_COMPLETED_BOOKINGS"

    def test_review_without_booking_id(
        self, client, client_headers, owner_salon, completed_booking
    ):
        response = client.post(
            "/api/reviews",
            json={"salon_id": owner_salon.id, "rating": 5},
            headers=client_headers,
        )
        assert response.status_code == 201

    @pytest.mark.parametrize("rating", [0, 6, 4.5, "five", True])
    def test_invalid_rating(self, client, client_headers, owner_salon, rating):
        response = client.post(
            "/api/reviews",
            json={"salon_id": owner_salon.id, "rating": rating},
            headers=client_headers,
        )

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "INVALID_RATING"

    def test_missing_fields(self, client, client_headers):
        response = client.post("/api/reviews", json={"rating": 3}, headers=client_headers)

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "MISSING_REQUIRED_FIELDS"

    def test_unknown_salon(self, client, client_headers):
        response = client.post(
            "/api/reviews", json={"salon_id": 321, "rating": 3}, headers=client_headers
        )
        assert response.status_code == 404

    def test_future_booking_cannot_be_reviewed(
        self, client, client_headers, client_user, owner_salon, owner_service, make_booking
    ):
        booking = make_booking(client_user, owner_service, day=FAR_FUTURE)

        response = client.post(
            "/api/reviews",
            json={"salon_id": owner_salon.id, "booking_id": booking.id, "rating": 5},
            headers=client_headers,
        )

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "BOOKING_NOT_COMPLETED"

    def test_past_booking_can_be_reviewed(
        self, client, client_headers, client_user, owner_salon, owner_service, make_booking
    ):
        booking = make_booking(client_user, owner_service, day=LONG_AGO, status="confirmed")

        response = client.post(
            "/api/reviews",
            json={"salon_id": owner_salon.id, "booking_id": booking.id, "rating": 3},
            headers=client_headers,
        )
        assert response.status_code == 201

    def test_someone_elses_booking(
        self, client, other_client_headers, owner_salon, completed_booking
    ):
        response = client.post(
            "/api/reviews",
            json={"salon_id": owner_salon.id, "booking_id": completed_booking.id, "rating": 3},
            headers=other_client_headers,
        )

        assert response.status_code == 404
        assert json.loads(response.data)["code"] == "BOOKING_NOT_FOUND"

    def test_booking_for_another_salon(
        self, client, client_headers, make_salon, completed_booking
    ):
        elsewhere = make_salon("Elsewhere")

        response = client.post(
            "/api/reviews",
            json={"salon_id": elsewhere.id, "booking_id": completed_booking.id, "rating": 3},
            headers=client_headers,
        )

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "INVALID_SALON"

    def test_one_review_per_booking(
        self, client, client_headers, owner_salon, completed_booking
    ):
        payload = {"salon_id": owner_salon.id, "booking_id": completed_booking.id, "rating": 5}
        assert client.post("/api/reviews", json=payload, headers=client_headers).status_code == 201

        response = client.post("/api/reviews", json=payload, headers=client_headers)

        assert response.status_code == 409
        assert json.loads(response.data)["code"] == "REVIEW_ALREADY_EXISTS"


@pytest.mark.reviews
class TestManageReviews:
    @pytest.fixture
    def review_id(self, client, client_headers, owner_salon, completed_booking):
        response = client.post(
            "/api/reviews",
            json={"salon_id": owner_salon.id, "booking_id": completed_booking.id, "rating": 2},
            headers=client_headers,
        )
        return json.loads(response.data)["data"]["id"]

    def test_salon_reviews_with_stats(self, client, owner_salon, review_id):
        response = client.get(f"/api/reviews/salon/{owner_salon.id}")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [r["id"] for r in data["data"]["reviews"]] == [review_id]
        assert data["data"]["stats"] == {"average_rating": 2.0, "total_reviews": 1}
        assert data["pagination"]["hasMore"] is False

    def test_salon_reviews_unknown_salon(self, client):
        assert client.get("/api/reviews/salon/404").status_code == 404

    def test_update_review_recomputes_rating(
        self, client, db_session, client_headers, owner_salon, review_id
    ):
        response = client.put(
            f"/api/reviews/{review_id}", json={"rating": 5}, headers=client_headers
        )

        assert response.status_code == 200
        assert _rating(db_session, owner_salon.id) == (5.0, 1)

    def test_cannot_edit_others_review(self, client, other_client_headers, review_id):
        response = client.put(
            f"/api/reviews/{review_id}", json={"rating": 5}, headers=other_client_headers
        )

        assert response.status_code == 404
        assert json.loads(response.data)["code"] == "REVIEW_NOT_FOUND"

    def test_delete_hides_review(
        self, client, db_session, client_headers, owner_salon, review_id
    ):
        response = client.delete(f"/api/reviews/{review_id}", headers=client_headers)

        assert response.status_code == 200
        assert _rating(db_session, owner_salon.id) == (0.0, 0)
        listing = json.loads(client.get(f"/api/reviews/salon/{owner_salon.id}").data)
        assert listing["data"]["reviews"] == []

    def test_my_reviews(self, client, client_headers, review_id):
        data = json.loads(client.get("/api/reviews/my", headers=client_headers).data)

        assert [r["id"] for r in data["data"]] == [review_id]
        assert data["data"][0]["salon"]["business_name"] == "Studio Centraal"

    def test_owner_reply(self, client, owner_headers, review_id):
        response = client.post(
            f"/api/reviews/{review_id}/reply",
            json={"reply": "Thanks, see you soon"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["owner_reply"] == "Thanks, see you soon"
        assert data["owner_reply_at"] is not None

    def test_reply_requires_text(self, client, owner_headers, review_id):
        response = client.post(
            f"/api/reviews/{review_id}/reply", json={"reply": " "}, headers=owner_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)["code"] == "MISSING_REPLY"

    def test_other_owner_cannot_reply(self, client, other_owner_headers, review_id):
        response = client.post(
            f"/api/reviews/{review_id}/reply",
            json={"reply": "Hi"},
            headers=other_owner_headers,
        )
        assert response.status_code == 403


@pytest.mark.reviews
class TestCanReview:
    def test_completed_booking(self, client, client_headers, completed_booking):
        data = json.loads(
            client.get(
                f"/api/reviews/booking/{completed_booking.id}/can-review",
                headers=client_headers,
            ).data
        )

        assert data["data"] == {
            "can_review": True,
            "has_review": False,
            "is_past": True,
            "booking_status": "completed",
        }

    def test_future_booking(
        self, client, client_headers, client_user, owner_service, make_booking
    ):
        booking = make_booking(client_user, owner_service, day=FAR_FUTURE)

        data = json.loads(
            client.get(
                f"/api/reviews/booking/{booking.id}/can-review", headers=client_headers
            ).data
        )
        assert data["data"]["can_review"] is False

    def test_foreign_booking(self, client, other_client_headers, completed_booking):
        response = client.get(
            f"/api/reviews/booking/{completed_booking.id}/can-review",
            headers=other_client_headers,
        )
        assert response.status_code == 404
