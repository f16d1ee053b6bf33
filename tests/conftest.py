"""
Pytest configuration and shared fixtures for the SalonTime tests.
"""

import datetime

import pytest
from flask import Flask

from app.auth import create_access_token
from app.config import is_production_database
from app.extensions import db as database
from app.models import Base, Booking, Salon, Service, ServiceCategory, UserProfile
from app.rate_limiter import memory_cache
from main import create_app

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "SECRET_KEY": "test-secret-key-for-testing-only",
    "RATE_LIMIT_ENABLED": False,
    "TRUST_PROXY_HOPS": 0,
    "SCHEDULER_ENABLED": False,
    "STRIPE_SECRET_KEY": None,
    "STRIPE_WEBHOOK_SECRET": None,
}

AMSTERDAM = (52.3676, 4.9041)
HAARLEM = (52.3874, 4.6462)
UTRECHT = (52.0907, 5.1214)
ROTTERDAM = (51.9244, 4.4777)

WEEKDAY_HOURS = {
    day: {"open": "09:00", "close": "17:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
}


@pytest.fixture(scope="session")
def app():
    """Create and configure a test app instance."""
    app = create_app(TEST_CONFIG)

    # Never run the suite against anything that looks like a real database
    if is_production_database(app.config["SQLALCHEMY_DATABASE_URI"]):
        pytest.exit("Test app is configured with a production database!")

    yield app


@pytest.fixture
def db(app: Flask):
    """Fresh schema for every test."""
    with app.app_context():
        Base.metadata.create_all(bind=database.engine)
        yield database
        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db_session(db):
    return db.session


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture(autouse=True)
def clear_rate_limits():
    memory_cache.clear()
    yield
    memory_cache.clear()


# -----------------------------------------------------------------------------
# Users and tokens
# -----------------------------------------------------------------------------
def _make_user(session, email, role, first_name="Test", last_name="User"):
    user = UserProfile(
        email=email, role=role, first_name=first_name, last_name=last_name
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def client_user(db_session):
    return _make_user(db_session, "client@example.com", "client", "Casey", "Client")


@pytest.fixture
def other_client(db_session):
    return _make_user(db_session, "other@example.com", "client", "Olli", "Other")


@pytest.fixture
def owner_user(db_session):
    return _make_user(db_session, "owner@example.com", "salon_owner", "Sam", "Owner")


@pytest.fixture
def other_owner(db_session):
    return _make_user(db_session, "owner2@example.com", "salon_owner", "Robin", "Rival")


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def client_headers(client_user):
    return _headers(client_user)


@pytest.fixture
def other_client_headers(other_client):
    return _headers(other_client)


@pytest.fixture
def owner_headers(owner_user):
    return _headers(owner_user)


@pytest.fixture
def other_owner_headers(other_owner):
    return _headers(other_owner)


# -----------------------------------------------------------------------------
# Salons, services and bookings
# -----------------------------------------------------------------------------
@pytest.fixture
def make_salon(db_session):
    """Factory: make_salon(name, lat=None, lng=None, **fields)."""
    counter = {"owners": 0}

    def _make(business_name="Test Salon", latitude=None, longitude=None, owner=None, **fields):
        if owner is None:
            counter["owners"] += 1
            owner = _make_user(
                db_session,
                f"factory-owner-{counter['owners']}-{business_name.lower().replace(' ', '-')}@example.com",
                "salon_owner",
            )
        salon = Salon(
            owner_id=owner.id,
            business_name=business_name,
            latitude=latitude,
            longitude=longitude,
            city=fields.pop("city", "Amsterdam"),
            state=fields.pop("state", "NH"),
            zip_code=fields.pop("zip_code", "1011"),
            country=fields.pop("country", "NL"),
            **fields,
        )
        db_session.add(salon)
        db_session.commit()
        return salon

    return _make


@pytest.fixture
def make_service(db_session):
    def _make(salon, name="Haircut", price=25.0, duration=30, category=None, **fields):
        service = Service(
            salon_id=salon.id,
            name=name,
            price=price,
            duration=duration,
            category_id=category.id if category else None,
            **fields,
        )
        db_session.add(service)
        db_session.commit()
        return service

    return _make


@pytest.fixture
def make_booking(db_session):
    def _make(
        client,
        service,
        day=datetime.date(2026, 10, 20),
        start=datetime.time(10, 0),
        status="pending",
        **fields,
    ):
        start_minutes = start.hour * 60 + start.minute + service.duration
        booking = Booking(
            client_id=client.id,
            salon_id=service.salon_id,
            service_id=service.id,
            appointment_date=day,
            start_time=start,
            end_time=datetime.time(start_minutes // 60, start_minutes % 60),
            status=status,
            total_price=service.price,
            **fields,
        )
        db_session.add(booking)
        db_session.commit()
        return booking

    return _make


@pytest.fixture
def hair_category(db_session):
    category = ServiceCategory(name="Hair Salon", slug="hair", is_active=True)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def owner_salon(make_salon, owner_user):
    """The owner_user's salon in central Amsterdam, open weekdays 09-17."""
    return make_salon(
        "Studio Centraal",
        *AMSTERDAM,
        owner=owner_user,
        address="Damrak 1",
        business_hours=dict(WEEKDAY_HOURS),
    )


@pytest.fixture
def owner_service(make_service, owner_salon):
    return make_service(owner_salon, name="Haircut", price=40.0, duration=45)
