import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from practice_app.database import Base, get_db
from practice_app.main import app
from practice_app.routers.practices import get_today_provider
from practice_app.services.series_edit_service import SeriesEditController
from practice_app.services.series_service import SeriesRepository
from datetime import date

TEST_DB_URL = "sqlite:///./test_practices.db"
TEST_TODAY = date(2024, 6, 1)

engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False})
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


def override_today_provider():
    return lambda: TEST_TODAY


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_today_provider] = override_today_provider


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def repository(db):
    return SeriesRepository(db, today=lambda: TEST_TODAY)


@pytest.fixture
def controller(repository):
    return SeriesEditController(repository)


def make_template(**overrides) -> dict:
    template = {
        "title": "Morning Water Practice",
        "description": "Full crew on the water",
        "practice_type": "water",
        "date": date(2024, 6, 3),
        "start_time": "06:30",
        "end_time": "08:00",
        "location_name": "Boathouse",
        "location_address": "1 River Rd",
        "location_lat": 37.77,
        "location_lng": -122.41,
        "max_capacity": 22,
        "is_visible_to_members": True,
        "rsvp_visibility_hours": 48,
        "food_location_name": "Cafe Dock",
        "food_location_address": "3 River Rd",
        "created_by": 7,
    }
    template.update(overrides)
    return template


@pytest.fixture
def template():
    return make_template()
