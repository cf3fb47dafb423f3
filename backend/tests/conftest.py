import os
import tempfile

# Must be set before glamscan is imported: settings are read at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GLAMSCAN_MOCK_AI"] = "true"
os.environ["MEDIA_DIR"] = tempfile.mkdtemp(prefix="glamscan-media-")
os.environ.pop("OPENAI_API_KEY", None)

from typing import Callable, Generator, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from glamscan import ai_core, crud, models, rate_limiter, schemas, security  # noqa: E402
from glamscan.config import settings  # noqa: E402
from glamscan.database import Base, get_db_session  # noqa: E402
from glamscan.main import app  # noqa: E402

TEST_PASSWORD = "correct horse battery staple"
# Hashed once; bcrypt is deliberately slow
TEST_PASSWORD_HASH = security.hash_password(TEST_PASSWORD)


# --- Fixtures ---

@pytest.fixture(scope="function")
def db_engine():
    """A fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session_for_tests(db_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    yield db
    db.close()


@pytest.fixture(scope="function")
def client(db_session_for_tests: Session) -> Generator[TestClient, None, None]:
    """
    Provides a TestClient instance with the database dependency overridden.
    """
    def override_get_db():
        try:
            yield db_session_for_tests
        finally:
            pass

    app.dependency_overrides[get_db_session] = override_get_db
    with TestClient(app) as c:
        yield c
    del app.dependency_overrides[get_db_session]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Mocked AI, no affiliate tag and empty rate-limit counters for every test."""
    monkeypatch.setattr(ai_core, "USE_MOCK_AI", True)
    monkeypatch.setattr(settings, "AMAZON_ASSOCIATE_TAG", "")
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    rate_limiter.reset()
    yield
    rate_limiter.reset()


# --- Factories ---

@pytest.fixture
def make_user(db_session_for_tests: Session) -> Callable[..., models.User]:
    counter = {"n": 0}

    def _make_user(email: Optional[str] = None, display_name: Optional[str] = None,
                   role: str = "user", gender: Optional[str] = None) -> models.User:
        counter["n"] += 1
        user = crud.users.create_user_with_password(
            db_session_for_tests,
            email=email or f"user{counter['n']}@example.com",
            display_name=display_name or f"User {counter['n']}",
            password_hash=TEST_PASSWORD_HASH,
            gender=gender,
        )
        if role != "user":
            user = crud.users.set_user_role(db_session_for_tests, user.email, role)
        return user

    return _make_user


@pytest.fixture
def login_as(client: TestClient, db_session_for_tests: Session) -> Callable[[models.User], TestClient]:
    """Switches the client's session cookie to the given user."""
    def _login_as(user: models.User) -> TestClient:
        db_session = crud.users.create_session(db_session_for_tests, user_id=user.id)
        client.cookies.clear()
        client.cookies.set(settings.SESSION_COOKIE_NAME, db_session.id)
        return client

    return _login_as


@pytest.fixture
def make_post(db_session_for_tests: Session) -> Callable[..., models.Post]:
    def _make_post(user: models.User, caption: Optional[str] = "Test look",
                   image_url: str = "/media/test.jpg") -> models.Post:
        return crud.posts.create_post(
            db_session_for_tests, user_id=user.id, image_url=image_url, caption=caption, product_tags=None
        )

    return _make_post


def combo_payload(title: str = "Summer Brunch", items: int = 2, **overrides) -> dict:
    payload = {
        "title": title,
        "description": "Light linen layers for a sunny brunch",
        "coverImageUrl": "https://images.example.com/cover.jpg",
        "shopUrl": "https://www.amazon.com/s?k=linen+outfit",
        "totalPrice": 120.5,
        "season": "summer",
        "occasion": "casual",
        "style": "minimalist",
        "items": [
            {
                "name": f"Item {index + 1}",
                "price": 20.0 + index,
                "imageUrl": f"https://images.example.com/item{index + 1}.jpg",
                "affiliateUrl": f"https://www.amazon.com/dp/B00{index + 1}",
            }
            for index in range(items)
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_combo(db_session_for_tests: Session) -> Callable[..., models.StyleCombo]:
    def _make_combo(title: str = "Summer Brunch", items: int = 2, **overrides) -> models.StyleCombo:
        payload = schemas.StyleComboInput.model_validate(combo_payload(title, items, **overrides))
        return crud.style_combos.create_style_combo(db_session_for_tests, payload)

    return _make_combo


@pytest.fixture
def combo_payload_factory() -> Callable[..., dict]:
    return combo_payload
