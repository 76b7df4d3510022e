import os
import tempfile
from datetime import timedelta
from decimal import Decimal

import pytest

_TMP = tempfile.mkdtemp(prefix="marketplace-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP}/test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("MEDIA_ROOT", os.path.join(_TMP, "media"))
os.environ.setdefault("POINTS_PER_COMPLETED_OFFER", "10")

from fastapi.testclient import TestClient  # noqa: E402

from app.core.constants import LISTING_ACTIVE, ROLE_USER  # noqa: E402
from app.core.database import Base, SessionLocal, engine  # noqa: E402
from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.main import app  # noqa: E402
from app.models.listing import Listing  # noqa: E402
from app.models.user import User  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(is_vendor=False, role=ROLE_USER, points=0, email=None, password="password123"):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            hashed_password=get_password_hash(password),
            first_name=f"User{counter['n']}",
            last_name="Test",
            is_vendor=is_vendor,
            role=role,
            points=points,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_listing(db):
    def _make(owner, status=LISTING_ACTIVE, price=Decimal("150.00"), title="Road bike"):
        listing = Listing(
            owner_id=owner.id,
            title=title,
            description="Lightly used",
            price=price,
            currency="USD",
            status=status,
        )
        db.add(listing)
        db.commit()
        db.refresh(listing)
        return listing

    return _make


def auth_headers(user) -> dict:
    token = create_access_token({"sub": str(user.id)}, expires_delta=timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers
