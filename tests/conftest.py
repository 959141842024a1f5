from datetime import timedelta

import pytest
from argon2 import PasswordHasher

from api import create_app
from models.base_model import utcnow
from models.db_storage import DBStorage
from services import build_services
from services.settings import AuthSettings

TEST_SECRET = "test-jwt-secret-that-is-long-enough-0123456789"
PASSWORD = "Str0ng!Passw0rd"
NEW_PASSWORD = "An0ther!Secret"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return AuthSettings(jwt_secret=TEST_SECRET)


@pytest.fixture
def hasher():
    # cheap parameters, the tests hash a lot
    return PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def storage():
    storage = DBStorage("sqlite://")
    storage.reload()
    yield storage
    storage.close()


@pytest.fixture
def events(storage):
    received = []
    storage.subscribe(received.append)
    return received


@pytest.fixture
def services(storage, settings, clock, hasher):
    return build_services(storage, settings, clock=clock, hasher=hasher)


@pytest.fixture
def registered(services):
    """AuthResult of a freshly registered user (alice@example.com / PASSWORD)."""
    return services.auth.register(
        email="Alice@Example.com",
        password=PASSWORD,
        confirm_password=PASSWORD,
        display_name="Alice",
        first_name="Alice",
        last_name="Liddell",
    )


@pytest.fixture
def app(storage, hasher):
    app = create_app("testing", storage=storage, hasher=hasher)
    return app


@pytest.fixture
def client(app):
    return app.test_client()
