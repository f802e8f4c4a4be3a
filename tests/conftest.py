"""
Green City Connect - test configuration and fixtures
"""
import os

import pytest
from faker import Faker
from fastapi.testclient import TestClient

# Set testing environment before the app reads its config
os.environ["STORE_BACKEND"] = "memory"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-jwt-secret-for-testing-only"
os.environ["PAYMENT_VERIFIER"] = "admin"
os.environ["SEED_DEMO_DATA"] = "false"

from main import app
from auth import create_access_token
from state import AppState, set_state
from storage import MemoryStore

fake = Faker()

TEST_ADMIN = {"id": "admin1", "name": "Ward Administrator", "mobile": "9000000001", "password": "admin-pass-1"}
USER_PASSWORD = "password123"


def make_state(**kwargs) -> AppState:
    state = AppState(MemoryStore(), admins=[TEST_ADMIN], **kwargs)
    state.ensure_seed()
    return state


@pytest.fixture
def state():
    """Fresh in-memory AppState installed as the process instance"""
    s = make_state()
    set_state(s)
    yield s
    set_state(None)


@pytest.fixture
def client(state) -> TestClient:
    return TestClient(app)


@pytest.fixture
def user_data() -> dict:
    return {
        "name": fake.name(),
        "email": fake.unique.email(),
        "password": USER_PASSWORD,
        "address": fake.address().replace("\n", ", "),
    }


@pytest.fixture
def user(state, user_data):
    """A household on the default plan, owing one month (75.00)"""
    return state.signup(**user_data)


@pytest.fixture
def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token('user', user.id)}"}


@pytest.fixture
def admin_headers(state) -> dict:
    return {"Authorization": f"Bearer {create_access_token('admin', TEST_ADMIN['id'])}"}


@pytest.fixture
def state_factory():
    """Build extra AppStates, e.g. with a different payment verifier"""
    return make_state
